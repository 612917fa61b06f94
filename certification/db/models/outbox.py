"""Outbound message model (transactional outbox)."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey, Text, Uuid

from certification.db.base import Base


class OutboundMessageRecord(Base):
    """
    Collaborator message written in the same transaction as the transition.

    The dispatcher delivers pending rows at least once and records each
    attempt; rows exceeding the attempt limit are marked failed.
    """
    __tablename__ = "outbound_messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False, index=True)

    kind = Column(String(50), nullable=False, index=True)
    status = Column(String(50), nullable=False)  # Application status that produced it
    payload = Column(JSON, nullable=False, default=dict)

    # Delivery tracking
    delivery_status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    delivered_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<OutboundMessageRecord {self.kind} [{self.delivery_status}]>"
