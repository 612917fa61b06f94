"""Payment milestone model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from certification.db.base import Base


class PaymentMilestoneRecord(Base):
    """
    A fee obligation gating a transition.

    Status moves pending -> confirmed | failed | refunded | cancelled; a
    failed milestone can still be confirmed by a later successful payment.
    """
    __tablename__ = "payment_milestones"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False, index=True)

    kind = Column(String(50), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="THB")
    status = Column(String(20), nullable=False, default="pending", index=True)

    # Application version that raised the milestone
    sequence = Column(Integer, nullable=False, default=0)

    due_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(100), nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    application = relationship("ApplicationRecord", back_populates="milestones")

    def __repr__(self) -> str:
        return f"<PaymentMilestoneRecord {self.kind} {self.amount} [{self.status}]>"
