"""Status history model.

This table is append-only: mapper events refuse UPDATE and DELETE through
the ORM, so every committed status change stays on record.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey, Text, UniqueConstraint, Uuid, event
from sqlalchemy.orm import relationship

from certification.core.workflow.errors import StorageError
from certification.db.base import Base


class StatusHistoryRecord(Base):
    """
    Immutable record of one committed status transition.

    ``sequence`` is the application version produced by the transition, so
    ordering by it replays the application's walk through the catalog.
    """
    __tablename__ = "application_status_history"
    __table_args__ = (
        UniqueConstraint("application_id", "sequence", name="uq_status_history_application_sequence"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    # Transition details
    from_status = Column(String(50), nullable=True)  # Null only for the creation entry
    to_status = Column(String(50), nullable=False)

    # Actor
    changed_by = Column(String(255), nullable=False)

    # Required for rejection and revision edges
    reason = Column(Text, nullable=True)

    # Additional context (payment reference, requested status, ...)
    extra_data = Column("metadata", JSON, nullable=False, default=dict)

    changed_at = Column(DateTime, default=datetime.utcnow, index=True)

    application = relationship("ApplicationRecord", back_populates="history")

    def __repr__(self) -> str:
        return f"<StatusHistoryRecord {self.from_status} -> {self.to_status}>"


@event.listens_for(StatusHistoryRecord, "before_update")
def _prevent_history_update(mapper, connection, target):
    raise StorageError(f"Status history entries are immutable and cannot be updated. Record ID: {target.id}")


@event.listens_for(StatusHistoryRecord, "before_delete")
def _prevent_history_delete(mapper, connection, target):
    raise StorageError(f"Status history entries are immutable and cannot be deleted. Record ID: {target.id}")
