"""Application database model.

One row per certification request. Rows are never deleted; terminal
applications are retained for audit purposes.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, JSON, Uuid
from sqlalchemy.orm import relationship

from certification.db.base import Base


class ApplicationRecord(Base):
    """
    Current state of a certification application.

    ``version`` is bumped on every committed transition and used as the
    compare-and-swap guard for concurrent writers.
    """
    __tablename__ = "applications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    applicant_id = Column(String(255), nullable=True, index=True)

    # Workflow state
    status = Column(String(50), nullable=False, default="DRAFT", index=True)
    version = Column(Integer, nullable=False, default=1)

    # Revision quota
    revision_count_current = Column(Integer, nullable=False, default=0)
    max_free_revisions = Column(Integer, nullable=False, default=2)

    # Milestone timestamps, each set once on first entry into its status
    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    assessment_scheduled_at = Column(DateTime, nullable=True)
    assessment_completed_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    # Additional data
    extra_data = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    history = relationship(
        "StatusHistoryRecord",
        back_populates="application",
        order_by="StatusHistoryRecord.sequence",
    )
    milestones = relationship(
        "PaymentMilestoneRecord",
        back_populates="application",
        order_by="PaymentMilestoneRecord.sequence",
    )

    def __repr__(self) -> str:
        return f"<ApplicationRecord {self.id} [{self.status} v{self.version}]>"
