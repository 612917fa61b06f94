"""Database models for the certification workflow."""

from certification.db.models.application import ApplicationRecord
from certification.db.models.history import StatusHistoryRecord
from certification.db.models.payment import PaymentMilestoneRecord
from certification.db.models.outbox import OutboundMessageRecord

__all__ = [
    "ApplicationRecord",
    "StatusHistoryRecord",
    "PaymentMilestoneRecord",
    "OutboundMessageRecord",
]
