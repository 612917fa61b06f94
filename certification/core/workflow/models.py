"""Domain values of the certification workflow.

These are immutable snapshots. The orchestrator derives new values with
``dataclasses.replace`` and hands them to the storage port; nothing else
mutates an application.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from .milestones import MilestoneKind, MilestoneStatus
from .statuses import ActorRole, ApplicationStatus


DEFAULT_MAX_FREE_REVISIONS = 2

# Status -> application field stamped on first entry
TIMESTAMP_FIELDS: Dict[ApplicationStatus, str] = {
    ApplicationStatus.SUBMITTED: "submitted_at",
    ApplicationStatus.REVIEW_APPROVED: "reviewed_at",
    ApplicationStatus.ONLINE_ASSESSMENT_SCHEDULED: "assessment_scheduled_at",
    ApplicationStatus.ONSITE_ASSESSMENT_COMPLETED: "assessment_completed_at",
    ApplicationStatus.CERTIFIED: "approved_at",
    ApplicationStatus.REJECTED: "rejected_at",
}


@dataclass(frozen=True)
class Actor:
    """Identity performing a transition."""

    id: str
    role: ActorRole

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}"


SYSTEM_ACTOR = Actor(id="system", role=ActorRole.SYSTEM)


@dataclass(frozen=True)
class Application:
    """One certification request."""

    id: UUID
    status: ApplicationStatus
    revision_count_current: int = 0
    max_free_revisions: int = DEFAULT_MAX_FREE_REVISIONS
    version: int = 1
    applicant_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    assessment_scheduled_at: Optional[datetime] = None
    assessment_completed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One committed status change. Never updated or deleted."""

    application_id: UUID
    from_status: Optional[ApplicationStatus]
    to_status: ApplicationStatus
    changed_by: str
    sequence: int
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    changed_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class PaymentMilestone:
    """A fee obligation gating one transition."""

    application_id: UUID
    kind: MilestoneKind
    amount: Decimal
    currency: str = "THB"
    status: MilestoneStatus = MilestoneStatus.PENDING
    due_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    sequence: int = 0
    created_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid.uuid4)

    @property
    def is_confirmed(self) -> bool:
        return self.status == MilestoneStatus.CONFIRMED


class OutboundKind(str, Enum):
    """Collaborator interactions fired by committed transitions."""

    CREATE_PAYMENT_MILESTONE = "create_payment_milestone"
    SCHEDULE_ASSESSMENT = "schedule_assessment"
    ISSUE_CERTIFICATE = "issue_certificate"
    NOTIFY_USER = "notify_user"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass(frozen=True)
class OutboundMessage:
    """Message to an external collaborator, written with the transition."""

    application_id: UUID
    kind: OutboundKind
    status: ApplicationStatus
    payload: Dict[str, Any] = field(default_factory=dict)
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid.uuid4)
