"""Certification workflow module.

Implements the certification lifecycle: status catalog, revision quota,
payment gating, transition validation, audit trail and the orchestrator.
"""

from .statuses import (
    ApplicationStatus,
    ActorRole,
    TransitionRule,
    TRANSITION_RULES,
    VALID_TRANSITIONS,
    TERMINAL_STATUSES,
    allowed_transitions,
    is_terminal,
    payment_required_for,
    is_revision_edge,
)
from .milestones import FeeSchedule, MilestoneKind, MilestoneStatus
from .models import (
    Actor,
    Application,
    OutboundKind,
    OutboundMessage,
    PaymentMilestone,
    StatusHistoryEntry,
    SYSTEM_ACTOR,
)
from .errors import (
    WorkflowError,
    ApplicationNotFoundError,
    MilestoneNotFoundError,
    IllegalTransitionError,
    PermissionDeniedError,
    PaymentRequiredError,
    RevisionQuotaExceededError,
    ConcurrentModificationError,
    DuplicatePaymentError,
    StorageError,
)
from .revisions import RevisionCounter
from .payments import PaymentGate
from .validator import Allowed, Denied, TransitionValidator
from .audit import AuditTrailWriter
from .orchestrator import PaymentConfirmation, TransitionResult, WorkflowOrchestrator

__all__ = [
    "ApplicationStatus",
    "ActorRole",
    "TransitionRule",
    "TRANSITION_RULES",
    "VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "allowed_transitions",
    "is_terminal",
    "payment_required_for",
    "is_revision_edge",
    "FeeSchedule",
    "MilestoneKind",
    "MilestoneStatus",
    "Actor",
    "Application",
    "OutboundKind",
    "OutboundMessage",
    "PaymentMilestone",
    "StatusHistoryEntry",
    "SYSTEM_ACTOR",
    "WorkflowError",
    "ApplicationNotFoundError",
    "MilestoneNotFoundError",
    "IllegalTransitionError",
    "PermissionDeniedError",
    "PaymentRequiredError",
    "RevisionQuotaExceededError",
    "ConcurrentModificationError",
    "DuplicatePaymentError",
    "StorageError",
    "RevisionCounter",
    "PaymentGate",
    "Allowed",
    "Denied",
    "TransitionValidator",
    "AuditTrailWriter",
    "PaymentConfirmation",
    "TransitionResult",
    "WorkflowOrchestrator",
]
