"""Certification lifecycle statuses and the transition table.

Lifecycle (happy path)::

    DRAFT
      │
    SUBMITTED ◄──────────────────────────────┐
      │                                      │ (resubmit)
    PAYMENT_PENDING_REVIEW ─► PAYMENT_CONFIRMED_REVIEW
      │                                      │
    UNDER_REVIEW ──► REVISION_REQUESTED ─────┘
      │    └──────► REJECTED_PAYMENT_REQUIRED ─► REVISION_REQUESTED
      │
    REVIEW_APPROVED
      │
    PAYMENT_PENDING_ASSESSMENT ─► PAYMENT_CONFIRMED_ASSESSMENT
      │
    ONLINE_ASSESSMENT_SCHEDULED ─► _IN_PROGRESS ─► _COMPLETED
      │
    ONSITE_ASSESSMENT_SCHEDULED ─► _IN_PROGRESS ─► _COMPLETED
      │
    CERTIFIED

Side exits: REJECTED, CANCELLED, EXPIRED, and SUSPENDED (admin hold) which can
only end in REVOKED or CANCELLED.

Members of ``ApplicationStatus`` are declared in topological order of the
table: every edge points at a later member except REVISION_REQUESTED → SUBMITTED.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, NamedTuple, Optional, Set

from .milestones import MilestoneKind


class ApplicationStatus(str, Enum):
    """Workflow status of a certification application (wire strings)."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PAYMENT_PENDING_REVIEW = "PAYMENT_PENDING_REVIEW"
    PAYMENT_CONFIRMED_REVIEW = "PAYMENT_CONFIRMED_REVIEW"
    UNDER_REVIEW = "UNDER_REVIEW"
    REJECTED_PAYMENT_REQUIRED = "REJECTED_PAYMENT_REQUIRED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    REVIEW_APPROVED = "REVIEW_APPROVED"
    PAYMENT_PENDING_ASSESSMENT = "PAYMENT_PENDING_ASSESSMENT"
    PAYMENT_CONFIRMED_ASSESSMENT = "PAYMENT_CONFIRMED_ASSESSMENT"
    ONLINE_ASSESSMENT_SCHEDULED = "ONLINE_ASSESSMENT_SCHEDULED"
    ONLINE_ASSESSMENT_IN_PROGRESS = "ONLINE_ASSESSMENT_IN_PROGRESS"
    ONLINE_ASSESSMENT_COMPLETED = "ONLINE_ASSESSMENT_COMPLETED"
    ONSITE_ASSESSMENT_SCHEDULED = "ONSITE_ASSESSMENT_SCHEDULED"
    ONSITE_ASSESSMENT_IN_PROGRESS = "ONSITE_ASSESSMENT_IN_PROGRESS"
    ONSITE_ASSESSMENT_COMPLETED = "ONSITE_ASSESSMENT_COMPLETED"
    CERTIFIED = "CERTIFIED"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class ActorRole(str, Enum):
    """Roles that may drive a transition."""

    APPLICANT = "applicant"     # Farmer submitting the application
    REVIEWER = "reviewer"       # Document reviewer
    AUDITOR = "auditor"         # Runs online/onsite assessments
    ADMIN = "admin"             # May perform any edge
    SYSTEM = "system"           # Payment and scheduling callbacks


class TransitionRule(NamedTuple):
    """Defines a valid status transition."""
    from_status: ApplicationStatus
    to_status: ApplicationStatus
    roles: FrozenSet[ActorRole]
    payment: Optional[MilestoneKind] = None
    requires_reason: bool = False
    revision_edge: bool = False


S = ApplicationStatus
_APPLICANT = frozenset({ActorRole.APPLICANT})
_REVIEWER = frozenset({ActorRole.REVIEWER})
_AUDITOR = frozenset({ActorRole.AUDITOR})
_SYSTEM = frozenset({ActorRole.SYSTEM})
_ADMIN = frozenset({ActorRole.ADMIN})
_APPLICANT_OR_SYSTEM = frozenset({ActorRole.APPLICANT, ActorRole.SYSTEM})
_SYSTEM_OR_REVIEWER = frozenset({ActorRole.SYSTEM, ActorRole.REVIEWER})
_SYSTEM_OR_AUDITOR = frozenset({ActorRole.SYSTEM, ActorRole.AUDITOR})

# Statuses an administrator may put on hold
_SUSPENDABLE = [
    S.UNDER_REVIEW,
    S.REVIEW_APPROVED,
    S.PAYMENT_CONFIRMED_ASSESSMENT,
    S.ONLINE_ASSESSMENT_SCHEDULED,
    S.ONLINE_ASSESSMENT_IN_PROGRESS,
    S.ONLINE_ASSESSMENT_COMPLETED,
    S.ONSITE_ASSESSMENT_SCHEDULED,
    S.ONSITE_ASSESSMENT_IN_PROGRESS,
    S.ONSITE_ASSESSMENT_COMPLETED,
]

TRANSITION_RULES: List[TransitionRule] = [
    # Submission
    TransitionRule(S.DRAFT, S.SUBMITTED, _APPLICANT),
    TransitionRule(S.DRAFT, S.CANCELLED, _APPLICANT),
    TransitionRule(S.SUBMITTED, S.PAYMENT_PENDING_REVIEW, _SYSTEM),
    TransitionRule(S.SUBMITTED, S.UNDER_REVIEW, _SYSTEM_OR_REVIEWER,
                   payment=MilestoneKind.DOCUMENT_REVIEW),
    TransitionRule(S.SUBMITTED, S.CANCELLED, _APPLICANT),

    # Document review fee
    TransitionRule(S.PAYMENT_PENDING_REVIEW, S.PAYMENT_CONFIRMED_REVIEW, _SYSTEM,
                   payment=MilestoneKind.DOCUMENT_REVIEW),
    TransitionRule(S.PAYMENT_PENDING_REVIEW, S.UNDER_REVIEW, _SYSTEM,
                   payment=MilestoneKind.DOCUMENT_REVIEW),
    TransitionRule(S.PAYMENT_PENDING_REVIEW, S.CANCELLED, _APPLICANT_OR_SYSTEM),
    TransitionRule(S.PAYMENT_PENDING_REVIEW, S.EXPIRED, _SYSTEM),
    TransitionRule(S.PAYMENT_CONFIRMED_REVIEW, S.UNDER_REVIEW, _SYSTEM_OR_REVIEWER),
    TransitionRule(S.PAYMENT_CONFIRMED_REVIEW, S.CANCELLED, _APPLICANT),

    # Document review
    TransitionRule(S.UNDER_REVIEW, S.REVIEW_APPROVED, _REVIEWER),
    TransitionRule(S.UNDER_REVIEW, S.REVISION_REQUESTED, _REVIEWER,
                   requires_reason=True, revision_edge=True),
    TransitionRule(S.UNDER_REVIEW, S.REJECTED_PAYMENT_REQUIRED, _REVIEWER,
                   requires_reason=True, revision_edge=True),
    TransitionRule(S.UNDER_REVIEW, S.REJECTED, _REVIEWER, requires_reason=True),

    # Revisions
    TransitionRule(S.REJECTED_PAYMENT_REQUIRED, S.REVISION_REQUESTED, _SYSTEM,
                   payment=MilestoneKind.REVISION),
    TransitionRule(S.REJECTED_PAYMENT_REQUIRED, S.CANCELLED, _APPLICANT),
    TransitionRule(S.REJECTED_PAYMENT_REQUIRED, S.EXPIRED, _SYSTEM),
    TransitionRule(S.REVISION_REQUESTED, S.SUBMITTED, _APPLICANT),
    TransitionRule(S.REVISION_REQUESTED, S.CANCELLED, _APPLICANT),
    TransitionRule(S.REVISION_REQUESTED, S.EXPIRED, _SYSTEM),

    # Assessment fee
    TransitionRule(S.REVIEW_APPROVED, S.PAYMENT_PENDING_ASSESSMENT, _SYSTEM),
    TransitionRule(S.REVIEW_APPROVED, S.CANCELLED, _APPLICANT),
    TransitionRule(S.PAYMENT_PENDING_ASSESSMENT, S.PAYMENT_CONFIRMED_ASSESSMENT, _SYSTEM,
                   payment=MilestoneKind.ASSESSMENT),
    TransitionRule(S.PAYMENT_PENDING_ASSESSMENT, S.CANCELLED, _APPLICANT_OR_SYSTEM),
    TransitionRule(S.PAYMENT_PENDING_ASSESSMENT, S.EXPIRED, _SYSTEM),

    # Online assessment
    TransitionRule(S.PAYMENT_CONFIRMED_ASSESSMENT, S.ONLINE_ASSESSMENT_SCHEDULED, _SYSTEM_OR_AUDITOR),
    TransitionRule(S.ONLINE_ASSESSMENT_SCHEDULED, S.ONLINE_ASSESSMENT_IN_PROGRESS, _AUDITOR),
    TransitionRule(S.ONLINE_ASSESSMENT_SCHEDULED, S.CANCELLED, _APPLICANT),
    TransitionRule(S.ONLINE_ASSESSMENT_IN_PROGRESS, S.ONLINE_ASSESSMENT_COMPLETED, _AUDITOR),
    TransitionRule(S.ONLINE_ASSESSMENT_COMPLETED, S.ONSITE_ASSESSMENT_SCHEDULED, _SYSTEM_OR_AUDITOR),
    TransitionRule(S.ONLINE_ASSESSMENT_COMPLETED, S.REJECTED, _AUDITOR, requires_reason=True),

    # Onsite assessment
    TransitionRule(S.ONSITE_ASSESSMENT_SCHEDULED, S.ONSITE_ASSESSMENT_IN_PROGRESS, _AUDITOR),
    TransitionRule(S.ONSITE_ASSESSMENT_SCHEDULED, S.CANCELLED, _APPLICANT),
    TransitionRule(S.ONSITE_ASSESSMENT_IN_PROGRESS, S.ONSITE_ASSESSMENT_COMPLETED, _AUDITOR),
    TransitionRule(S.ONSITE_ASSESSMENT_COMPLETED, S.CERTIFIED, _SYSTEM,
                   payment=MilestoneKind.CERTIFICATE_ISSUANCE),
    TransitionRule(S.ONSITE_ASSESSMENT_COMPLETED, S.REJECTED, _AUDITOR, requires_reason=True),

    # Administrative hold
    TransitionRule(S.SUSPENDED, S.REVOKED, _ADMIN, requires_reason=True),
    TransitionRule(S.SUSPENDED, S.CANCELLED, _ADMIN),
] + [
    TransitionRule(status, S.SUSPENDED, _ADMIN, requires_reason=True)
    for status in _SUSPENDABLE
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApplicationStatus, Set[ApplicationStatus]] = {
    status: set() for status in ApplicationStatus
}
TRANSITION_INDEX: Dict[tuple[ApplicationStatus, ApplicationStatus], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS[rule.from_status].add(rule.to_status)
    TRANSITION_INDEX[(rule.from_status, rule.to_status)] = rule


# Terminal statuses (no outgoing transitions); retained permanently
TERMINAL_STATUSES: Set[ApplicationStatus] = {
    S.CERTIFIED,
    S.REJECTED,
    S.CANCELLED,
    S.EXPIRED,
    S.REVOKED,
}

# Statuses waiting on a payment from the applicant
PAYMENT_PENDING_STATUSES: Set[ApplicationStatus] = {
    S.PAYMENT_PENDING_REVIEW,
    S.REJECTED_PAYMENT_REQUIRED,
    S.PAYMENT_PENDING_ASSESSMENT,
}

# The single allowed regression
BACK_EDGE = (S.REVISION_REQUESTED, S.SUBMITTED)

INITIAL_STATUS = S.DRAFT


def allowed_transitions(from_status: ApplicationStatus) -> Set[ApplicationStatus]:
    """Statuses reachable in one step from ``from_status``."""
    return set(VALID_TRANSITIONS.get(from_status, set()))


def can_transition(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def get_transition_rule(
    from_status: ApplicationStatus, to_status: ApplicationStatus
) -> Optional[TransitionRule]:
    """Get the rule for an edge, or None if the edge does not exist."""
    return TRANSITION_INDEX.get((from_status, to_status))


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_STATUSES


def payment_required_for(
    from_status: ApplicationStatus, to_status: ApplicationStatus
) -> Optional[MilestoneKind]:
    """Milestone kind gating the edge, if any."""
    rule = get_transition_rule(from_status, to_status)
    return rule.payment if rule else None


def is_revision_edge(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    """True for the edges that send an application back for correction."""
    rule = get_transition_rule(from_status, to_status)
    return bool(rule and rule.revision_edge)


def is_valid_walk(statuses: List[ApplicationStatus]) -> bool:
    """Check that a sequence of statuses starts at DRAFT and follows the table."""
    if not statuses or statuses[0] != INITIAL_STATUS:
        return False
    return all(
        can_transition(current, following)
        for current, following in zip(statuses, statuses[1:])
    )
