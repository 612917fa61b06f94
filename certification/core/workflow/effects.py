"""Side effects attached to committed transitions.

Effects are plain values produced by the validator; the orchestrator turns
them into field updates, new milestones and outbound messages.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

from .milestones import MilestoneKind
from .models import TIMESTAMP_FIELDS
from .statuses import ApplicationStatus


class EffectKind(str, Enum):
    SET_TIMESTAMP = "set_timestamp"
    INCREMENT_REVISION = "increment_revision"
    CREATE_MILESTONE = "create_milestone"
    SCHEDULE_ASSESSMENT = "schedule_assessment"
    ISSUE_CERTIFICATE = "issue_certificate"
    NOTIFY_USER = "notify_user"


class AssessmentMode(str, Enum):
    ONLINE = "online"
    ONSITE = "onsite"


class SideEffect(NamedTuple):
    kind: EffectKind
    field: Optional[str] = None
    milestone_kind: Optional[MilestoneKind] = None
    assessment_mode: Optional[AssessmentMode] = None


def set_timestamp(field: str) -> SideEffect:
    return SideEffect(EffectKind.SET_TIMESTAMP, field=field)


def create_milestone(kind: MilestoneKind) -> SideEffect:
    return SideEffect(EffectKind.CREATE_MILESTONE, milestone_kind=kind)


def schedule_assessment(mode: AssessmentMode) -> SideEffect:
    return SideEffect(EffectKind.SCHEDULE_ASSESSMENT, assessment_mode=mode)


INCREMENT_REVISION = SideEffect(EffectKind.INCREMENT_REVISION)
ISSUE_CERTIFICATE = SideEffect(EffectKind.ISSUE_CERTIFICATE)
NOTIFY_USER = SideEffect(EffectKind.NOTIFY_USER)


S = ApplicationStatus

# Effects fired on entry into a status, besides the timestamp stamp
_ENTRY_ACTIONS: Dict[ApplicationStatus, Tuple[SideEffect, ...]] = {
    S.PAYMENT_PENDING_REVIEW: (create_milestone(MilestoneKind.DOCUMENT_REVIEW),),
    S.REJECTED_PAYMENT_REQUIRED: (create_milestone(MilestoneKind.REVISION),),
    S.PAYMENT_PENDING_ASSESSMENT: (create_milestone(MilestoneKind.ASSESSMENT),),
    S.PAYMENT_CONFIRMED_ASSESSMENT: (schedule_assessment(AssessmentMode.ONLINE),),
    S.ONLINE_ASSESSMENT_COMPLETED: (schedule_assessment(AssessmentMode.ONSITE),),
    S.ONSITE_ASSESSMENT_COMPLETED: (create_milestone(MilestoneKind.CERTIFICATE_ISSUANCE),),
    S.CERTIFIED: (ISSUE_CERTIFICATE,),
}


def entry_effects(status: ApplicationStatus) -> Tuple[SideEffect, ...]:
    """Effects of entering ``status``; every entry notifies the applicant."""
    effects: Tuple[SideEffect, ...] = ()
    timestamp_field = TIMESTAMP_FIELDS.get(status)
    if timestamp_field:
        effects += (set_timestamp(timestamp_field),)
    effects += _ENTRY_ACTIONS.get(status, ())
    return effects + (NOTIFY_USER,)
