"""What the applicant has to do next, per status."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional
from uuid import UUID

from .milestones import MILESTONE_TITLES, MilestoneKind
from .models import Application, PaymentMilestone
from .payments import outstanding_milestone
from .revisions import RevisionCounter
from .statuses import ApplicationStatus


class ActionKind(str, Enum):
    PAYMENT = "payment"
    MEETING = "meeting"
    CERTIFICATE = "certificate"
    STATUS_UPDATE = "status_update"


@dataclass(frozen=True)
class NextAction:
    kind: ActionKind
    title: str
    description: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    due_at: Optional[datetime] = None
    milestone_id: Optional[UUID] = None
    next_status: Optional[ApplicationStatus] = None


S = ApplicationStatus

_PAYMENT_STATUSES = {
    S.PAYMENT_PENDING_REVIEW: MilestoneKind.DOCUMENT_REVIEW,
    S.REJECTED_PAYMENT_REQUIRED: MilestoneKind.REVISION,
    S.PAYMENT_PENDING_ASSESSMENT: MilestoneKind.ASSESSMENT,
    S.ONSITE_ASSESSMENT_COMPLETED: MilestoneKind.CERTIFICATE_ISSUANCE,
}


def _payment_action(milestone: PaymentMilestone) -> NextAction:
    title = MILESTONE_TITLES[milestone.kind]
    return NextAction(
        kind=ActionKind.PAYMENT,
        title=f"Pay the {title}",
        description=f"Pay {milestone.amount} {milestone.currency} ({title}) to continue",
        amount=milestone.amount,
        currency=milestone.currency,
        due_at=milestone.due_at,
        milestone_id=milestone.id,
    )


def next_actions(
    app: Application,
    milestones: Iterable[PaymentMilestone],
    revisions: Optional[RevisionCounter] = None,
) -> List[NextAction]:
    """Obligations the applicant must fulfil before the workflow can move on."""
    milestones = list(milestones)
    revisions = revisions or RevisionCounter()
    actions: List[NextAction] = []

    kind = _PAYMENT_STATUSES.get(app.status)
    if kind is not None:
        milestone = outstanding_milestone(milestones, kind)
        if milestone is not None:
            actions.append(_payment_action(milestone))

    if app.status == S.DRAFT:
        actions.append(NextAction(
            kind=ActionKind.STATUS_UPDATE,
            title="Complete the application",
            description="Fill in the application and upload the required documents",
            next_status=S.SUBMITTED,
        ))
    elif app.status == S.REVISION_REQUESTED:
        remaining = revisions.remaining_free_revisions(app)
        note = (
            f"{remaining} free revision(s) left"
            if remaining
            else "No free revisions left; the next revision is charged"
        )
        actions.append(NextAction(
            kind=ActionKind.STATUS_UPDATE,
            title="Correct and resubmit the documents",
            description=f"Revision {app.revision_count_current}: {note}",
            next_status=S.SUBMITTED,
        ))
    elif app.status == S.ONLINE_ASSESSMENT_SCHEDULED:
        actions.append(NextAction(
            kind=ActionKind.MEETING,
            title="Join the online assessment",
            description="Attend the online assessment at the scheduled time",
        ))
    elif app.status == S.ONSITE_ASSESSMENT_SCHEDULED:
        actions.append(NextAction(
            kind=ActionKind.MEETING,
            title="Prepare for the onsite assessment",
            description="Prepare the farm site and documents for the onsite assessment",
        ))
    elif app.status == S.CERTIFIED:
        actions.append(NextAction(
            kind=ActionKind.CERTIFICATE,
            title="Download the certificate",
            description="The GACP certificate is ready",
        ))

    return actions
