"""Payment gate: decides whether fee milestones are settled.

Confirmations arrive asynchronously from the payment collaborator. A
confirmation for an unknown or already settled milestone is a no-op reported
as ``DuplicatePaymentError``.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from .errors import DuplicatePaymentError, MilestoneNotFoundError
from .milestones import CONFIRMABLE_STATUSES, MilestoneKind, MilestoneStatus
from .models import PaymentMilestone
from .ports import WorkflowStore
from .statuses import ApplicationStatus

logger = logging.getLogger(__name__)


# Milestone kind -> (status waiting on it, status to request once paid)
FOLLOW_UP_TRANSITIONS: Dict[MilestoneKind, Tuple[ApplicationStatus, ApplicationStatus]] = {
    MilestoneKind.DOCUMENT_REVIEW: (
        ApplicationStatus.PAYMENT_PENDING_REVIEW,
        ApplicationStatus.UNDER_REVIEW,
    ),
    MilestoneKind.ASSESSMENT: (
        ApplicationStatus.PAYMENT_PENDING_ASSESSMENT,
        ApplicationStatus.PAYMENT_CONFIRMED_ASSESSMENT,
    ),
    MilestoneKind.REVISION: (
        ApplicationStatus.REJECTED_PAYMENT_REQUIRED,
        ApplicationStatus.REVISION_REQUESTED,
    ),
    MilestoneKind.CERTIFICATE_ISSUANCE: (
        ApplicationStatus.ONSITE_ASSESSMENT_COMPLETED,
        ApplicationStatus.CERTIFIED,
    ),
}


def milestones_of_kind(
    milestones: Iterable[PaymentMilestone], kind: MilestoneKind
) -> List[PaymentMilestone]:
    """Milestones of ``kind`` ordered oldest first."""
    matching = [m for m in milestones if m.kind == kind]
    return sorted(matching, key=lambda m: (m.sequence, m.created_at or datetime.min))


def latest_milestone(
    milestones: Iterable[PaymentMilestone], kind: MilestoneKind
) -> Optional[PaymentMilestone]:
    matching = milestones_of_kind(milestones, kind)
    return matching[-1] if matching else None


def outstanding_milestone(
    milestones: Iterable[PaymentMilestone], kind: MilestoneKind
) -> Optional[PaymentMilestone]:
    """Most recent unpaid milestone of ``kind``, if one is waiting."""
    latest = latest_milestone(milestones, kind)
    if latest and latest.status in CONFIRMABLE_STATUSES:
        return latest
    return None


def is_satisfied(milestones: Iterable[PaymentMilestone], kind: MilestoneKind) -> bool:
    """
    Gate check used during validation.

    One-shot kinds are satisfied by any confirmed milestone. Repeatable kinds
    (revision fees) only by the most recently raised one, so an earlier paid
    revision never unlocks a later one.
    """
    if kind.repeatable:
        latest = latest_milestone(milestones, kind)
        return bool(latest and latest.is_confirmed)
    return any(m.is_confirmed for m in milestones_of_kind(milestones, kind))


def needs_new_milestone(milestones: Iterable[PaymentMilestone], kind: MilestoneKind) -> bool:
    """Whether entering a payment status must raise a fresh milestone."""
    if kind.repeatable:
        return True
    return not any(
        m.status in (MilestoneStatus.PENDING, MilestoneStatus.CONFIRMED)
        for m in milestones_of_kind(milestones, kind)
    )


def follow_up_status(
    kind: MilestoneKind, current: ApplicationStatus
) -> Optional[ApplicationStatus]:
    """Transition to request after ``kind`` is paid while at ``current``."""
    waiting, target = FOLLOW_UP_TRANSITIONS[kind]
    return target if current == waiting else None


class PaymentGate:
    """
    Reads and settles payment milestones.

    Confirmation uses a compare-and-set on the milestone status so two
    deliveries of the same gateway callback settle it only once.
    """

    def __init__(self, store: WorkflowStore):
        self.store = store

    def has_confirmed_milestone(self, application_id: UUID, kind: MilestoneKind) -> bool:
        """True iff at least one milestone of ``kind`` is confirmed."""
        return any(
            m.is_confirmed
            for m in self.store.list_milestones(application_id)
            if m.kind == kind
        )

    def confirm(
        self,
        milestone_id: UUID,
        confirmed_at: datetime,
        *,
        reference: Optional[str] = None,
    ) -> Tuple[PaymentMilestone, Optional[ApplicationStatus]]:
        """
        Mark a milestone confirmed.

        Returns:
            The confirmed milestone and the follow-up status to request for
            its application (None when the application is not waiting on it).

        Raises:
            DuplicatePaymentError: Unknown milestone, or already settled.
        """
        milestone = self.store.get_milestone(milestone_id)
        if milestone is None:
            raise DuplicatePaymentError(
                f"Unknown payment milestone {milestone_id}", milestone_id
            )
        if milestone.status not in CONFIRMABLE_STATUSES:
            raise DuplicatePaymentError(
                f"Payment milestone {milestone_id} is already {milestone.status.value}",
                milestone_id,
                milestone,
            )

        confirmed = replace(
            milestone,
            status=MilestoneStatus.CONFIRMED,
            paid_at=confirmed_at,
            payment_reference=reference or milestone.payment_reference,
            failure_reason=None,
        )
        with self.store.unit_of_work() as uow:
            if not uow.update_milestone(confirmed, expected_status=milestone.status):
                raise DuplicatePaymentError(
                    f"Payment milestone {milestone_id} was settled concurrently",
                    milestone_id,
                    milestone,
                )

        logger.info(
            f"Payment milestone {milestone_id} ({milestone.kind.value}) confirmed "
            f"for application {milestone.application_id}"
        )
        app = self.store.get_application(milestone.application_id)
        return confirmed, follow_up_status(milestone.kind, app.status)

    def record_failure(self, milestone_id: UUID, reason: str) -> PaymentMilestone:
        """Mark a pending milestone failed after a gateway error."""
        milestone = self.store.get_milestone(milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)
        if milestone.status != MilestoneStatus.PENDING:
            raise DuplicatePaymentError(
                f"Payment milestone {milestone_id} is {milestone.status.value}, not pending",
                milestone_id,
                milestone,
            )

        failed = replace(milestone, status=MilestoneStatus.FAILED, failure_reason=reason)
        with self.store.unit_of_work() as uow:
            if not uow.update_milestone(failed, expected_status=MilestoneStatus.PENDING):
                raise DuplicatePaymentError(
                    f"Payment milestone {milestone_id} changed concurrently",
                    milestone_id,
                    milestone,
                )
        logger.warning(f"Payment milestone {milestone_id} failed: {reason}")
        return failed
