"""Workflow orchestrator.

Entry point for every external event: UI actions, payment gateway callbacks
and scheduling callbacks. Each ``request_transition`` call is one logical
unit: validate, apply side effects to a new application value, then persist
the application (version compare-and-swap), new milestones, the audit entry
and outbound messages in a single unit of work.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from uuid import UUID

from certification.common.logger import application_logger

from .audit import AuditTrailWriter
from .effects import EffectKind
from .errors import (
    ConcurrentModificationError,
    DuplicatePaymentError,
    IllegalTransitionError,
)
from .milestones import FeeSchedule, MilestoneKind
from .models import (
    DEFAULT_MAX_FREE_REVISIONS,
    SYSTEM_ACTOR,
    Actor,
    Application,
    OutboundKind,
    OutboundMessage,
    PaymentMilestone,
    StatusHistoryEntry,
)
from .next_actions import NextAction, next_actions
from .payments import PaymentGate, follow_up_status, is_satisfied
from .ports import WorkflowStore
from .revisions import RevisionCounter
from .statuses import INITIAL_STATUS, ApplicationStatus
from .validator import Allowed, Denied, TransitionValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition request."""

    application: Application
    entry: Optional[StatusHistoryEntry] = None
    obligations: List[NextAction] = field(default_factory=list)
    noop: bool = False

    @property
    def status(self) -> ApplicationStatus:
        return self.application.status


@dataclass(frozen=True)
class PaymentConfirmation:
    """Outcome of a payment confirmation callback."""

    milestone: Optional[PaymentMilestone]
    application: Optional[Application] = None
    transition: Optional[TransitionResult] = None
    duplicate: bool = False


class WorkflowOrchestrator:
    """
    Façade over the certification workflow.

    Handles:
    - Creating applications in DRAFT
    - Validated, audited status transitions with optimistic concurrency
    - Payment confirmation and the follow-up transition it unlocks
    - History and next-action queries
    """

    def __init__(
        self,
        store: WorkflowStore,
        *,
        validator: Optional[TransitionValidator] = None,
        audit: Optional[AuditTrailWriter] = None,
        payment_gate: Optional[PaymentGate] = None,
        revisions: Optional[RevisionCounter] = None,
        fees: Optional[FeeSchedule] = None,
        default_max_free_revisions: int = DEFAULT_MAX_FREE_REVISIONS,
        payment_due_days: int = 7,
        assessment_lead_days: int = 7,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Storage port
            validator: Transition validator (default: one sharing ``revisions``)
            audit: Audit trail writer (default: backed by ``store``)
            payment_gate: Payment gate (default: backed by ``store``)
            revisions: Revision counter
            fees: Fee schedule for new milestones
            default_max_free_revisions: Free revision quota for new applications
            payment_due_days: Days until a new milestone is due
            assessment_lead_days: Days ahead an assessment is proposed
            clock: Source of "now"
        """
        self.store = store
        self.revisions = revisions or RevisionCounter()
        self.validator = validator or TransitionValidator(self.revisions)
        self.audit = audit or AuditTrailWriter(store)
        self.payment_gate = payment_gate or PaymentGate(store)
        self.fees = fees or FeeSchedule()
        self.default_max_free_revisions = default_max_free_revisions
        self.payment_due_days = payment_due_days
        self.assessment_lead_days = assessment_lead_days
        self.clock = clock

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_application(
        self,
        actor: Actor,
        *,
        applicant_id: Optional[str] = None,
        max_free_revisions: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Application:
        """Create an application in DRAFT and record its creation entry."""
        quota = self.default_max_free_revisions if max_free_revisions is None else max_free_revisions
        if quota < 0:
            raise ValueError("max_free_revisions must be non-negative")

        now = self.clock()
        app = Application(
            id=uuid.uuid4(),
            status=INITIAL_STATUS,
            max_free_revisions=quota,
            applicant_id=applicant_id or actor.id,
            created_at=now,
            updated_at=now,
            extra_data=dict(metadata or {}),
        )
        entry = StatusHistoryEntry(
            application_id=app.id,
            from_status=None,
            to_status=INITIAL_STATUS,
            changed_by=str(actor),
            sequence=app.version,
            reason="Application created",
            changed_at=now,
        )
        with self.store.unit_of_work() as uow:
            uow.add_application(app)
            self.audit.append(uow, entry)

        application_logger(logger, app.id, app.status).info(f"Created by {actor}")
        return app

    def request_transition(
        self,
        application_id: UUID,
        requested_status: Union[ApplicationStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        """
        Move an application to ``requested_status``.

        Returns:
            The committed outcome; ``noop`` is set when nothing was written
            because the application already was in the resulting status.

        Raises:
            ApplicationNotFoundError: Unknown application
            IllegalTransitionError: Edge not in the catalog, or reason missing
            PermissionDeniedError: Actor role may not perform the edge
            PaymentRequiredError: Gating milestone not confirmed
            ConcurrentModificationError: Lost a race, and the request is not
                valid from the state that won it (or lost a second race)
            StorageError: Persistence failed; nothing was committed
        """
        requested = self._coerce_status(requested_status)
        app = self.store.get_application(application_id)
        conflict: Optional[ConcurrentModificationError] = None

        while True:
            log = application_logger(logger, app.id, app.status)
            if app.status == requested:
                log.debug(f"Already {requested.value}; nothing to do")
                return self._noop(app)

            milestones = self.store.list_milestones(app.id)
            decision = self.validator.validate(
                app, requested, actor, milestones=milestones, reason=reason
            )
            if isinstance(decision, Denied):
                if conflict is not None:
                    log.warning(
                        f"{requested.value} no longer allowed after a concurrent change: "
                        f"{decision.reason}"
                    )
                    raise conflict
                log.warning(
                    f"Transition to {requested.value} denied ({decision.code.value}): "
                    f"{decision.reason}"
                )
                raise self._denial_error(decision)

            now = self.clock()
            new_app, new_milestones, messages = self._apply(app, decision, reason, now)
            entry = StatusHistoryEntry(
                application_id=app.id,
                from_status=app.status,
                to_status=decision.target,
                changed_by=str(actor),
                sequence=new_app.version,
                reason=reason,
                metadata=self._entry_metadata(decision, new_app, new_milestones, metadata),
                changed_at=now,
            )

            try:
                with self.store.unit_of_work() as uow:
                    uow.update_application(new_app, expected_version=app.version)
                    for milestone in new_milestones:
                        uow.add_milestone(milestone)
                    self.audit.append(uow, entry)
                    for message in messages:
                        uow.add_message(message)
            except ConcurrentModificationError as e:
                fresh = self.store.get_application(app.id)
                if fresh.status == decision.target:
                    log.info(
                        f"Reached {decision.target.value} concurrently; treating request as duplicate"
                    )
                    return self._noop(fresh)
                if conflict is not None:
                    log.warning(
                        f"Concurrent modification again: expected v{app.version}, "
                        f"found {fresh.status.value} v{fresh.version}"
                    )
                    raise
                # One more validation against the state that won the race
                log.info(
                    f"Concurrent modification: expected v{app.version}, found "
                    f"{fresh.status.value} v{fresh.version}; validating {requested.value} again"
                )
                conflict, app = e, fresh
                continue
            break

        if decision.redirected:
            log.info(
                f"{requested.value} redirected to {decision.target.value} "
                f"(revision {new_app.revision_count_current} past free quota)"
            )
        log.info(f"Moved {app.status.value} -> {decision.target.value} by {actor}")
        obligations = next_actions(new_app, milestones + new_milestones, self.revisions)
        return TransitionResult(new_app, entry, obligations)

    def confirm_payment(
        self,
        milestone_id: UUID,
        confirmed_at: Optional[datetime] = None,
        *,
        reference: Optional[str] = None,
    ) -> PaymentConfirmation:
        """
        Settle a milestone and request the transition it unlocks.

        Duplicate confirmations (unknown or already settled milestones) are
        logged and reported as a no-op. A redelivered confirmation still
        requests the follow-up transition when the application is waiting on
        the milestone, so a follow-up lost after the milestone settled is
        recovered by the gateway's next delivery.
        """
        confirmed_at = confirmed_at or self.clock()
        try:
            milestone, _ = self.payment_gate.confirm(
                milestone_id, confirmed_at, reference=reference
            )
            duplicate = False
        except DuplicatePaymentError as e:
            logger.warning(f"Duplicate payment confirmation: {e.message}")
            if e.milestone is None:
                return PaymentConfirmation(None, duplicate=True)
            milestone, duplicate = e.milestone, True

        application = self.store.get_application(milestone.application_id)
        follow_up = self._pending_follow_up(milestone, application)
        if follow_up is None:
            return PaymentConfirmation(milestone, application, duplicate=duplicate)

        if duplicate:
            application_logger(logger, application.id, application.status).warning(
                f"Milestone {milestone.id} already confirmed; requesting pending {follow_up.value}"
            )
        transition = self.request_transition(
            milestone.application_id,
            follow_up,
            SYSTEM_ACTOR,
            reason=f"{milestone.kind.value} payment confirmed",
            metadata={
                "milestone_id": str(milestone.id),
                "payment_reference": milestone.payment_reference,
            },
        )
        return PaymentConfirmation(milestone, transition.application, transition, duplicate)

    def record_payment_failure(self, milestone_id: UUID, reason: str) -> PaymentMilestone:
        """Record a failed payment attempt; the milestone stays payable."""
        return self.payment_gate.record_failure(milestone_id, reason)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_application(self, application_id: UUID) -> Application:
        return self.store.get_application(application_id)

    def get_history(self, application_id: UUID) -> List[StatusHistoryEntry]:
        """Ordered audit trail of an application."""
        self.store.get_application(application_id)
        return self.audit.history(application_id)

    def list_milestones(self, application_id: UUID) -> List[PaymentMilestone]:
        self.store.get_application(application_id)
        return self.store.list_milestones(application_id)

    def next_actions(self, application_id: UUID) -> List[NextAction]:
        app = self.store.get_application(application_id)
        return next_actions(app, self.store.list_milestones(app.id), self.revisions)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_status(value: Union[ApplicationStatus, str]) -> ApplicationStatus:
        if isinstance(value, ApplicationStatus):
            return value
        try:
            return ApplicationStatus(value)
        except ValueError:
            raise IllegalTransitionError(
                f"Unknown status {value!r}", to_status=str(value), code="unknown_status"
            ) from None

    def _noop(self, app: Application) -> TransitionResult:
        milestones = self.store.list_milestones(app.id)
        return TransitionResult(app, None, next_actions(app, milestones, self.revisions), noop=True)

    def _pending_follow_up(
        self, milestone: PaymentMilestone, application: Application
    ) -> Optional[ApplicationStatus]:
        """Status a confirmed ``milestone`` unlocks, if the application still waits on it."""
        if not milestone.is_confirmed:
            return None
        follow_up = follow_up_status(milestone.kind, application.status)
        if follow_up is None:
            return None
        # An older revision fee does not unlock a newer revision
        if not is_satisfied(self.store.list_milestones(application.id), milestone.kind):
            return None
        return follow_up

    def _denial_error(self, decision: Denied):
        error = decision.to_error()
        if decision.milestone_kind is not None and getattr(error, "amount", None) is None:
            error.amount = self.fees.amount_for(decision.milestone_kind)
        return error

    def _apply(
        self,
        app: Application,
        decision: Allowed,
        reason: Optional[str],
        now: datetime,
    ) -> Tuple[Application, List[PaymentMilestone], List[OutboundMessage]]:
        """Build the new application value, milestones and outbound messages."""
        new_app = replace(app, status=decision.target, version=app.version + 1, updated_at=now)
        milestones: List[PaymentMilestone] = []
        messages: List[OutboundMessage] = []

        for effect in decision.effects:
            if effect.kind == EffectKind.SET_TIMESTAMP:
                if getattr(new_app, effect.field) is None:
                    new_app = replace(new_app, **{effect.field: now})
            elif effect.kind == EffectKind.INCREMENT_REVISION:
                new_app = self.revisions.on_revision_requested(new_app)
            elif effect.kind == EffectKind.CREATE_MILESTONE:
                milestone = self._new_milestone(new_app, effect.milestone_kind, now)
                milestones.append(milestone)
                messages.append(self._message(new_app, OutboundKind.CREATE_PAYMENT_MILESTONE, now, {
                    "milestone_id": str(milestone.id),
                    "milestone_kind": milestone.kind.value,
                    "amount": str(milestone.amount),
                    "currency": milestone.currency,
                    "due_at": milestone.due_at.isoformat(),
                }))
            elif effect.kind == EffectKind.SCHEDULE_ASSESSMENT:
                proposed = now + timedelta(days=self.assessment_lead_days)
                messages.append(self._message(new_app, OutboundKind.SCHEDULE_ASSESSMENT, now, {
                    "mode": effect.assessment_mode.value,
                    "proposed_date": proposed.isoformat(),
                }))
            elif effect.kind == EffectKind.ISSUE_CERTIFICATE:
                messages.append(self._message(new_app, OutboundKind.ISSUE_CERTIFICATE, now, {
                    "applicant_id": new_app.applicant_id,
                }))
            elif effect.kind == EffectKind.NOTIFY_USER:
                messages.append(self._message(new_app, OutboundKind.NOTIFY_USER, now, {
                    "applicant_id": new_app.applicant_id,
                    "from_status": app.status.value,
                    "reason": reason,
                    "revision_count": new_app.revision_count_current,
                }))

        return new_app, milestones, messages

    def _new_milestone(self, app: Application, kind: MilestoneKind, now: datetime) -> PaymentMilestone:
        return PaymentMilestone(
            application_id=app.id,
            kind=kind,
            amount=self.fees.amount_for(kind),
            currency=self.fees.currency,
            due_at=now + timedelta(days=self.payment_due_days),
            sequence=app.version,
            created_at=now,
        )

    @staticmethod
    def _message(
        app: Application, kind: OutboundKind, now: datetime, payload: Dict[str, Any]
    ) -> OutboundMessage:
        body = {"application_id": str(app.id), "status": app.status.value}
        body.update(payload)
        return OutboundMessage(
            application_id=app.id,
            kind=kind,
            status=app.status,
            payload=body,
            created_at=now,
        )

    @staticmethod
    def _entry_metadata(
        decision: Allowed,
        app: Application,
        milestones: List[PaymentMilestone],
        extra: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = dict(extra or {})
        if decision.redirected:
            metadata["requested_status"] = decision.requested.value
        if any(effect.kind == EffectKind.INCREMENT_REVISION for effect in decision.effects):
            metadata["revision_count"] = app.revision_count_current
        if milestones:
            metadata["milestone_ids"] = [str(m.id) for m in milestones]
        return metadata
