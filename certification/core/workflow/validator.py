"""Transition validation.

``TransitionValidator.validate`` is a pure function of its arguments: the
application snapshot, the requested status, the actor, and the milestones
loaded alongside the snapshot. It never touches storage, which keeps it
testable by enumerating the whole table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from .effects import INCREMENT_REVISION, EffectKind, SideEffect, entry_effects
from .errors import (
    IllegalTransitionError,
    PaymentRequiredError,
    PermissionDeniedError,
    WorkflowError,
)
from .milestones import MILESTONE_TITLES, MilestoneKind
from .models import Actor, Application, PaymentMilestone
from .payments import is_satisfied, needs_new_milestone, outstanding_milestone
from .revisions import RevisionCounter
from .statuses import (
    ActorRole,
    ApplicationStatus,
    TransitionRule,
    get_transition_rule,
)


class DenialCode(str, Enum):
    ILLEGAL_TRANSITION = "illegal_transition"
    PERMISSION_DENIED = "permission_denied"
    REASON_REQUIRED = "reason_required"
    PAYMENT_REQUIRED = "payment_required"


@dataclass(frozen=True)
class Allowed:
    """The transition may commit, to ``target``, with ``effects``."""

    requested: ApplicationStatus
    target: ApplicationStatus
    effects: Tuple[SideEffect, ...]
    redirected: bool = False

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """The transition is rejected; nothing is written."""

    code: DenialCode
    reason: str
    from_status: ApplicationStatus
    requested: ApplicationStatus
    milestone_kind: Optional[MilestoneKind] = None
    milestone: Optional[PaymentMilestone] = None
    role: Optional[ActorRole] = None

    @property
    def allowed(self) -> bool:
        return False

    def to_error(self) -> WorkflowError:
        """Error raised to the caller for this denial."""
        if self.code == DenialCode.PERMISSION_DENIED:
            return PermissionDeniedError(self.reason, role=self.role.value if self.role else None)
        if self.code == DenialCode.PAYMENT_REQUIRED:
            return PaymentRequiredError(
                self.reason,
                self.milestone_kind.value,
                amount=self.milestone.amount if self.milestone else None,
                milestone_id=self.milestone.id if self.milestone else None,
            )
        return IllegalTransitionError(
            self.reason,
            self.from_status.value,
            self.requested.value,
            code=self.code.value,
        )


Decision = Union[Allowed, Denied]


class TransitionValidator:
    """
    Decides whether a requested status change may commit.

    Order of checks:
    1. The edge exists in the catalog.
    2. The actor's role may perform it.
    3. A reason is present when the edge needs one.
    4. Revision edges are routed by the revision quota.
    5. Payment-gated edges need their milestone confirmed.
    """

    def __init__(self, revisions: Optional[RevisionCounter] = None):
        self.revisions = revisions or RevisionCounter()

    def validate(
        self,
        app: Application,
        requested: ApplicationStatus,
        actor: Actor,
        *,
        milestones: Iterable[PaymentMilestone] = (),
        reason: Optional[str] = None,
    ) -> Decision:
        milestones = list(milestones)
        current = app.status

        rule = get_transition_rule(current, requested)
        if rule is None:
            return Denied(
                DenialCode.ILLEGAL_TRANSITION,
                f"Cannot move from {current.value} to {requested.value}",
                current,
                requested,
            )

        if not self._role_allowed(rule, actor):
            return Denied(
                DenialCode.PERMISSION_DENIED,
                f"Role {actor.role.value} may not move from {current.value} to {requested.value}",
                current,
                requested,
                role=actor.role,
            )

        if rule.requires_reason and not (reason and reason.strip()):
            return Denied(
                DenialCode.REASON_REQUIRED,
                f"Moving to {requested.value} requires a reason",
                current,
                requested,
            )

        target = requested
        effects: Tuple[SideEffect, ...] = ()
        if rule.revision_edge:
            target = self.revisions.revision_target(app)
            effects += (INCREMENT_REVISION,)

        kind = rule.payment if target == requested else get_transition_rule(current, target).payment
        if kind is not None and not is_satisfied(milestones, kind):
            return Denied(
                DenialCode.PAYMENT_REQUIRED,
                f"Pay the {MILESTONE_TITLES[kind]} to continue",
                current,
                requested,
                milestone_kind=kind,
                milestone=outstanding_milestone(milestones, kind),
            )

        effects += tuple(
            effect
            for effect in entry_effects(target)
            if effect.kind != EffectKind.CREATE_MILESTONE
            or needs_new_milestone(milestones, effect.milestone_kind)
        )
        return Allowed(requested, target, effects, redirected=target != requested)

    @staticmethod
    def _role_allowed(rule: TransitionRule, actor: Actor) -> bool:
        return actor.role == ActorRole.ADMIN or actor.role in rule.roles
