"""Tests for transition validation."""

import itertools

import pytest

from certification.core.workflow.effects import EffectKind
from certification.core.workflow.errors import (
    IllegalTransitionError,
    PaymentRequiredError,
    PermissionDeniedError,
)
from certification.core.workflow.milestones import MilestoneKind, MilestoneStatus
from certification.core.workflow.models import Actor
from certification.core.workflow.statuses import (
    ActorRole,
    ApplicationStatus,
    can_transition,
    get_transition_rule,
)
from certification.core.workflow.validator import Allowed, Denied, DenialCode, TransitionValidator

from tests.factories import make_application, make_milestone

S = ApplicationStatus
ADMIN = Actor(id="admin", role=ActorRole.ADMIN)


@pytest.fixture
def validator():
    return TransitionValidator()


def confirmed_milestones(app):
    """A confirmed milestone of every kind."""
    return [make_milestone(app, kind, MilestoneStatus.CONFIRMED) for kind in MilestoneKind]


def effect_kinds(decision):
    return [effect.kind for effect in decision.effects]


class TestIllegalTransitions:

    def test_draft_to_under_review_denied(self, validator, applicant):
        app = make_application(S.DRAFT)
        decision = validator.validate(app, S.UNDER_REVIEW, applicant)

        assert isinstance(decision, Denied)
        assert decision.code == DenialCode.ILLEGAL_TRANSITION
        assert not decision.allowed

    def test_every_pair_outside_the_table_is_denied(self, validator):
        """Admin with every fee paid still cannot leave the table."""
        for from_status, to_status in itertools.product(ApplicationStatus, repeat=2):
            app = make_application(from_status)
            decision = validator.validate(
                app, to_status, ADMIN,
                milestones=confirmed_milestones(app),
                reason="because",
            )
            if can_transition(from_status, to_status):
                assert isinstance(decision, Allowed), (from_status, to_status)
            else:
                assert isinstance(decision, Denied), (from_status, to_status)
                assert decision.code == DenialCode.ILLEGAL_TRANSITION

    def test_denial_converts_to_error(self, validator, applicant):
        decision = validator.validate(make_application(S.DRAFT), S.CERTIFIED, applicant)
        error = decision.to_error()
        assert isinstance(error, IllegalTransitionError)
        assert error.code == "illegal_transition"
        assert error.from_status == "DRAFT"
        assert error.to_status == "CERTIFIED"


class TestPermissions:

    def test_reviewer_cannot_submit(self, validator, reviewer):
        decision = validator.validate(make_application(S.DRAFT), S.SUBMITTED, reviewer)
        assert decision.code == DenialCode.PERMISSION_DENIED
        error = decision.to_error()
        assert isinstance(error, PermissionDeniedError)
        assert error.role == "reviewer"
        assert error.to_dict()["role"] == "reviewer"

    def test_applicant_cannot_approve_review(self, validator, applicant):
        decision = validator.validate(make_application(S.UNDER_REVIEW), S.REVIEW_APPROVED, applicant)
        assert decision.code == DenialCode.PERMISSION_DENIED

    def test_admin_may_perform_any_edge(self, validator):
        app = make_application(S.UNDER_REVIEW)
        assert validator.validate(app, S.REVIEW_APPROVED, ADMIN).allowed

    def test_permission_checked_before_payment(self, validator, applicant):
        app = make_application(S.ONSITE_ASSESSMENT_COMPLETED)
        decision = validator.validate(app, S.CERTIFIED, applicant)
        assert decision.code == DenialCode.PERMISSION_DENIED


class TestReasons:

    def test_rejection_requires_reason(self, validator, reviewer):
        decision = validator.validate(make_application(S.UNDER_REVIEW), S.REJECTED, reviewer)
        assert decision.code == DenialCode.REASON_REQUIRED
        assert decision.to_error().code == "reason_required"

    def test_blank_reason_rejected(self, validator, reviewer):
        decision = validator.validate(
            make_application(S.UNDER_REVIEW), S.REVISION_REQUESTED, reviewer, reason="   "
        )
        assert decision.code == DenialCode.REASON_REQUIRED

    def test_reason_not_needed_for_ordinary_edge(self, validator, applicant):
        assert validator.validate(make_application(S.DRAFT), S.SUBMITTED, applicant).allowed


class TestRevisionRouting:

    def test_free_revision_allowed(self, validator, reviewer):
        app = make_application(S.UNDER_REVIEW, revision_count_current=1)
        decision = validator.validate(app, S.REVISION_REQUESTED, reviewer, reason="Fix map")

        assert isinstance(decision, Allowed)
        assert decision.target == S.REVISION_REQUESTED
        assert not decision.redirected
        assert EffectKind.INCREMENT_REVISION in effect_kinds(decision)
        assert EffectKind.CREATE_MILESTONE not in effect_kinds(decision)

    def test_revision_past_quota_redirected(self, validator, reviewer):
        app = make_application(S.UNDER_REVIEW, revision_count_current=2)
        decision = validator.validate(app, S.REVISION_REQUESTED, reviewer, reason="Fix map")

        assert isinstance(decision, Allowed)
        assert decision.requested == S.REVISION_REQUESTED
        assert decision.target == S.REJECTED_PAYMENT_REQUIRED
        assert decision.redirected
        milestone_effects = [e for e in decision.effects if e.kind == EffectKind.CREATE_MILESTONE]
        assert [e.milestone_kind for e in milestone_effects] == [MilestoneKind.REVISION]
        assert EffectKind.INCREMENT_REVISION in effect_kinds(decision)

    def test_explicit_paid_revision_while_free_goes_to_free_edge(self, validator, reviewer):
        app = make_application(S.UNDER_REVIEW, revision_count_current=0)
        decision = validator.validate(app, S.REJECTED_PAYMENT_REQUIRED, reviewer, reason="Fix map")
        assert decision.target == S.REVISION_REQUESTED
        assert decision.redirected

    def test_paid_revision_needs_latest_revision_milestone(self, validator, system):
        app = make_application(S.REJECTED_PAYMENT_REQUIRED, revision_count_current=4)
        old = make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.CONFIRMED, sequence=3)
        new = make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.PENDING, sequence=9)

        decision = validator.validate(app, S.REVISION_REQUESTED, system, milestones=[old, new])
        assert decision.code == DenialCode.PAYMENT_REQUIRED
        assert decision.milestone == new

        paid = make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.CONFIRMED, sequence=9)
        assert validator.validate(app, S.REVISION_REQUESTED, system, milestones=[old, paid]).allowed


class TestPaymentGating:

    def test_certified_requires_issuance_fee(self, validator, system):
        app = make_application(S.ONSITE_ASSESSMENT_COMPLETED)
        pending = make_milestone(app, MilestoneKind.CERTIFICATE_ISSUANCE)

        decision = validator.validate(app, S.CERTIFIED, system, milestones=[pending])

        assert decision.code == DenialCode.PAYMENT_REQUIRED
        assert decision.milestone_kind == MilestoneKind.CERTIFICATE_ISSUANCE
        assert decision.reason == "Pay the certificate issuance fee to continue"
        error = decision.to_error()
        assert isinstance(error, PaymentRequiredError)
        assert error.milestone_id == pending.id
        assert error.to_dict()["milestone_kind"] == "CERTIFICATE_ISSUANCE"

    def test_certified_allowed_once_paid(self, validator, system):
        app = make_application(S.ONSITE_ASSESSMENT_COMPLETED)
        paid = make_milestone(app, MilestoneKind.CERTIFICATE_ISSUANCE, MilestoneStatus.CONFIRMED)

        decision = validator.validate(app, S.CERTIFIED, system, milestones=[paid])

        assert decision.allowed
        assert EffectKind.ISSUE_CERTIFICATE in effect_kinds(decision)

    def test_failed_milestone_does_not_satisfy_gate(self, validator, system):
        app = make_application(S.PAYMENT_PENDING_ASSESSMENT)
        failed = make_milestone(app, MilestoneKind.ASSESSMENT, MilestoneStatus.FAILED)
        decision = validator.validate(app, S.PAYMENT_CONFIRMED_ASSESSMENT, system, milestones=[failed])
        assert decision.code == DenialCode.PAYMENT_REQUIRED

    def test_milestone_of_other_kind_does_not_satisfy_gate(self, validator, system):
        app = make_application(S.PAYMENT_PENDING_ASSESSMENT)
        other = make_milestone(app, MilestoneKind.DOCUMENT_REVIEW, MilestoneStatus.CONFIRMED)
        decision = validator.validate(app, S.PAYMENT_CONFIRMED_ASSESSMENT, system, milestones=[other])
        assert decision.code == DenialCode.PAYMENT_REQUIRED

    def test_gated_edges_never_allowed_without_confirmation(self, validator):
        """Table-driven: every gated edge is denied without a confirmed milestone."""
        for from_status, to_status in itertools.product(ApplicationStatus, repeat=2):
            rule = get_transition_rule(from_status, to_status)
            if rule is None or rule.payment is None:
                continue
            app = make_application(from_status)
            pending = [make_milestone(app, kind) for kind in MilestoneKind]
            decision = validator.validate(app, to_status, ADMIN, milestones=pending, reason="r")
            assert decision.code == DenialCode.PAYMENT_REQUIRED, (from_status, to_status)


class TestSideEffects:

    def test_submission_stamps_submitted_at(self, validator, applicant):
        decision = validator.validate(make_application(S.DRAFT), S.SUBMITTED, applicant)
        stamps = [e.field for e in decision.effects if e.kind == EffectKind.SET_TIMESTAMP]
        assert stamps == ["submitted_at"]

    def test_every_allowed_transition_notifies(self, validator, applicant):
        decision = validator.validate(make_application(S.DRAFT), S.SUBMITTED, applicant)
        assert effect_kinds(decision)[-1] == EffectKind.NOTIFY_USER

    def test_payment_pending_review_creates_milestone(self, validator, system):
        decision = validator.validate(make_application(S.SUBMITTED), S.PAYMENT_PENDING_REVIEW, system)
        milestones = [e.milestone_kind for e in decision.effects if e.kind == EffectKind.CREATE_MILESTONE]
        assert milestones == [MilestoneKind.DOCUMENT_REVIEW]

    def test_existing_review_milestone_not_raised_again(self, validator, system):
        app = make_application(S.SUBMITTED)
        paid = make_milestone(app, MilestoneKind.DOCUMENT_REVIEW, MilestoneStatus.CONFIRMED)
        decision = validator.validate(app, S.PAYMENT_PENDING_REVIEW, system, milestones=[paid])
        assert EffectKind.CREATE_MILESTONE not in effect_kinds(decision)

    def test_assessment_paid_schedules_online_assessment(self, validator, system):
        app = make_application(S.PAYMENT_PENDING_ASSESSMENT)
        paid = make_milestone(app, MilestoneKind.ASSESSMENT, MilestoneStatus.CONFIRMED)
        decision = validator.validate(app, S.PAYMENT_CONFIRMED_ASSESSMENT, system, milestones=[paid])
        scheduling = [e for e in decision.effects if e.kind == EffectKind.SCHEDULE_ASSESSMENT]
        assert [e.assessment_mode.value for e in scheduling] == ["online"]

    def test_only_certified_issues_certificate(self, validator):
        for from_status, to_status in itertools.product(ApplicationStatus, repeat=2):
            if not can_transition(from_status, to_status):
                continue
            app = make_application(from_status)
            decision = validator.validate(
                app, to_status, ADMIN, milestones=confirmed_milestones(app), reason="r"
            )
            issues = EffectKind.ISSUE_CERTIFICATE in effect_kinds(decision)
            assert issues == (decision.target == S.CERTIFIED), (from_status, to_status)

    def test_validate_is_pure(self, validator, reviewer):
        app = make_application(S.UNDER_REVIEW, revision_count_current=2)
        milestones = []
        first = validator.validate(app, S.REVISION_REQUESTED, reviewer, milestones=milestones, reason="r")
        second = validator.validate(app, S.REVISION_REQUESTED, reviewer, milestones=milestones, reason="r")
        assert first == second
        assert app.revision_count_current == 2
        assert milestones == []
