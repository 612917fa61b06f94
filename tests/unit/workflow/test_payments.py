"""Tests for payment milestones and the payment gate."""

from datetime import datetime
from decimal import Decimal

import pytest

from certification.core.workflow.errors import DuplicatePaymentError, MilestoneNotFoundError
from certification.core.workflow.milestones import (
    DEFAULT_FEES,
    FeeSchedule,
    MilestoneKind,
    MilestoneStatus,
)
from certification.core.workflow.payments import (
    PaymentGate,
    follow_up_status,
    is_satisfied,
    latest_milestone,
    needs_new_milestone,
    outstanding_milestone,
)
from certification.core.workflow.statuses import ApplicationStatus

from tests.factories import create_application, create_milestone, make_application, make_milestone

S = ApplicationStatus
PAID_AT = datetime(2026, 2, 1, 10, 30)


class TestFeeSchedule:

    def test_default_fees(self):
        fees = FeeSchedule()
        assert fees.amount_for(MilestoneKind.DOCUMENT_REVIEW) == Decimal("5000")
        assert fees.amount_for(MilestoneKind.ASSESSMENT) == Decimal("25000")
        assert fees.amount_for(MilestoneKind.CERTIFICATE_ISSUANCE) == Decimal("2000")
        assert fees.amount_for(MilestoneKind.REVISION) == Decimal("5000")
        assert fees.currency == "THB"

    def test_overrides(self):
        fees = FeeSchedule.from_mapping({"assessment": 30000, "REVISION": "4500.50"}, currency="USD")
        assert fees.amount_for(MilestoneKind.ASSESSMENT) == Decimal("30000")
        assert fees.amount_for(MilestoneKind.REVISION) == Decimal("4500.50")
        assert fees.amount_for(MilestoneKind.DOCUMENT_REVIEW) == DEFAULT_FEES[MilestoneKind.DOCUMENT_REVIEW]
        assert fees.currency == "USD"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            FeeSchedule.from_mapping({"PARKING": 10})

    def test_amounts_use_two_decimal_places(self):
        fees = FeeSchedule.from_mapping({"ASSESSMENT": 30000, "REVISION": "4500.5"})
        assert str(fees.amount_for(MilestoneKind.ASSESSMENT)) == "30000.00"
        assert str(fees.amount_for(MilestoneKind.REVISION)) == "4500.50"
        assert str(FeeSchedule().amount_for(MilestoneKind.DOCUMENT_REVIEW)) == "5000.00"


class TestMilestoneHelpers:

    def test_one_shot_kind_satisfied_by_any_confirmation(self):
        app = make_application()
        milestones = [
            make_milestone(app, MilestoneKind.ASSESSMENT, MilestoneStatus.CONFIRMED, sequence=1),
            make_milestone(app, MilestoneKind.ASSESSMENT, MilestoneStatus.FAILED, sequence=2),
        ]
        assert is_satisfied(milestones, MilestoneKind.ASSESSMENT)

    def test_repeatable_kind_needs_latest_confirmed(self):
        app = make_application()
        milestones = [
            make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.CONFIRMED, sequence=1),
            make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.PENDING, sequence=2),
        ]
        assert not is_satisfied(milestones, MilestoneKind.REVISION)

    def test_nothing_satisfies_empty_list(self):
        for kind in MilestoneKind:
            assert not is_satisfied([], kind)

    def test_latest_and_outstanding(self):
        app = make_application()
        first = make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.CONFIRMED, sequence=4)
        second = make_milestone(app, MilestoneKind.REVISION, MilestoneStatus.FAILED, sequence=8)
        assert latest_milestone([second, first], MilestoneKind.REVISION) == second
        assert outstanding_milestone([second, first], MilestoneKind.REVISION) == second
        assert outstanding_milestone([first], MilestoneKind.REVISION) is None

    def test_needs_new_milestone(self):
        app = make_application()
        pending = make_milestone(app, MilestoneKind.DOCUMENT_REVIEW)
        failed = make_milestone(app, MilestoneKind.DOCUMENT_REVIEW, MilestoneStatus.CANCELLED)
        assert needs_new_milestone([], MilestoneKind.DOCUMENT_REVIEW)
        assert not needs_new_milestone([pending], MilestoneKind.DOCUMENT_REVIEW)
        assert needs_new_milestone([failed], MilestoneKind.DOCUMENT_REVIEW)
        # Revision fees are charged per revision
        assert needs_new_milestone([make_milestone(app, MilestoneKind.REVISION)], MilestoneKind.REVISION)

    @pytest.mark.parametrize("kind,current,expected", [
        (MilestoneKind.DOCUMENT_REVIEW, S.PAYMENT_PENDING_REVIEW, S.UNDER_REVIEW),
        (MilestoneKind.ASSESSMENT, S.PAYMENT_PENDING_ASSESSMENT, S.PAYMENT_CONFIRMED_ASSESSMENT),
        (MilestoneKind.REVISION, S.REJECTED_PAYMENT_REQUIRED, S.REVISION_REQUESTED),
        (MilestoneKind.CERTIFICATE_ISSUANCE, S.ONSITE_ASSESSMENT_COMPLETED, S.CERTIFIED),
        (MilestoneKind.DOCUMENT_REVIEW, S.SUBMITTED, None),
        (MilestoneKind.ASSESSMENT, S.CANCELLED, None),
    ])
    def test_follow_up_status(self, kind, current, expected):
        assert follow_up_status(kind, current) == expected


@pytest.mark.db
class TestPaymentGate:

    @pytest.fixture
    def gate(self, store):
        return PaymentGate(store)

    def test_has_confirmed_milestone(self, gate, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_REVIEW)
        create_milestone(db_session, app, kind=MilestoneKind.DOCUMENT_REVIEW)
        create_milestone(db_session, app, kind=MilestoneKind.ASSESSMENT, status=MilestoneStatus.CONFIRMED)
        db_session.commit()

        assert not gate.has_confirmed_milestone(app.id, MilestoneKind.DOCUMENT_REVIEW)
        assert gate.has_confirmed_milestone(app.id, MilestoneKind.ASSESSMENT)

    def test_confirm_returns_follow_up(self, gate, store, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_REVIEW)
        milestone = create_milestone(db_session, app, kind=MilestoneKind.DOCUMENT_REVIEW)
        db_session.commit()

        confirmed, follow_up = gate.confirm(milestone.id, PAID_AT, reference="PAY-001")

        assert confirmed.status == MilestoneStatus.CONFIRMED
        assert confirmed.paid_at == PAID_AT
        assert confirmed.payment_reference == "PAY-001"
        assert follow_up == S.UNDER_REVIEW
        assert store.get_milestone(milestone.id).status == MilestoneStatus.CONFIRMED

    def test_confirm_without_waiting_application(self, gate, db_session):
        """Paid early: the milestone settles but no transition is requested."""
        app = create_application(db_session, status=S.SUBMITTED)
        milestone = create_milestone(db_session, app, kind=MilestoneKind.DOCUMENT_REVIEW)
        db_session.commit()

        _, follow_up = gate.confirm(milestone.id, PAID_AT)
        assert follow_up is None

    def test_stored_amount_matches_fee_schedule(self, gate, store, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_REVIEW)
        milestone = create_milestone(db_session, app, amount=Decimal("5000"))
        db_session.commit()

        loaded = store.get_milestone(milestone.id)
        assert str(loaded.amount) == "5000.00"
        assert str(loaded.amount) == str(FeeSchedule().amount_for(MilestoneKind.DOCUMENT_REVIEW))

    def test_confirm_twice_is_duplicate(self, gate, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_REVIEW)
        milestone = create_milestone(db_session, app)
        db_session.commit()

        gate.confirm(milestone.id, PAID_AT)
        with pytest.raises(DuplicatePaymentError) as exc_info:
            gate.confirm(milestone.id, PAID_AT)
        assert exc_info.value.milestone.status == MilestoneStatus.CONFIRMED

    def test_confirm_unknown_is_duplicate(self, gate):
        import uuid

        with pytest.raises(DuplicatePaymentError) as exc_info:
            gate.confirm(uuid.uuid4(), PAID_AT)
        assert exc_info.value.milestone is None

    def test_failed_milestone_can_still_be_confirmed(self, gate, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_ASSESSMENT)
        milestone = create_milestone(db_session, app, kind=MilestoneKind.ASSESSMENT)
        db_session.commit()

        failed = gate.record_failure(milestone.id, "card declined")
        assert failed.status == MilestoneStatus.FAILED
        assert failed.failure_reason == "card declined"

        confirmed, follow_up = gate.confirm(milestone.id, PAID_AT)
        assert confirmed.status == MilestoneStatus.CONFIRMED
        assert confirmed.failure_reason is None
        assert follow_up == S.PAYMENT_CONFIRMED_ASSESSMENT

    def test_record_failure_on_confirmed_is_rejected(self, gate, db_session):
        app = create_application(db_session, status=S.PAYMENT_PENDING_REVIEW)
        milestone = create_milestone(db_session, app, status=MilestoneStatus.CONFIRMED)
        db_session.commit()

        with pytest.raises(DuplicatePaymentError):
            gate.record_failure(milestone.id, "late decline")

    def test_record_failure_unknown(self, gate):
        import uuid

        milestone_id = uuid.uuid4()
        with pytest.raises(MilestoneNotFoundError) as exc_info:
            gate.record_failure(milestone_id, "declined")
        assert exc_info.value.code == "not_found"
        assert exc_info.value.milestone_id == milestone_id
