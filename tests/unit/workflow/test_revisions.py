"""Tests for the revision quota."""

import pytest

from certification.core.workflow.revisions import RevisionCounter
from certification.core.workflow.statuses import ApplicationStatus

from tests.factories import make_application


@pytest.fixture
def counter():
    return RevisionCounter()


class TestRevisionCounter:

    @pytest.mark.parametrize("count,free", [(0, True), (1, True), (2, False), (3, False)])
    def test_is_free_revision_with_default_quota(self, counter, count, free):
        """With a quota of two, the first and second revisions are free."""
        app = make_application(revision_count_current=count, max_free_revisions=2)
        assert counter.is_free_revision(app) is free

    def test_zero_quota_charges_first_revision(self, counter):
        app = make_application(max_free_revisions=0)
        assert not counter.is_free_revision(app)
        assert counter.revision_target(app) == ApplicationStatus.REJECTED_PAYMENT_REQUIRED

    def test_on_revision_requested_increments_by_one(self, counter):
        app = make_application(revision_count_current=1)
        updated = counter.on_revision_requested(app)
        assert updated.revision_count_current == 2
        assert app.revision_count_current == 1  # original untouched

    def test_on_revision_requested_keeps_other_fields(self, counter):
        app = make_application(status=ApplicationStatus.UNDER_REVIEW, version=4)
        updated = counter.on_revision_requested(app)
        assert updated.status == app.status
        assert updated.version == app.version
        assert updated.id == app.id

    def test_remaining_free_revisions(self, counter):
        assert counter.remaining_free_revisions(make_application(revision_count_current=0)) == 2
        assert counter.remaining_free_revisions(make_application(revision_count_current=2)) == 0
        assert counter.remaining_free_revisions(make_application(revision_count_current=5)) == 0

    def test_revision_target(self, counter):
        assert counter.revision_target(
            make_application(revision_count_current=1)
        ) == ApplicationStatus.REVISION_REQUESTED
        assert counter.revision_target(
            make_application(revision_count_current=2)
        ) == ApplicationStatus.REJECTED_PAYMENT_REQUIRED
