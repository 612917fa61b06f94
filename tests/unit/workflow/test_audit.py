"""Tests for the audit trail writer and history immutability."""

import uuid
from datetime import datetime

import pytest

from certification.core.workflow.audit import AuditTrailWriter
from certification.core.workflow.errors import StorageError
from certification.core.workflow.models import StatusHistoryEntry
from certification.core.workflow.statuses import ApplicationStatus
from certification.db.models import StatusHistoryRecord

S = ApplicationStatus


class RecordingUnitOfWork:
    def __init__(self, fail_with=None):
        self.entries = []
        self.fail_with = fail_with

    def add_history(self, entry):
        if self.fail_with:
            raise self.fail_with
        self.entries.append(entry)


def entry(from_status, to_status, sequence=2):
    return StatusHistoryEntry(
        application_id=uuid.uuid4(),
        from_status=from_status,
        to_status=to_status,
        changed_by="applicant:farmer-1",
        sequence=sequence,
        changed_at=datetime(2026, 1, 5, 9, 0),
    )


class TestAuditTrailWriter:

    @pytest.fixture
    def writer(self, store):
        return AuditTrailWriter(store)

    def test_append_valid_edge(self, writer):
        uow = RecordingUnitOfWork()
        writer.append(uow, entry(S.DRAFT, S.SUBMITTED))
        assert len(uow.entries) == 1

    def test_append_creation_entry(self, writer):
        uow = RecordingUnitOfWork()
        writer.append(uow, entry(None, S.DRAFT, sequence=1))
        assert uow.entries[0].from_status is None

    def test_reject_entry_off_the_table(self, writer):
        with pytest.raises(ValueError):
            writer.append(RecordingUnitOfWork(), entry(S.DRAFT, S.CERTIFIED))

    def test_reject_creation_entry_not_at_draft(self, writer):
        with pytest.raises(ValueError):
            writer.append(RecordingUnitOfWork(), entry(None, S.SUBMITTED))

    def test_write_failure_becomes_storage_error(self, writer):
        uow = RecordingUnitOfWork(fail_with=OSError("disk full"))
        with pytest.raises(StorageError) as exc_info:
            writer.append(uow, entry(S.DRAFT, S.SUBMITTED))
        assert "disk full" in exc_info.value.message

    def test_storage_error_passes_through(self, writer):
        uow = RecordingUnitOfWork(fail_with=StorageError("constraint"))
        with pytest.raises(StorageError, match="constraint"):
            writer.append(uow, entry(S.DRAFT, S.SUBMITTED))


@pytest.mark.db
class TestHistoryImmutability:

    @pytest.fixture
    def history_record(self, orchestrator, applicant, db_session):
        app = orchestrator.create_application(applicant)
        return db_session.query(StatusHistoryRecord).filter_by(application_id=app.id).one()

    def test_update_rejected(self, history_record, db_session):
        history_record.reason = "rewritten"
        with pytest.raises(StorageError, match="immutable"):
            db_session.flush()
        db_session.rollback()

    def test_delete_rejected(self, history_record, db_session):
        db_session.delete(history_record)
        with pytest.raises(StorageError, match="immutable"):
            db_session.flush()
        db_session.rollback()

    def test_duplicate_sequence_rejected(self, orchestrator, applicant, store):
        app = orchestrator.create_application(applicant)
        with pytest.raises(StorageError):
            with store.unit_of_work() as uow:
                uow.add_history(StatusHistoryEntry(
                    application_id=app.id,
                    from_status=None,
                    to_status=S.DRAFT,
                    changed_by="admin:admin-1",
                    sequence=1,
                ))
        assert len(store.list_history(app.id)) == 1
