"""SQLAlchemy implementation of the workflow storage port."""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from certification.core.workflow.errors import (
    ApplicationNotFoundError,
    ConcurrentModificationError,
    StorageError,
    WorkflowError,
)
from certification.core.workflow.milestones import MilestoneKind, MilestoneStatus, to_amount
from certification.core.workflow.models import (
    Application,
    DeliveryStatus,
    OutboundKind,
    OutboundMessage,
    PaymentMilestone,
    StatusHistoryEntry,
)
from certification.core.workflow.statuses import ApplicationStatus
from certification.db.models import (
    ApplicationRecord,
    OutboundMessageRecord,
    PaymentMilestoneRecord,
    StatusHistoryRecord,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Record <-> domain conversion
# ----------------------------------------------------------------------

def to_application(record: ApplicationRecord) -> Application:
    return Application(
        id=record.id,
        status=ApplicationStatus(record.status),
        revision_count_current=record.revision_count_current,
        max_free_revisions=record.max_free_revisions,
        version=record.version,
        applicant_id=record.applicant_id,
        submitted_at=record.submitted_at,
        reviewed_at=record.reviewed_at,
        assessment_scheduled_at=record.assessment_scheduled_at,
        assessment_completed_at=record.assessment_completed_at,
        approved_at=record.approved_at,
        rejected_at=record.rejected_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
        extra_data=dict(record.extra_data or {}),
    )


def _application_values(app: Application) -> dict:
    return {
        "status": app.status.value,
        "version": app.version,
        "revision_count_current": app.revision_count_current,
        "max_free_revisions": app.max_free_revisions,
        "applicant_id": app.applicant_id,
        "submitted_at": app.submitted_at,
        "reviewed_at": app.reviewed_at,
        "assessment_scheduled_at": app.assessment_scheduled_at,
        "assessment_completed_at": app.assessment_completed_at,
        "approved_at": app.approved_at,
        "rejected_at": app.rejected_at,
        "updated_at": app.updated_at,
        "extra_data": dict(app.extra_data),
    }


def to_history_entry(record: StatusHistoryRecord) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        id=record.id,
        application_id=record.application_id,
        from_status=ApplicationStatus(record.from_status) if record.from_status else None,
        to_status=ApplicationStatus(record.to_status),
        changed_by=record.changed_by,
        sequence=record.sequence,
        reason=record.reason,
        metadata=dict(record.extra_data or {}),
        changed_at=record.changed_at,
    )


def to_milestone(record: PaymentMilestoneRecord) -> PaymentMilestone:
    return PaymentMilestone(
        id=record.id,
        application_id=record.application_id,
        kind=MilestoneKind(record.kind),
        amount=to_amount(record.amount),
        currency=record.currency,
        status=MilestoneStatus(record.status),
        due_at=record.due_at,
        paid_at=record.paid_at,
        payment_reference=record.payment_reference,
        failure_reason=record.failure_reason,
        sequence=record.sequence,
        created_at=record.created_at,
    )


def _milestone_values(milestone: PaymentMilestone) -> dict:
    return {
        "status": milestone.status.value,
        "paid_at": milestone.paid_at,
        "payment_reference": milestone.payment_reference,
        "failure_reason": milestone.failure_reason,
        "due_at": milestone.due_at,
    }


def to_message(record: OutboundMessageRecord) -> OutboundMessage:
    return OutboundMessage(
        id=record.id,
        application_id=record.application_id,
        kind=OutboundKind(record.kind),
        status=ApplicationStatus(record.status),
        payload=dict(record.payload or {}),
        delivery_status=DeliveryStatus(record.delivery_status),
        attempts=record.attempts,
        last_error=record.last_error,
        created_at=record.created_at,
        delivered_at=record.delivered_at,
    )


# ----------------------------------------------------------------------
# Unit of work
# ----------------------------------------------------------------------

class SqlUnitOfWork:
    """Writes staged on one session; committed by ``SqlWorkflowStore.unit_of_work``."""

    def __init__(self, session: Session):
        self.session = session

    def add_application(self, app: Application) -> None:
        self.session.add(ApplicationRecord(
            id=app.id,
            created_at=app.created_at,
            **_application_values(app),
        ))

    def update_application(self, app: Application, expected_version: int) -> None:
        result = self.session.execute(
            update(ApplicationRecord)
            .where(ApplicationRecord.id == app.id)
            .where(ApplicationRecord.version == expected_version)
            .values(**_application_values(app))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationError(app.id, expected_version)

    def add_history(self, entry: StatusHistoryEntry) -> None:
        self.session.add(StatusHistoryRecord(
            id=entry.id,
            application_id=entry.application_id,
            sequence=entry.sequence,
            from_status=entry.from_status.value if entry.from_status else None,
            to_status=entry.to_status.value,
            changed_by=entry.changed_by,
            reason=entry.reason,
            extra_data=dict(entry.metadata),
            changed_at=entry.changed_at,
        ))

    def add_milestone(self, milestone: PaymentMilestone) -> None:
        self.session.add(PaymentMilestoneRecord(
            id=milestone.id,
            application_id=milestone.application_id,
            kind=milestone.kind.value,
            amount=milestone.amount,
            currency=milestone.currency,
            sequence=milestone.sequence,
            created_at=milestone.created_at,
            **_milestone_values(milestone),
        ))

    def update_milestone(self, milestone: PaymentMilestone, expected_status: MilestoneStatus) -> bool:
        result = self.session.execute(
            update(PaymentMilestoneRecord)
            .where(PaymentMilestoneRecord.id == milestone.id)
            .where(PaymentMilestoneRecord.status == expected_status.value)
            .values(**_milestone_values(milestone))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_message(self, message: OutboundMessage) -> None:
        self.session.add(OutboundMessageRecord(
            id=message.id,
            application_id=message.application_id,
            kind=message.kind.value,
            status=message.status.value,
            payload=dict(message.payload),
            delivery_status=message.delivery_status.value,
            attempts=message.attempts,
            last_error=message.last_error,
            created_at=message.created_at,
            delivered_at=message.delivered_at,
        ))


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------

class SqlWorkflowStore:
    """
    Workflow store backed by a SQLAlchemy session factory.

    Each read opens a short-lived session; each unit of work is one
    transaction that commits on success and rolls back on any error.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Database read failed: {e}")
            raise StorageError(f"Database read failed: {e}") from e
        finally:
            session.close()

    @contextmanager
    def unit_of_work(self) -> Iterator[SqlUnitOfWork]:
        session = self.session_factory()
        try:
            yield SqlUnitOfWork(session)
            session.commit()
        except WorkflowError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database write failed, rolled back: {e}")
            raise StorageError(f"Database write failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_application(self, application_id: UUID) -> Application:
        with self._session() as session:
            record = session.get(ApplicationRecord, application_id)
            if record is None:
                raise ApplicationNotFoundError(application_id)
            return to_application(record)

    def list_history(self, application_id: UUID) -> List[StatusHistoryEntry]:
        with self._session() as session:
            records = session.scalars(
                select(StatusHistoryRecord)
                .where(StatusHistoryRecord.application_id == application_id)
                .order_by(StatusHistoryRecord.sequence)
            ).all()
            return [to_history_entry(r) for r in records]

    def list_milestones(self, application_id: UUID) -> List[PaymentMilestone]:
        with self._session() as session:
            records = session.scalars(
                select(PaymentMilestoneRecord)
                .where(PaymentMilestoneRecord.application_id == application_id)
                .order_by(PaymentMilestoneRecord.sequence, PaymentMilestoneRecord.created_at)
            ).all()
            return [to_milestone(r) for r in records]

    def get_milestone(self, milestone_id: UUID) -> Optional[PaymentMilestone]:
        with self._session() as session:
            record = session.get(PaymentMilestoneRecord, milestone_id)
            return to_milestone(record) if record else None

    def list_pending_messages(self, limit: int = 100) -> List[OutboundMessage]:
        with self._session() as session:
            records = session.scalars(
                select(OutboundMessageRecord)
                .where(OutboundMessageRecord.delivery_status == DeliveryStatus.PENDING.value)
                .order_by(OutboundMessageRecord.created_at)
                .limit(limit)
            ).all()
            return [to_message(r) for r in records]

    def save_delivery(self, message: OutboundMessage) -> None:
        """Record the outcome of a delivery attempt."""
        with self.unit_of_work() as uow:
            uow.session.execute(
                update(OutboundMessageRecord)
                .where(OutboundMessageRecord.id == message.id)
                .values(
                    delivery_status=message.delivery_status.value,
                    attempts=message.attempts,
                    last_error=message.last_error,
                    delivered_at=message.delivered_at,
                )
                .execution_options(synchronize_session=False)
            )
