"""Port definitions for the workflow core.

The orchestrator receives a storage port and collaborator ports as
constructor arguments; there is no ambient connection object.
"""

from typing import ContextManager, List, Optional, Protocol
from uuid import UUID

from .milestones import MilestoneStatus
from .models import (
    Application,
    OutboundMessage,
    PaymentMilestone,
    StatusHistoryEntry,
)


class WorkflowUnitOfWork(Protocol):
    """Writes that commit together or not at all."""

    def add_application(self, app: Application) -> None:
        ...

    def update_application(self, app: Application, expected_version: int) -> None:
        """Persist ``app`` if the stored version still equals ``expected_version``.

        Raises ConcurrentModificationError otherwise.
        """
        ...

    def add_history(self, entry: StatusHistoryEntry) -> None:
        ...

    def add_milestone(self, milestone: PaymentMilestone) -> None:
        ...

    def update_milestone(self, milestone: PaymentMilestone, expected_status: MilestoneStatus) -> bool:
        """Compare-and-set on the milestone status; False when it had changed."""
        ...

    def add_message(self, message: OutboundMessage) -> None:
        ...


class WorkflowStore(Protocol):
    """Persistence of applications, audit trail, milestones and the outbox."""

    def get_application(self, application_id: UUID) -> Application:
        ...

    def list_history(self, application_id: UUID) -> List[StatusHistoryEntry]:
        ...

    def list_milestones(self, application_id: UUID) -> List[PaymentMilestone]:
        ...

    def get_milestone(self, milestone_id: UUID) -> Optional[PaymentMilestone]:
        ...

    def list_pending_messages(self, limit: int = 100) -> List[OutboundMessage]:
        ...

    def save_delivery(self, message: OutboundMessage) -> None:
        ...

    def unit_of_work(self) -> ContextManager[WorkflowUnitOfWork]:
        ...


class Collaborator(Protocol):
    """External service receiving outbound messages. Must be idempotent."""

    def deliver(self, message: OutboundMessage) -> None:
        ...
