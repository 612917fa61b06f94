"""Append-only audit trail of committed status changes."""

import logging
from typing import List
from uuid import UUID

from .errors import StorageError, WorkflowError
from .models import StatusHistoryEntry
from .ports import WorkflowStore, WorkflowUnitOfWork
from .statuses import INITIAL_STATUS, can_transition

logger = logging.getLogger(__name__)


class AuditTrailWriter:
    """
    Writes one history entry per committed transition.

    Entries are appended inside the caller's unit of work so the entry and
    the application update commit or roll back together. Existing entries
    are never rewritten.
    """

    def __init__(self, store: WorkflowStore):
        self.store = store

    def append(self, uow: WorkflowUnitOfWork, entry: StatusHistoryEntry) -> None:
        """
        Append ``entry`` within ``uow``.

        Raises:
            ValueError: If the entry does not describe a catalog edge
            StorageError: If the write fails
        """
        if entry.from_status is None:
            if entry.to_status != INITIAL_STATUS:
                raise ValueError(
                    f"Only the creation entry may omit from_status (got to_status={entry.to_status.value})"
                )
        elif not can_transition(entry.from_status, entry.to_status):
            raise ValueError(
                f"History entry {entry.from_status.value} -> {entry.to_status.value} is not a valid edge"
            )

        try:
            uow.add_history(entry)
        except WorkflowError:
            raise
        except Exception as e:
            logger.exception(f"Failed to append history for application {entry.application_id}")
            raise StorageError(f"Could not append audit entry: {e}") from e

    def history(self, application_id: UUID) -> List[StatusHistoryEntry]:
        """Entries for an application, oldest first."""
        return self.store.list_history(application_id)
