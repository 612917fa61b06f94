"""Outbox dispatcher.

Delivers outbound messages written by committed transitions. Delivery is
at-least-once; a message is retried on later runs until it succeeds or
reaches the attempt limit.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict

from certification.common.logger import application_logger
from certification.core.workflow.models import DeliveryStatus, OutboundKind, OutboundMessage
from certification.core.workflow.ports import Collaborator, WorkflowStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    delivered: int = 0
    retrying: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.delivered + self.retrying + self.failed


class OutboxDispatcher:
    """Sends pending messages to the collaborator registered for their kind."""

    def __init__(
        self,
        store: WorkflowStore,
        collaborators: Dict[OutboundKind, Collaborator],
        *,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.collaborators = collaborators
        self.max_attempts = max_attempts
        self.clock = clock

    def dispatch_pending(self, limit: int = 100) -> DispatchReport:
        """
        Deliver up to ``limit`` pending messages, oldest first.

        Returns:
            Counts of delivered, retrying and dead-lettered messages
        """
        report = DispatchReport()
        for message in self.store.list_pending_messages(limit=limit):
            outcome = self.dispatch(message)
            if outcome.delivery_status == DeliveryStatus.DELIVERED:
                report.delivered += 1
            elif outcome.delivery_status == DeliveryStatus.FAILED:
                report.failed += 1
            else:
                report.retrying += 1

        if report.total:
            logger.info(
                f"Outbox run: {report.delivered} delivered, {report.retrying} retrying, "
                f"{report.failed} failed"
            )
        return report

    def dispatch(self, message: OutboundMessage) -> OutboundMessage:
        """Attempt one delivery and persist its outcome."""
        attempts = message.attempts + 1
        collaborator = self.collaborators.get(message.kind)
        try:
            if collaborator is None:
                raise LookupError(f"No collaborator registered for {message.kind.value}")
            collaborator.deliver(message)
        except Exception as e:
            application_logger(logger, message.application_id, message.status).exception(
                f"Delivery of {message.kind.value} message {message.id} failed "
                f"(attempt {attempts}/{self.max_attempts})"
            )
            status = DeliveryStatus.FAILED if attempts >= self.max_attempts else DeliveryStatus.PENDING
            outcome = replace(message, attempts=attempts, last_error=str(e), delivery_status=status)
        else:
            outcome = replace(
                message,
                attempts=attempts,
                last_error=None,
                delivery_status=DeliveryStatus.DELIVERED,
                delivered_at=self.clock(),
            )

        self.store.save_delivery(outcome)
        return outcome
