"""Wiring of the orchestrator and dispatcher from configuration."""

from typing import Optional

import httpx

from certification.common.config import WorkflowConfig
from certification.core.config import Settings
from certification.core.workflow.orchestrator import WorkflowOrchestrator
from certification.core.workflow.ports import WorkflowStore
from certification.services.collaborators import build_collaborators
from certification.services.dispatcher import OutboxDispatcher


def build_orchestrator(
    store: WorkflowStore, config: Optional[WorkflowConfig] = None
) -> WorkflowOrchestrator:
    config = config or WorkflowConfig()
    return WorkflowOrchestrator(
        store,
        fees=config.fees,
        default_max_free_revisions=config.revisions.max_free_revisions,
        payment_due_days=config.scheduling.payment_due_days,
        assessment_lead_days=config.scheduling.assessment_lead_days,
    )


def build_dispatcher(
    store: WorkflowStore, settings: Settings, client: Optional[httpx.Client] = None
) -> OutboxDispatcher:
    return OutboxDispatcher(
        store,
        build_collaborators(settings, client=client),
        max_attempts=settings.max_delivery_attempts,
    )
