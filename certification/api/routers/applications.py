"""Certification application API endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from certification.api.deps import get_orchestrator, workflow_http_error
from certification.api.schemas.workflow import (
    ApplicationCreate,
    ApplicationResponse,
    HistoryEntryResponse,
    MilestoneResponse,
    NextActionResponse,
    TransitionRequest,
    TransitionResponse,
)
from certification.core.workflow import WorkflowError, WorkflowOrchestrator
from certification.core.workflow.orchestrator import TransitionResult

router = APIRouter(prefix="/applications", tags=["applications"])


def transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        application=ApplicationResponse.model_validate(result.application),
        entry=HistoryEntryResponse.model_validate(result.entry) if result.entry else None,
        next_actions=[NextActionResponse.model_validate(a) for a in result.obligations],
        noop=result.noop,
    )


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def create_application(
    body: ApplicationCreate,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """Create a new application in DRAFT."""
    try:
        app = orchestrator.create_application(
            body.actor.to_actor(),
            applicant_id=body.applicant_id,
            max_free_revisions=body.max_free_revisions,
            metadata=body.metadata,
        )
    except WorkflowError as e:
        raise workflow_http_error(e)
    return ApplicationResponse.model_validate(app)


@router.get("/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    try:
        app = orchestrator.get_application(application_id)
    except WorkflowError as e:
        raise workflow_http_error(e)
    return ApplicationResponse.model_validate(app)


@router.post("/{application_id}/transitions", response_model=TransitionResponse)
def request_transition(
    application_id: UUID,
    body: TransitionRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """Request a status change on behalf of the given actor."""
    try:
        result = orchestrator.request_transition(
            application_id,
            body.to_status,
            body.actor.to_actor(),
            reason=body.reason,
            metadata=body.metadata,
        )
    except WorkflowError as e:
        raise workflow_http_error(e)
    return transition_response(result)


@router.get("/{application_id}/history", response_model=List[HistoryEntryResponse])
def get_history(
    application_id: UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """Get the ordered status history of an application."""
    try:
        history = orchestrator.get_history(application_id)
    except WorkflowError as e:
        raise workflow_http_error(e)
    return [HistoryEntryResponse.model_validate(h) for h in history]


@router.get("/{application_id}/milestones", response_model=List[MilestoneResponse])
def list_milestones(
    application_id: UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    try:
        milestones = orchestrator.list_milestones(application_id)
    except WorkflowError as e:
        raise workflow_http_error(e)
    return [MilestoneResponse.model_validate(m) for m in milestones]


@router.get("/{application_id}/next-actions", response_model=List[NextActionResponse])
def get_next_actions(
    application_id: UUID,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """What the applicant has to do next."""
    try:
        actions = orchestrator.next_actions(application_id)
    except WorkflowError as e:
        raise workflow_http_error(e)
    return [NextActionResponse.model_validate(a) for a in actions]
