"""Payment gateway callback endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from certification.api.deps import get_orchestrator, workflow_http_error
from certification.api.schemas.workflow import (
    ApplicationResponse,
    MilestoneResponse,
    PaymentConfirmationResponse,
    PaymentConfirmRequest,
    PaymentFailureRequest,
)
from certification.core.workflow import WorkflowError, WorkflowOrchestrator

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/{milestone_id}/confirm", response_model=PaymentConfirmationResponse)
def confirm_payment(
    milestone_id: UUID,
    body: PaymentConfirmRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """
    Confirm a milestone payment.

    Redelivered confirmations answer 200 with ``duplicate`` set.
    """
    try:
        result = orchestrator.confirm_payment(
            milestone_id, body.confirmed_at, reference=body.reference
        )
    except WorkflowError as e:
        raise workflow_http_error(e)

    return PaymentConfirmationResponse(
        milestone=MilestoneResponse.model_validate(result.milestone) if result.milestone else None,
        application=(
            ApplicationResponse.model_validate(result.application) if result.application else None
        ),
        transitioned=result.transition is not None and not result.transition.noop,
        duplicate=result.duplicate,
    )


@router.post("/{milestone_id}/fail", response_model=MilestoneResponse)
def record_payment_failure(
    milestone_id: UUID,
    body: PaymentFailureRequest,
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
):
    """Record a failed payment attempt."""
    try:
        milestone = orchestrator.record_payment_failure(milestone_id, body.reason)
    except WorkflowError as e:
        raise workflow_http_error(e)
    return MilestoneResponse.model_validate(milestone)
