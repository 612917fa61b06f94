"""Request and response schemas for applications and payments."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from certification.core.workflow.milestones import MilestoneKind, MilestoneStatus
from certification.core.workflow.models import Actor
from certification.core.workflow.next_actions import ActionKind
from certification.core.workflow.statuses import ActorRole, ApplicationStatus


# Requests
class ActorIn(BaseModel):
    id: str = Field(..., min_length=1)
    role: ActorRole

    def to_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role)


class ApplicationCreate(BaseModel):
    actor: ActorIn
    applicant_id: Optional[str] = None
    max_free_revisions: Optional[int] = Field(None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TransitionRequest(BaseModel):
    actor: ActorIn
    to_status: str
    reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentConfirmRequest(BaseModel):
    reference: Optional[str] = None
    confirmed_at: Optional[datetime] = None


class PaymentFailureRequest(BaseModel):
    reason: str = Field(..., min_length=1)


# Responses
class ApplicationResponse(BaseModel):
    id: UUID
    status: ApplicationStatus
    version: int
    revision_count_current: int
    max_free_revisions: int
    applicant_id: Optional[str]
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    assessment_scheduled_at: Optional[datetime]
    assessment_completed_at: Optional[datetime]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    extra_data: Dict[str, Any]

    class Config:
        from_attributes = True


class HistoryEntryResponse(BaseModel):
    id: UUID
    application_id: UUID
    sequence: int
    from_status: Optional[ApplicationStatus]
    to_status: ApplicationStatus
    changed_by: str
    reason: Optional[str]
    metadata: Dict[str, Any]
    changed_at: Optional[datetime]

    class Config:
        from_attributes = True


class MilestoneResponse(BaseModel):
    id: UUID
    application_id: UUID
    kind: MilestoneKind
    amount: Decimal
    currency: str
    status: MilestoneStatus
    sequence: int
    due_at: Optional[datetime]
    paid_at: Optional[datetime]
    payment_reference: Optional[str]
    failure_reason: Optional[str]

    class Config:
        from_attributes = True


class NextActionResponse(BaseModel):
    kind: ActionKind
    title: str
    description: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    due_at: Optional[datetime] = None
    milestone_id: Optional[UUID] = None
    next_status: Optional[ApplicationStatus] = None

    class Config:
        from_attributes = True


class TransitionResponse(BaseModel):
    application: ApplicationResponse
    entry: Optional[HistoryEntryResponse] = None
    next_actions: List[NextActionResponse] = []
    noop: bool = False


class PaymentConfirmationResponse(BaseModel):
    milestone: Optional[MilestoneResponse] = None
    application: Optional[ApplicationResponse] = None
    transitioned: bool = False
    duplicate: bool = False
