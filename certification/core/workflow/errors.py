"""Workflow error kinds.

Every rejection carries a machine-readable ``code`` so callers (UI, payment
callbacks, scheduling callbacks) can render the specific blocking condition.
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID


class WorkflowError(Exception):
    """Base class for all certification workflow errors."""

    code = "workflow_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ApplicationNotFoundError(WorkflowError):
    """Raised when an application id is unknown."""

    code = "not_found"

    def __init__(self, application_id: UUID):
        super().__init__(f"Application {application_id} not found")
        self.application_id = application_id


class MilestoneNotFoundError(WorkflowError):
    """Raised when a payment milestone id is unknown."""

    code = "not_found"

    def __init__(self, milestone_id: UUID):
        super().__init__(f"Payment milestone {milestone_id} not found")
        self.milestone_id = milestone_id


class IllegalTransitionError(WorkflowError):
    """Raised when the requested edge is not in the catalog, or is missing a reason."""

    code = "illegal_transition"

    def __init__(
        self,
        message: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        *,
        code: Optional[str] = None,
    ):
        super().__init__(message, code=code)
        self.from_status = from_status
        self.to_status = to_status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["from_status"] = self.from_status
        data["to_status"] = self.to_status
        return data


class PermissionDeniedError(WorkflowError):
    """Raised when the acting role may not perform the edge."""

    code = "permission_denied"

    def __init__(self, message: str, role: Optional[str] = None):
        super().__init__(message)
        self.role = role

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["role"] = self.role
        return data


class PaymentRequiredError(WorkflowError):
    """Raised when the edge is gated by a milestone that is not confirmed."""

    code = "payment_required"

    def __init__(
        self,
        message: str,
        milestone_kind: str,
        *,
        amount: Optional[Decimal] = None,
        milestone_id: Optional[UUID] = None,
    ):
        super().__init__(message)
        self.milestone_kind = milestone_kind
        self.amount = amount
        self.milestone_id = milestone_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["milestone_kind"] = self.milestone_kind
        data["amount"] = str(self.amount) if self.amount is not None else None
        data["milestone_id"] = str(self.milestone_id) if self.milestone_id else None
        return data


class RevisionQuotaExceededError(WorkflowError):
    """Free revision quota exhausted.

    Never surfaces to callers: the validator absorbs it into a redirect to
    ``REJECTED_PAYMENT_REQUIRED``.
    """

    code = "revision_quota_exceeded"


class ConcurrentModificationError(WorkflowError):
    """Raised when the application changed between load and commit.

    The orchestrator validates the request once more against the fresh state
    before raising this; callers may reload and decide again.
    """

    code = "concurrent_modification"

    def __init__(self, application_id: UUID, expected_version: int):
        super().__init__(
            f"Application {application_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.application_id = application_id
        self.expected_version = expected_version


class DuplicatePaymentError(WorkflowError):
    """Raised when a payment confirmation targets an unknown or settled milestone."""

    code = "duplicate_payment"

    def __init__(self, message: str, milestone_id: UUID, milestone=None):
        super().__init__(message)
        self.milestone_id = milestone_id
        self.milestone = milestone


class StorageError(WorkflowError):
    """Raised when persistence fails; nothing of the attempt is committed."""

    code = "storage_error"
