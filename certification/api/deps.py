from functools import lru_cache
from typing import Generator

from fastapi import Depends, HTTPException, status

from certification.common.config import WorkflowConfig, load_typed_config
from certification.core.config import get_settings
from certification.core.workflow.errors import (
    ApplicationNotFoundError,
    ConcurrentModificationError,
    DuplicatePaymentError,
    IllegalTransitionError,
    MilestoneNotFoundError,
    PaymentRequiredError,
    PermissionDeniedError,
    StorageError,
    WorkflowError,
)
from certification.core.workflow.orchestrator import WorkflowOrchestrator
from certification.db.session import get_session_factory
from certification.db.store import SqlWorkflowStore
from certification.services.workflow import build_orchestrator


def get_db() -> Generator:
    """Database session dependency."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def get_store() -> SqlWorkflowStore:
    return SqlWorkflowStore(get_session_factory())


@lru_cache
def get_workflow_config() -> WorkflowConfig:
    return load_typed_config(get_settings().workflow_config_path)


def get_orchestrator(
    store: SqlWorkflowStore = Depends(get_store),
    config: WorkflowConfig = Depends(get_workflow_config),
) -> WorkflowOrchestrator:
    return build_orchestrator(store, config)


# Most specific first; subclasses are matched before WorkflowError
ERROR_STATUS_CODES = [
    (ApplicationNotFoundError, status.HTTP_404_NOT_FOUND),
    (MilestoneNotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (PaymentRequiredError, status.HTTP_402_PAYMENT_REQUIRED),
    (IllegalTransitionError, status.HTTP_409_CONFLICT),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (DuplicatePaymentError, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def workflow_http_error(error: WorkflowError) -> HTTPException:
    """Translate a workflow error into an HTTP error carrying its code."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            break
    else:
        status_code = (
            status.HTTP_404_NOT_FOUND if error.code == "not_found" else status.HTTP_400_BAD_REQUEST
        )
    return HTTPException(status_code=status_code, detail=error.to_dict())
