"""Common schemas for the certification API."""

from typing import Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: ErrorDetail


class HealthResponse(BaseModel):
    status: str
    version: str
    database: Optional[str] = None
