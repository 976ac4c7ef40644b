"""Common Pydantic schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the same request can be retried")
    recoverable: Optional[bool] = Field(None, description="Whether a changed request can succeed")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


# Shared OpenAPI error documentation for booking and pricing routes
PROBLEM_RESPONSES = {
    404: {"model": Problem, "description": "Resource not found"},
    409: {"model": Problem, "description": "Conflicts with the current inventory or booking state"},
    422: {"model": Problem, "description": "Validation error"},
    503: {"model": Problem, "description": "Transaction did not complete; retry later"},
}
