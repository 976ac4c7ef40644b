"""Reservation error taxonomy following RFC 9457 Problem Details for HTTP APIs."""

import uuid
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .database import utcnow
from .observability import get_logger

logger = get_logger(__name__)

PROBLEM_BASE_URI = "https://reservations.example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt

    Every subclass names an application ``code`` and states whether the caller
    may retry the same request (``retryable``) and whether the failure is one the
    caller can recover from by changing its request (``recoverable``).
    """

    code = "PROBLEM"
    retryable = False
    recoverable = False

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
            "code": self.code,
            "retryable": self.retryable,
            "recoverable": self.recoverable,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.detail or self.title}"


class ValidationError(ProblemDetailsException):
    """Malformed input, rejected before any transaction opens."""

    code = "VALIDATION_ERROR"
    recoverable = True

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[List[Dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=422,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    code = "NOT_FOUND"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    code = "CONFLICT"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        title: str = "Resource Conflict",
        status_code: int = 409,
        type_slug: str = "resource-conflict",
        extensions: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=status_code,
            title=title,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/{type_slug}",
            instance=instance,
            extensions=extensions,
        )


class InsufficientInventoryError(ConflictError):
    """Not enough seats or room-nights left; the caller should re-quote."""

    code = "INSUFFICIENT_INVENTORY"
    recoverable = True

    def __init__(self, unit_type: str, unit_id: str, requested: int, available: int):
        super().__init__(
            title="Insufficient Inventory",
            detail=f"{unit_type} {unit_id} has insufficient capacity. Requested: {requested}, Available: {available}",
            type_slug="insufficient-inventory",
            extensions={
                "unit_type": unit_type,
                "unit_id": unit_id,
                "requested": requested,
                "available": available,
            },
        )


class InvalidStateError(ConflictError):
    """An illegal lifecycle transition was attempted."""

    code = "INVALID_STATE"

    def __init__(
        self,
        reservation_code: str,
        current_status: str,
        attempted: str,
        detail: Optional[str] = None,
        title: str = "Invalid Booking State",
        status_code: int = 409,
        type_slug: str = "invalid-state",
        extensions: Optional[Dict[str, Any]] = None,
    ):
        self.reservation_code = reservation_code
        self.current_status = current_status
        problem_extensions = {
            "reservation_code": reservation_code,
            "current_status": current_status,
            "attempted_transition": attempted,
        }
        problem_extensions.update(extensions or {})
        super().__init__(
            title=title,
            detail=detail or f"Booking {reservation_code} cannot be {attempted} while {current_status}",
            status_code=status_code,
            type_slug=type_slug,
            extensions=problem_extensions,
        )


class BookingAlreadyCancelledError(InvalidStateError):
    """The booking was already cancelled."""

    code = "ALREADY_CANCELLED"

    def __init__(self, reservation_code: str):
        super().__init__(
            reservation_code=reservation_code,
            current_status="CANCELLED",
            attempted="cancelled",
            detail=f"Booking {reservation_code} is already cancelled",
            title="Booking Already Cancelled",
            type_slug="already-cancelled",
        )


class BookingExpiredError(InvalidStateError):
    """The Hold lapsed before it was confirmed; it has been cancelled."""

    code = "BOOKING_EXPIRED"
    recoverable = True

    def __init__(self, reservation_code: str, expired_at):
        super().__init__(
            reservation_code=reservation_code,
            current_status="CANCELLED",
            attempted="confirmed",
            detail=f"Hold {reservation_code} expired at {expired_at.isoformat()}",
            title="Hold Expired",
            status_code=410,
            type_slug="hold-expired",
            extensions={"expired_at": expired_at.isoformat()},
        )


class PriceUnavailableError(ProblemDetailsException):
    """No reference prices cover the requested occupancy; show price on request."""

    code = "PRICE_UNAVAILABLE"
    recoverable = True

    def __init__(self, flight_option_id: str, lodging_option_id: str, reason: str):
        super().__init__(
            status_code=404,
            title="Price Unavailable",
            detail=reason,
            type_uri=f"{PROBLEM_BASE_URI}/price-unavailable",
            extensions={
                "flight_option_id": flight_option_id,
                "lodging_option_id": lodging_option_id,
            },
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        title: str = "Internal Server Error",
        type_slug: str = "internal-server-error",
        error_id: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        problem_extensions = {
            "error_id": error_id or str(uuid.uuid4()),
            "timestamp": utcnow().isoformat(),
        }
        problem_extensions.update(extensions or {})

        super().__init__(
            status_code=500,
            title=title,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/{type_slug}",
            instance=instance,
            extensions=problem_extensions,
        )


class SequenceCorruptionError(InternalServerError):
    """The reservation counter produced a code that is already in use."""

    code = "SEQUENCE_CORRUPTION"

    def __init__(self, reservation_code: str):
        super().__init__(
            detail=f"Reservation code {reservation_code} was allocated twice",
            title="Reservation Sequence Corrupted",
            type_slug="sequence-corruption",
            extensions={"reservation_code": reservation_code},
        )


class StorageError(InternalServerError):
    """A storage failure that is neither a conflict nor retryable."""

    code = "STORAGE_FAILURE"

    def __init__(self, operation: str):
        super().__init__(
            detail=f"Storage failure during {operation}",
            title="Storage Failure",
            type_slug="storage-failure",
            extensions={"operation": operation},
        )


class TransactionTimeoutError(ProblemDetailsException):
    """The transaction kept timing out or losing serialization races."""

    code = "TRANSACTION_TIMEOUT"
    retryable = True
    recoverable = True

    def __init__(self, operation: str, attempts: int, retry_after: int = 1):
        super().__init__(
            status_code=503,
            title="Transaction Timeout",
            detail=f"{operation} did not complete after {attempts} attempts",
            type_uri=f"{PROBLEM_BASE_URI}/transaction-timeout",
            extensions={
                "operation": operation,
                "attempts": attempts,
                "retry_after_seconds": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", str(request.url.path))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as a ValidationError problem."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(violations=violations, instance=str(request.url.path))
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    problem = InternalServerError(instance=str(request.url.path))
    logger.error(
        "Unhandled exception",
        error_id=problem.problem_details["error_id"],
        path=str(request.url.path),
        error=str(exc),
        exc_info=exc,
    )
    return await problem_details_handler(request, problem)
