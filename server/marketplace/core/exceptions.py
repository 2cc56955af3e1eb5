"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://marketplace.example/problems/"


def problem_type(code: str) -> str:
    """Problem type URI for an error code, e.g. BOOKING_CONFLICT -> .../booking-conflict."""
    return PROBLEM_TYPE_BASE + code.lower().replace("_", "-")


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt

    Each subclass declares its HTTP status, title and machine-readable code
    as class attributes. The rendered body always carries ``type``, ``title``,
    ``status`` and ``code``; ``detail``, ``instance`` and any extension
    members are added when given.
    """

    status: int = 500
    title: str = "Internal Server Error"
    code: str = "INTERNAL_ERROR"
    response_headers: Optional[Dict[str, str]] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.type_uri = problem_type(self.code)
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status,
            "code": self.code,
        }
        if detail:
            self.problem_details["detail"] = detail
        if instance:
            self.problem_details["instance"] = instance
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=self.status,
            detail=self.problem_details,
            headers=headers or self.response_headers,
        )


class ValidationError(ProblemDetailsException):
    """Request passed schema validation but names something unusable."""

    status = 400
    title = "Validation Error"
    code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "The request data failed validation", errors: Optional[Dict[str, Any]] = None):
        super().__init__(detail, extensions={"errors": errors} if errors else None)


class AuthenticationError(ProblemDetailsException):
    """Missing, malformed or expired bearer token."""

    status = 401
    title = "Authentication Required"
    code = "AUTHENTICATION_REQUIRED"
    response_headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, detail: str = "Authentication credentials are required"):
        super().__init__(detail)


class AuthorizationError(ProblemDetailsException):
    """Authenticated caller lacks the role or ownership the operation needs."""

    status = 403
    title = "Access Forbidden"
    code = "ACCESS_FORBIDDEN"

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
    ):
        extensions = {"required_permissions": required_permissions} if required_permissions else None
        super().__init__(detail, extensions=extensions)


class NotFoundError(ProblemDetailsException):
    """A listing, category or booking id with no matching row."""

    status = 404
    title = "Resource Not Found"
    code = "NOT_FOUND"

    def __init__(self, resource_type: str = "resource", resource_id: Optional[str] = None):
        detail = f"The requested {resource_type}"
        if resource_id:
            detail += f" with ID '{resource_id}'"
        detail += " could not be found"

        extensions: Dict[str, Any] = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id
        super().__init__(detail, extensions=extensions)


class ConflictError(ProblemDetailsException):
    """Request clashes with current state: a duplicate name, a row still in use, a terminal status."""

    status = 409
    title = "Resource Conflict"
    code = "CONFLICT"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
    ):
        extensions = {"conflicting_resource": conflicting_resource} if conflicting_resource else None
        super().__init__(detail, extensions=extensions)


# Booking exceptions
#
# Every kind has exactly one message. Callers pass context through
# keyword arguments only, never through the message.

class BookingError(ProblemDetailsException):
    """Base class for business rule violations raised by the booking resolver."""

    status = 400
    code = "BOOKING_ERROR"
    title = "Booking Error"
    message = "The booking request was rejected"

    def __init__(self, **context: Any):
        extensions: Dict[str, Any] = {"retryable": False}
        extensions.update({k: v for k, v in context.items() if v is not None})
        super().__init__(self.message, extensions=extensions)


class InvalidDateRangeError(BookingError):
    """Malformed timestamp, or end date not after start date."""

    code = "INVALID_DATE_RANGE"
    title = "Invalid Date Range"
    message = "End date must be a valid timestamp after the start date"


class StartDateInPastError(BookingError):
    """Start date falls before today."""

    code = "START_DATE_IN_PAST"
    title = "Start Date In Past"
    message = "Start date cannot be in the past"


class ResourceUnavailableError(BookingError):
    """Resource exists but is flagged unavailable."""

    status = 409
    code = "RESOURCE_UNAVAILABLE"
    title = "Resource Unavailable"
    message = "Resource is not available for booking"


class ResourceNotFoundError(BookingError):
    """Referenced resource id has no matching listing."""

    status = 404
    code = "RESOURCE_NOT_FOUND"
    title = "Resource Not Found"
    message = "Resource not found"


class BookingConflictError(BookingError):
    """An active booking already overlaps the requested range."""

    status = 409
    code = "BOOKING_CONFLICT"
    title = "Booking Conflict"
    message = "Resource is already booked for the selected dates"


class CancellationWindowClosedError(BookingError):
    """Cancellation attempted too close to the start date."""

    status = 409
    code = "CANCELLATION_WINDOW_CLOSED"
    title = "Cancellation Window Closed"
    message = "Cannot cancel booking within 24 hours of start time"


class CancellationNotAllowedError(BookingError):
    """Booking is not cancellable by this requester or in its current status."""

    status = 403
    code = "CANCELLATION_NOT_ALLOWED"
    title = "Cancellation Not Allowed"
    message = "This booking cannot be cancelled"


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a raised problem as an ``application/problem+json`` response."""
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render request validation failures as Problem Details with a list of violations.

    Args:
        request: FastAPI request object
        exc: Validation error raised while parsing the request

    Returns:
        JSONResponse: 422 Problem Details response
    """
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=422,
        content={
            "type": problem_type("REQUEST_VALIDATION_ERROR"),
            "title": "Validation Error",
            "status": 422,
            "code": "REQUEST_VALIDATION_ERROR",
            "detail": "The request data failed validation",
            "instance": request.url.path,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Convert an unhandled exception into a 500 problem.

    The response carries an ``error_id`` that also appears in the error log,
    never the exception text.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path},
    )

    return JSONResponse(
        status_code=500,
        content={
            "type": problem_type(ProblemDetailsException.code),
            "title": ProblemDetailsException.title,
            "status": 500,
            "code": ProblemDetailsException.code,
            "detail": "An unexpected error occurred while processing the request",
            "instance": request.url.path,
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        media_type="application/problem+json",
    )
