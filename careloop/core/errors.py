"""
Custom exception hierarchy for CareLoop.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Taxonomy
--------
  SourceValidationError  malformed domain source state           422
  NotFoundError          referenced event / schedule absent       404
  ConflictError          duplicate natural key, double completion 409
  DependencyError        persistence or external feed failure     503

Clients are expected to retry later on DependencyError and show a terminal
message on ConflictError / NotFoundError.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CareLoopException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SourceValidationError(CareLoopException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_SOURCE_STATE"

    def __init__(self, source: str, source_id: int | None, reason: str):
        super().__init__(
            message=f"Invalid {source} #{source_id}: {reason}",
            details={"source": source, "source_id": source_id, "reason": reason},
        )


class NotFoundError(CareLoopException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class EventNotFoundError(NotFoundError):
    code = "EVENT_NOT_FOUND"

    def __init__(self, event_id: int):
        super().__init__(
            message=f"Care event {event_id} not found.",
            details={"event_id": event_id},
        )


class ScheduleNotFoundError(NotFoundError):
    code = "SCHEDULE_NOT_FOUND"

    def __init__(self, schedule_id: int):
        super().__init__(
            message=f"Feeding schedule {schedule_id} not found.",
            details={"schedule_id": schedule_id},
        )


class ConflictError(CareLoopException):
    http_status = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class DuplicateNaturalKeyError(ConflictError):
    code = "DUPLICATE_NATURAL_KEY"

    def __init__(self, event_type: str, natural_key: str):
        super().__init__(
            message=f"An open {event_type} event already exists for {natural_key}.",
            details={"event_type": event_type, "natural_key": natural_key},
        )


class EventAlreadyFinalizedError(ConflictError):
    code = "EVENT_ALREADY_FINALIZED"

    def __init__(self, event_id: int, status_value: str | None):
        super().__init__(
            message=f"Care event {event_id} is already {status_value or 'finalized'}.",
            details={"event_id": event_id, "status": status_value},
        )


class DependencyError(CareLoopException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "DEPENDENCY_ERROR"

    def __init__(self, dependency: str, message: str):
        super().__init__(
            message=f"{dependency} failure: {message}",
            details={"dependency": dependency},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def careloop_exception_handler(request: Request, exc: CareLoopException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
