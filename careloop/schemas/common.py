"""
Shared schema primitives used across the API.

Every 4xx/5xx body is an ErrorResponse; `code` is the machine-readable
string from careloop.core.errors (EVENT_NOT_FOUND, EVENT_ALREADY_FINALIZED,
INVALID_SOURCE_STATE, ...).
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    details: Optional[dict[str, Any]] = None


ERROR_RESPONSES: dict = {
    404: {"model": ErrorResponse, "description": "Event or schedule not found for this owner."},
    409: {"model": ErrorResponse, "description": "Event already finalized / duplicate key."},
    422: {"model": ErrorResponse, "description": "Invalid request or source state."},
    503: {"model": ErrorResponse, "description": "Database unavailable."},
}
