"""Shared helpers for the schedule routes."""

from fastapi import HTTPException

from app.services.errors import (
    ConflictError,
    NotFoundError,
    ScheduleError,
    ValidationError,
)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def http_error(exc: ScheduleError) -> HTTPException:
    """Translate a service error into an HTTPException carrying its message."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail="Schedule service error")
