"""
Custom exception hierarchy for the check-in tracker.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Storage errors are raised by the check-in stores; ImportValidationError is
raised by the CSV import layer before any store call is made.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CheckinException(Exception):
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


class StorageUnavailableError(CheckinException):
    """Backend unreachable, schema missing, or store not initialized yet."""
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str = "Storage backend is unavailable.", reason: Optional[str] = None):
        super().__init__(
            message=message,
            details={"reason": reason} if reason else {},
        )


class StorageBusyError(CheckinException):
    """A bounded wait (file lock or connection pool) expired. Safe to retry."""
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_BUSY"

    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            message="Storage backend is busy. Retry the request.",
            details={"reason": reason} if reason else {},
        )


class ConstraintViolationError(CheckinException):
    """A write would break the one-record-per-(owner, date) rule."""
    http_status = status.HTTP_409_CONFLICT
    code = "CONSTRAINT_VIOLATION"

    def __init__(self, owner_id: str, reason: Optional[str] = None):
        details: dict[str, Any] = {"user_id": owner_id}
        if reason:
            details["reason"] = reason
        super().__init__(
            message="Duplicate check-in for the same user and date. Nothing was changed.",
            details=details,
        )


class ImportValidationError(CheckinException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "IMPORT_VALIDATION_ERROR"

    def __init__(self, message: str, row: Optional[int] = None, field: Optional[str] = None):
        details: dict[str, Any] = {}
        if row is not None:
            details["row"] = row
        if field is not None:
            details["field"] = field
        self.row = row
        self.field = field
        super().__init__(message=message, details=details)


class InvalidDateError(CheckinException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE"

    def __init__(self, value: str):
        super().__init__(
            message=f"{value} is not a valid calendar date (YYYY-MM-DD).",
            details={"date": value},
        )


class ConfigurationError(Exception):
    """Invalid deployment configuration. Raised at startup, never over HTTP."""


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def checkin_exception_handler(request: Request, exc: CheckinException) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
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
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
