"""
Custom exception hierarchy for the journal analytics service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Pipeline code (aggregator, real-time updater, insight generator) never lets
these escape into a request that did not ask for the pipeline directly:
per-unit failures are logged and the run continues.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AnalyticsException(Exception):
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


class InvalidDateRangeError(AnalyticsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_DATE_RANGE"

    def __init__(self, start: date, end: date):
        super().__init__(
            message=f"Start date {start} is after end date {end}.",
            details={"start": str(start), "end": str(end)},
        )


class BackfillRangeTooLargeError(AnalyticsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "BACKFILL_RANGE_TOO_LARGE"

    def __init__(self, max_days: int, requested: int):
        super().__init__(
            message=f"Backfill range exceeds maximum of {max_days} days. Requested {requested}.",
            details={"max_days": max_days, "requested": requested},
        )


class UnsupportedGranularityError(AnalyticsException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "UNSUPPORTED_GRANULARITY"

    def __init__(self, granularity: str):
        super().__init__(
            message=f"Trend granularity '{granularity}' is not supported.",
            details={"granularity": granularity},
        )


class UserNotFoundError(AnalyticsException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        super().__init__(
            message=f"User {user_id} not found.",
            details={"user_id": user_id},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def analytics_exception_handler(request: Request, exc: AnalyticsException) -> JSONResponse:
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
