"""
Application error taxonomy.

Services raise these; the handler registered in main.py renders them as
  { "code": "...", "message": "..." }
with the matching HTTP status.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400
    code = "BAD_REQUEST"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class WeekClosedError(ConflictError):
    """A review tried to change a week whose status record is finalized."""
    code = "WEEK_CLOSED"


class StorageError(AppError):
    """Transient storage failure. Safe for the client to retry the call."""
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (cause: %r)",
            request.method, request.url.path, exc.message, exc.__cause__,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
    )
