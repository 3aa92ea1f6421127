"""API error type and handler producing ``{error, details?}`` bodies."""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas import ErrorSchema
from tracker.store import OperationResult

logger = logging.getLogger(__name__)


class APIError(Exception):
    """An error reported to the client as ``{"error": ..., "details": ...}``."""

    def __init__(self, status_code: int, error: str, details: str | None = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details


async def api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an ``APIError`` as JSON."""
    assert isinstance(exc, APIError)
    body = ErrorSchema(error=exc.error, details=exc.details or None)
    return JSONResponse(
        status_code=exc.status_code, content=body.model_dump(exclude_none=True)
    )


def raise_for_result(result: OperationResult) -> None:
    """Raise an ``APIError`` for a failed store operation (404 when not found)."""
    if result.ok:
        return
    raise APIError(404 if result.not_found else 400, result.status.text)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render request validation failures in the same ``{error, details}`` shape."""
    assert isinstance(exc, RequestValidationError)
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    body = ErrorSchema(error="Invalid request.", details=details)
    return JSONResponse(status_code=422, content=body.model_dump())
