"""Application error taxonomy and the FastAPI handlers that render it.

Every client-facing failure is rendered as ``{"error": "<message>"}`` with a
status code reflecting its class:

    AppError                 (base, 500)
    +-- AuthenticationError  (401)
    +-- ValidationError      (400)
    +-- NotFoundError        (404)
    +-- RateLimitedError     (429, carries retry_after)
    +-- DownstreamServiceError (429 / 402 / 500 from the completion service)

``ExtractionFailure``, ``StorageError`` and ``TransientStoreFailure`` are
ingestion-internal: the orchestrator absorbs them into the document status
and they are never surfaced over HTTP.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(AppError):
    """Missing or invalid caller token."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(AppError):
    """Malformed or oversized request payload."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """Document id unknown or not owned by the caller."""

    status_code = status.HTTP_404_NOT_FOUND


class RateLimitedError(AppError):
    """Caller exceeded the per-user request rate."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DownstreamServiceError(AppError):
    """Completion service answered with a non-2xx status."""

    @classmethod
    def from_upstream_status(cls, upstream_status: int | None) -> "DownstreamServiceError":
        """Map an upstream status onto the client-facing error."""
        if upstream_status == 429:
            return cls("Rate limit exceeded. Please try again in a moment.", 429)
        if upstream_status == 402:
            return cls("AI credits exhausted. Please add credits to continue.", 402)
        return cls(f"AI service error: {upstream_status or 'unavailable'}", 500)


class StorageError(Exception):
    """Object storage transfer failed."""


class ExtractionFailure(Exception):
    """Extractor produced no usable text."""


class TransientStoreFailure(Exception):
    """A single chunk batch could not be written."""


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    """Build the uniform error body."""
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers rendering every failure as ``{"error": ...}``."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        elif isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
        return error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail), exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "An error occurred")
