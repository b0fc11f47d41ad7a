"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``create_app`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware`` and the
logger sees the final status code after errors were converted.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from lectern.api.schemas import ErrorResponse
from lectern.utils.errors import DocumentNotFoundError, LecternError, QuotaExceededError
from lectern.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins unless *allowed_origins* is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``LecternError`` subclasses into :class:`ErrorResponse` JSON.

    ``QuotaExceededError`` becomes 429 and carries usage and limit,
    ``DocumentNotFoundError`` becomes 404, anything else 500.  Stack
    traces stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except LecternError as exc:
            status_code = _status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            if isinstance(exc, QuotaExceededError):
                body = body.model_copy(update={"usage": exc.usage, "limit": exc.limit})
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(exclude_none=True),
            )


def _status_for(exc: LecternError) -> int:
    if isinstance(exc, QuotaExceededError):
        return 429
    if isinstance(exc, DocumentNotFoundError):
        return 404
    return 500
