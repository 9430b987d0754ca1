"""
Global Exception Handlers

Custom exceptions and FastAPI exception handlers.

Every error leaves the API as a JSON envelope: {"error": <message>, ...}.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from .logging import get_logger

logger = get_logger(__name__)


class DuoReelException(Exception):
    """Base exception for DuoReel backend errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


class NotFoundError(DuoReelException):
    """Resource not found."""

    def __init__(self, message: str = "Not found", **extra):
        super().__init__(message=message, status_code=404, extra=extra)


class UnauthorizedError(DuoReelException):
    """Missing or invalid bearer token."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class ValidationError(DuoReelException):
    """Malformed client input."""

    def __init__(self, message: str, **extra):
        super().__init__(message=message, status_code=400, extra=extra)


class ConflictError(DuoReelException):
    """Request conflicts with current partner state (already connected, etc.)."""

    def __init__(self, message: str, **extra):
        super().__init__(message=message, status_code=400, extra=extra)


class UpstreamError(DuoReelException):
    """TMDb / OMDb failure or unreadable response."""

    def __init__(self, service: str, message: str, status_code: int = 500):
        self.service = service
        super().__init__(message=message, status_code=status_code)


class RateLimitedError(DuoReelException):
    """Daily quota exhausted or inside a negative-cache retry window."""

    def __init__(self, message: str, **extra):
        super().__init__(message=message, status_code=429, extra=extra)


class StorageError(DuoReelException):
    """Key-value store query failed."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=500)


async def duoreel_exception_handler(
    request: Request,
    exc: DuoReelException
) -> JSONResponse:
    """Handle DuoReelException and return JSON response."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            status=exc.status_code,
            error=exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.extra},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler so nothing escapes as a bare 500 page."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        exc_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc)},
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(DuoReelException, duoreel_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
