"""Core infrastructure modules."""

from .security import get_current_user
from .exceptions import (
    DuoReelException,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    ConflictError,
    UpstreamError,
    RateLimitedError,
    StorageError,
)
from .logging import setup_logging, get_logger

__all__ = [
    "get_current_user",
    "DuoReelException",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "ConflictError",
    "UpstreamError",
    "RateLimitedError",
    "StorageError",
    "setup_logging",
    "get_logger",
]
