"""Core utilities."""
from library_api.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from library_api.core.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "AppException",
    "ConflictError",
    "NotFoundError",
    "StorageUnavailableError",
    "ValidationError",
]
