"""Custom exceptions for the application."""
from typing import Any, Optional


class AppException(Exception):
    """Base application exception."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Referenced book, borrower or loan does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} not found",
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class ConflictError(AppException):
    """Operation conflicts with the current state of the library.

    ``reason`` is a stable machine-readable tag, the message is for humans.
    """

    NO_COPIES_AVAILABLE = "no_copies_available"
    ALREADY_BORROWED = "already_borrowed"
    ALREADY_RETURNED = "already_returned"
    HAS_ACTIVE_LOANS = "has_active_loans"
    DUPLICATE = "duplicate"
    COPIES_BELOW_ISSUED = "copies_below_issued"

    def __init__(self, message: str, reason: str):
        super().__init__(
            message,
            error_code="CONFLICT",
            details={"reason": reason},
        )
        self.reason = reason


class ValidationError(AppException):
    """Entity-level invariant violated before any write."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        rule: Optional[str] = None,
    ):
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if rule:
            details["rule"] = rule
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)
        self.field = field
        self.rule = rule


class StorageUnavailableError(AppException):
    """Underlying store failed for infrastructural reasons."""

    status_code = 503

    def __init__(self, message: str = "Storage unavailable", operation: Optional[str] = None):
        super().__init__(
            message,
            error_code="STORAGE_UNAVAILABLE",
            details={"operation": operation} if operation else {},
        )
