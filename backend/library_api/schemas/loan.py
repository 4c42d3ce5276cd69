"""Loan Pydantic schemas (``assignment`` on the wire)."""
from datetime import datetime
from typing import Optional

from library_api.models.loan import LoanStatus
from library_api.schemas.book import BookSummary
from library_api.schemas.borrower import BorrowerSummary
from library_api.schemas.common import BaseSchema, Pagination, RecordId, TimestampMixin


class LoanIssue(BaseSchema):
    """Schema for issuing a book to a borrower."""

    book_id: RecordId
    user_id: RecordId


class LoanResponse(TimestampMixin):
    """Schema for loan response.

    ``is_overdue``, ``days_overdue`` and ``duration`` are computed when the
    response is built and never stored.
    """

    id: int
    book_id: int
    user_id: int
    book: Optional[BookSummary] = None
    user: Optional[BorrowerSummary] = None
    issue_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: LoanStatus
    is_overdue: bool
    days_overdue: int
    duration: int


class LoanPage(BaseSchema):
    """One page of loan history."""

    assignments: list[LoanResponse]
    pagination: Pagination


class InventoryRepair(BaseSchema):
    """A book whose available count was out of line with its active loans."""

    book_id: int
    active_loans: int
    available_before: int
    available_after: int


class ReconcileReport(BaseSchema):
    """Result of an inventory reconciliation pass."""

    dry_run: bool
    books_checked: int
    repaired: list[InventoryRepair] = []
    over_issued_book_ids: list[int] = []
    orphaned_book_ids: list[int] = []
