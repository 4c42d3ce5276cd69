"""Pydantic schemas."""
from library_api.schemas.book import (
    BookCreate,
    BookPage,
    BookResponse,
    BookSummary,
    BookUpdate,
)
from library_api.schemas.borrower import (
    BorrowerCreate,
    BorrowerResponse,
    BorrowerSummary,
    BorrowerUpdate,
)
from library_api.schemas.common import (
    BaseSchema,
    Envelope,
    ErrorResponse,
    MessageResponse,
    Pagination,
)
from library_api.schemas.loan import (
    InventoryRepair,
    LoanIssue,
    LoanPage,
    LoanResponse,
    ReconcileReport,
)

__all__ = [
    # Common
    "BaseSchema",
    "Envelope",
    "ErrorResponse",
    "MessageResponse",
    "Pagination",
    # Book
    "BookCreate",
    "BookPage",
    "BookResponse",
    "BookSummary",
    "BookUpdate",
    # Borrower
    "BorrowerCreate",
    "BorrowerResponse",
    "BorrowerSummary",
    "BorrowerUpdate",
    # Loan
    "InventoryRepair",
    "LoanIssue",
    "LoanPage",
    "LoanResponse",
    "ReconcileReport",
]
