"""SQLAlchemy models."""
from library_api.models.book import Book, BookCategory
from library_api.models.borrower import Borrower
from library_api.models.loan import Loan, LoanStatus

__all__ = [
    # Book
    "Book",
    "BookCategory",
    # Borrower
    "Borrower",
    # Loan
    "Loan",
    "LoanStatus",
]
