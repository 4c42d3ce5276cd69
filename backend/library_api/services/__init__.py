"""Business logic services."""
from library_api.services.book_service import BookService
from library_api.services.borrower_service import BorrowerService
from library_api.services.loan_service import LoanService

__all__ = [
    "BookService",
    "BorrowerService",
    "LoanService",
]
