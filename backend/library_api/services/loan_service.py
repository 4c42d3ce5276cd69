"""Loan service: issuing and returning books.

Keeps each book's ``available_copies`` in step with its issued loans:

* issuing takes a copy off the shelf and records the loan in one transaction;
* returning closes the loan and puts the copy back;
* ``reconcile`` finds and repairs books whose counts drifted anyway.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from library_api.config import settings
from library_api.core.dates import Clock, utcnow
from library_api.core.exceptions import AppException, ConflictError, NotFoundError
from library_api.core.logging import get_logger
from library_api.models.loan import Loan
from library_api.schemas.loan import InventoryRepair, ReconcileReport
from library_api.storage import BookStore, BorrowerStore, LoanStore

logger = get_logger("services.loans")


class LoanService:
    """Service for the loan lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        loan_period_days: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.loan_period_days = loan_period_days or settings.loan_period_days
        self.books = BookStore(db)
        self.borrowers = BorrowerStore(db)
        self.loans = LoanStore(db)

    async def issue_loan(self, book_id: int, user_id: int) -> Loan:
        """Lend one copy of a book to a borrower."""
        book = await self.books.find_by_id(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        if book.available_copies <= 0:
            raise ConflictError(
                "Book is not available for issue", ConflictError.NO_COPIES_AVAILABLE
            )

        # Shared lock holds off a concurrent borrower delete until this commits
        borrower = await self.borrowers.find_by_id(user_id, for_update=True, shared=True)
        if borrower is None:
            raise NotFoundError("User", user_id)

        if await self.loans.find_active_by_book_and_user(book_id, user_id):
            raise ConflictError(
                "User has already borrowed this book", ConflictError.ALREADY_BORROWED
            )

        loan = Loan.issue(
            book_id=book_id,
            user_id=user_id,
            issue_date=self.clock(),
            loan_period_days=self.loan_period_days,
        )

        # Both effects commit together or not at all
        try:
            if not await self.books.decrement_available(book_id):
                raise ConflictError(
                    "Book is not available for issue", ConflictError.NO_COPIES_AVAILABLE
                )
            loan = await self.loans.insert_unique(loan)
        except AppException:
            await self.db.rollback()
            raise

        logger.info(
            f"Issued book {book_id} to user {user_id} as loan {loan.id}, "
            f"due {loan.due_date.date().isoformat()}"
        )
        return loan

    async def return_loan(self, loan_id: int) -> Loan:
        """Close an issued loan and put the copy back on the shelf."""
        loan = await self.loans.find_by_id(loan_id)
        if loan is None:
            raise NotFoundError("Assignment", loan_id)
        if not loan.is_active:
            raise ConflictError(
                "Book has already been returned", ConflictError.ALREADY_RETURNED
            )

        try:
            returned = await self.loans.mark_returned(loan, self.clock())
            if returned is None:
                raise ConflictError(
                    "Book has already been returned", ConflictError.ALREADY_RETURNED
                )
            restocked = await self.books.increment_available(returned.book_id)
        except AppException:
            await self.db.rollback()
            raise

        if restocked:
            logger.info(f"Returned loan {loan_id}, book {returned.book_id} restocked")
        else:
            logger.warning(
                f"Returned loan {loan_id} but book {returned.book_id} is missing "
                f"or already fully stocked; inventory left unchanged"
            )
        return returned

    async def get_active_loans(self) -> list[Loan]:
        return await self.loans.find_active()

    async def get_all_loans(self) -> list[Loan]:
        loans, _ = await self.loans.find_all()
        return loans

    async def get_loan_history(self, page: int, limit: int) -> tuple[list[Loan], int]:
        """All loans newest first, one page at a time."""
        return await self.loans.find_all(page=page, limit=limit)

    async def get_overdue_loans(self) -> list[Loan]:
        return await self.loans.find_overdue(self.clock())

    async def get_borrower_loans(self, user_id: int) -> list[Loan]:
        if await self.borrowers.find_by_id(user_id) is None:
            raise NotFoundError("User", user_id)
        return await self.loans.find_by_user(user_id)

    async def reconcile(self, dry_run: bool = False) -> ReconcileReport:
        """Bring every book's available count back in line with its issued loans.

        ``available = total - issued`` clamped to ``[0, total]``. Books with more
        issued loans than copies cannot be repaired here and are only reported,
        as are issued loans pointing at books that no longer exist.
        """
        active_per_book = await self.loans.count_active_per_book()
        books = await self.books.find_all(for_update=not dry_run)

        report = ReconcileReport(dry_run=dry_run, books_checked=len(books))
        for book in books:
            active = active_per_book.pop(book.id, 0)
            expected = book.total_copies - active
            if expected < 0:
                report.over_issued_book_ids.append(book.id)
                logger.warning(
                    f"Book {book.id} has {active} issued loans but only "
                    f"{book.total_copies} copies"
                )
                expected = 0
            if book.available_copies == expected:
                continue

            report.repaired.append(
                InventoryRepair(
                    book_id=book.id,
                    active_loans=active,
                    available_before=book.available_copies,
                    available_after=expected,
                )
            )
            logger.warning(
                f"Book {book.id} available copies {book.available_copies} "
                f"-> {expected} ({active} issued loans)"
            )
            if not dry_run:
                book.available_copies = expected
                await self.books.save(book)

        # Whatever is left references books that are gone
        report.orphaned_book_ids = sorted(active_per_book)
        for book_id in report.orphaned_book_ids:
            logger.warning(f"Issued loans reference missing book {book_id}")

        return report

    def present(self, loan: Loan, now: Optional[datetime] = None) -> dict[str, Any]:
        """Loan fields plus the values derived from ``now``."""
        now = now or self.clock()
        return {
            "id": loan.id,
            "book_id": loan.book_id,
            "user_id": loan.user_id,
            "book": loan.book,
            "user": loan.borrower,
            "issue_date": loan.issue_date,
            "due_date": loan.due_date,
            "return_date": loan.return_date,
            "status": loan.status,
            "is_overdue": loan.is_overdue_at(now),
            "days_overdue": loan.days_overdue_at(now),
            "duration": loan.duration_at(now),
            "created_at": loan.created_at,
            "updated_at": loan.updated_at,
        }

    def present_many(self, loans: list[Loan]) -> list[dict[str, Any]]:
        now = self.clock()
        return [self.present(loan, now) for loan in loans]
