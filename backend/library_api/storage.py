"""Stores for books, borrowers and loans.

Each store wraps an ``AsyncSession`` and is the only place that builds queries.
Integrity violations surface as ``ConflictError``; connection-level failures
surface as ``StorageUnavailableError`` so callers can tell them apart.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from library_api.core.exceptions import ConflictError, StorageUnavailableError
from library_api.core.logging import get_logger
from library_api.models.book import Book
from library_api.models.borrower import Borrower
from library_api.models.loan import Loan, LoanStatus

logger = get_logger("storage")


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate infrastructure failures into ``StorageUnavailableError``."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as exc:
        logger.error(f"Storage failure during {operation}: {exc}")
        raise StorageUnavailableError(
            f"Storage unavailable during {operation}", operation=operation
        ) from exc


class BookStore:
    """Persistence for the book inventory."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, book_id: int, for_update: bool = False) -> Optional[Book]:
        query = select(Book).where(Book.id == book_id)
        if for_update:
            query = query.with_for_update()
        with storage_errors("books.find_by_id"):
            result = await self.db.execute(query)
            return result.scalar_one_or_none()

    async def find_by_isbn(
        self,
        isbn: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[Book]:
        query = select(Book).where(Book.isbn == isbn)
        if exclude_id is not None:
            query = query.where(Book.id != exclude_id)
        with storage_errors("books.find_by_isbn"):
            result = await self.db.execute(query)
            return result.scalar_one_or_none()

    async def find_page(self, page: int, limit: int) -> tuple[list[Book], int]:
        """Books newest first, one page at a time, with the overall count."""
        with storage_errors("books.find_page"):
            total = (await self.db.execute(select(func.count(Book.id)))).scalar_one()
            result = await self.db.execute(
                select(Book)
                .order_by(Book.created_at.desc(), Book.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return list(result.scalars().all()), total

    async def find_available(self) -> list[Book]:
        with storage_errors("books.find_available"):
            result = await self.db.execute(
                select(Book).where(Book.available_copies > 0).order_by(Book.title, Book.id)
            )
            return list(result.scalars().all())

    async def find_all(self, for_update: bool = False) -> list[Book]:
        query = select(Book).order_by(Book.id)
        if for_update:
            query = query.with_for_update()
        with storage_errors("books.find_all"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def add(self, book: Book) -> Book:
        book.validate()
        self.db.add(book)
        await self._flush(book, "books.add")
        return book

    async def save(self, book: Book) -> Book:
        """Write pending changes, re-validating the copy counts first."""
        book.validate()
        await self._flush(book, "books.save")
        return book

    async def delete(self, book: Book) -> None:
        with storage_errors("books.delete"):
            await self.db.delete(book)
            await self.db.flush()

    async def decrement_available(self, book_id: int) -> bool:
        """Take one copy off the shelf if any is left. Atomic in the database."""
        return await self._adjust_available(
            book_id,
            Book.available_copies > 0,
            Book.available_copies - 1,
            "books.decrement_available",
        )

    async def increment_available(self, book_id: int) -> bool:
        """Put one copy back if the book exists and is not already full."""
        return await self._adjust_available(
            book_id,
            Book.available_copies < Book.total_copies,
            Book.available_copies + 1,
            "books.increment_available",
        )

    async def _adjust_available(self, book_id, condition, new_value, operation: str) -> bool:
        with storage_errors(operation):
            result = await self.db.execute(
                update(Book)
                .where(Book.id == book_id, condition)
                .values(available_copies=new_value, updated_at=func.now())
                .returning(Book.id)
                .execution_options(synchronize_session=False)
            )
            changed = result.scalar_one_or_none() is not None
            if changed:
                # Bring any instance already in the session up to date
                await self.db.get(Book, book_id, populate_existing=True)
            return changed

    async def _flush(self, book: Book, operation: str) -> None:
        with storage_errors(operation):
            try:
                await self.db.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    "Book with this ISBN already exists", ConflictError.DUPLICATE
                ) from exc
            await self.db.refresh(book)


class BorrowerStore:
    """Persistence for borrowers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(
        self,
        user_id: int,
        for_update: bool = False,
        shared: bool = False,
    ) -> Optional[Borrower]:
        """Load a borrower, optionally locking the row (FOR SHARE when ``shared``)."""
        query = select(Borrower).where(Borrower.id == user_id)
        if for_update:
            query = query.with_for_update(read=shared)
        with storage_errors("borrowers.find_by_id"):
            result = await self.db.execute(query)
            return result.scalar_one_or_none()

    async def find_by_email_or_student_id(
        self,
        email: str,
        student_id: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[Borrower]:
        query = select(Borrower).where(
            or_(Borrower.email == email, Borrower.student_id == student_id)
        )
        if exclude_id is not None:
            query = query.where(Borrower.id != exclude_id)
        with storage_errors("borrowers.find_by_email_or_student_id"):
            result = await self.db.execute(query.limit(1))
            return result.scalar_one_or_none()

    async def find_all(self) -> list[Borrower]:
        with storage_errors("borrowers.find_all"):
            result = await self.db.execute(
                select(Borrower).order_by(Borrower.created_at.desc(), Borrower.id.desc())
            )
            return list(result.scalars().all())

    async def add(self, borrower: Borrower) -> Borrower:
        self.db.add(borrower)
        await self._flush(borrower, "borrowers.add")
        return borrower

    async def save(self, borrower: Borrower) -> Borrower:
        await self._flush(borrower, "borrowers.save")
        return borrower

    async def delete(self, borrower: Borrower) -> None:
        with storage_errors("borrowers.delete"):
            await self.db.delete(borrower)
            await self.db.flush()

    async def _flush(self, borrower: Borrower, operation: str) -> None:
        with storage_errors(operation):
            try:
                await self.db.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    "User with this email or student ID already exists",
                    ConflictError.DUPLICATE,
                ) from exc
            await self.db.refresh(borrower)


class LoanStore:
    """Persistence for the loan ledger.

    Loans are always loaded together with their book and borrower so they can
    be presented without further queries.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _with_parties(query):
        return query.options(
            selectinload(Loan.book), selectinload(Loan.borrower)
        ).execution_options(populate_existing=True)

    async def find_by_id(self, loan_id: int) -> Optional[Loan]:
        with storage_errors("loans.find_by_id"):
            result = await self.db.execute(
                self._with_parties(select(Loan).where(Loan.id == loan_id))
            )
            return result.scalar_one_or_none()

    async def find_active_by_book_and_user(self, book_id: int, user_id: int) -> Optional[Loan]:
        with storage_errors("loans.find_active_by_book_and_user"):
            result = await self.db.execute(
                select(Loan).where(
                    Loan.book_id == book_id,
                    Loan.user_id == user_id,
                    Loan.status == LoanStatus.ISSUED,
                )
            )
            return result.scalar_one_or_none()

    async def insert_unique(self, loan: Loan) -> Loan:
        """Insert a new issued loan; the partial unique index decides races."""
        loan.validate()
        self.db.add(loan)
        with storage_errors("loans.insert_unique"):
            try:
                await self.db.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    "User has already borrowed this book", ConflictError.ALREADY_BORROWED
                ) from exc
        return await self.find_by_id(loan.id)

    async def mark_returned(self, loan: Loan, returned_at: datetime) -> Optional[Loan]:
        """Move an issued loan to returned.

        The status check is part of the UPDATE, so of two concurrent returns only
        one wins. Returns ``None`` when the loan was no longer issued.
        """
        loan.validate_return(returned_at)
        with storage_errors("loans.mark_returned"):
            result = await self.db.execute(
                update(Loan)
                .where(Loan.id == loan.id, Loan.status == LoanStatus.ISSUED)
                .values(
                    status=LoanStatus.RETURNED,
                    return_date=returned_at,
                    updated_at=func.now(),
                )
                .returning(Loan.id)
                .execution_options(synchronize_session=False)
            )
            if result.scalar_one_or_none() is None:
                return None
        return await self.find_by_id(loan.id)

    async def count_active_by_book(self, book_id: int) -> int:
        return await self._count_active(Loan.book_id == book_id, "loans.count_active_by_book")

    async def count_active_by_user(self, user_id: int) -> int:
        return await self._count_active(Loan.user_id == user_id, "loans.count_active_by_user")

    async def count_active_per_book(self) -> dict[int, int]:
        with storage_errors("loans.count_active_per_book"):
            result = await self.db.execute(
                select(Loan.book_id, func.count(Loan.id))
                .where(Loan.status == LoanStatus.ISSUED)
                .group_by(Loan.book_id)
            )
            return {book_id: count for book_id, count in result.all()}

    async def find_all(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> tuple[list[Loan], int]:
        """All loans newest first; paginated when ``page`` and ``limit`` are given."""
        query = self._with_parties(
            select(Loan).order_by(Loan.created_at.desc(), Loan.id.desc())
        )
        if page is not None and limit is not None:
            query = query.offset((page - 1) * limit).limit(limit)
        with storage_errors("loans.find_all"):
            total = (await self.db.execute(select(func.count(Loan.id)))).scalar_one()
            result = await self.db.execute(query)
            return list(result.scalars().all()), total

    async def find_active(self) -> list[Loan]:
        with storage_errors("loans.find_active"):
            result = await self.db.execute(
                self._with_parties(
                    select(Loan)
                    .where(Loan.status == LoanStatus.ISSUED)
                    .order_by(Loan.issue_date.desc(), Loan.id.desc())
                )
            )
            return list(result.scalars().all())

    async def find_overdue(self, now: datetime) -> list[Loan]:
        with storage_errors("loans.find_overdue"):
            result = await self.db.execute(
                self._with_parties(
                    select(Loan)
                    .where(Loan.status == LoanStatus.ISSUED, Loan.due_date < now)
                    .order_by(Loan.due_date, Loan.id)
                )
            )
            return list(result.scalars().all())

    async def find_by_user(self, user_id: int) -> list[Loan]:
        with storage_errors("loans.find_by_user"):
            result = await self.db.execute(
                self._with_parties(
                    select(Loan)
                    .where(Loan.user_id == user_id)
                    .order_by(Loan.created_at.desc(), Loan.id.desc())
                )
            )
            return list(result.scalars().all())

    async def _count_active(self, condition, operation: str) -> int:
        with storage_errors(operation):
            result = await self.db.execute(
                select(func.count(Loan.id)).where(condition, Loan.status == LoanStatus.ISSUED)
            )
            return result.scalar_one()
