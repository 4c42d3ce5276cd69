"""Loan model (an ``assignment`` on the wire)."""
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, Index, Integer, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from library_api.core.dates import (
    as_utc,
    compute_due_date,
    days_overdue,
    is_overdue,
    loan_duration,
)
from library_api.core.exceptions import ValidationError
from library_api.database import Base

if TYPE_CHECKING:
    from library_api.models.book import Book
    from library_api.models.borrower import Borrower


class LoanStatus(str, PyEnum):
    """Loan status enum. ``issued`` is initial, ``returned`` is terminal."""
    ISSUED = "issued"
    RETURNED = "returned"


class Loan(Base):
    """One copy of a book lent to one borrower.

    ``book_id`` and ``user_id`` are plain id references. Historical loans keep
    them after the book or borrower is gone; deletion is blocked only while a
    loan is still issued.
    """

    __tablename__ = "loans"
    __table_args__ = (
        # At most one issued loan per (book, borrower)
        Index(
            "uq_loans_active_book_user",
            "book_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'issued'"),
            postgresql_where=text("status = 'issued'"),
        ),
        Index("ix_loans_status_issue_date", "status", "issue_date"),
        Index("ix_loans_user_status", "user_id", "status"),
        Index("ix_loans_book_status", "book_id", "status"),
        Index("ix_loans_due_status", "due_date", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    book_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    return_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[LoanStatus] = mapped_column(
        Enum(
            LoanStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=LoanStatus.ISSUED,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Read-side joins only
    book: Mapped[Optional["Book"]] = relationship(
        "Book",
        primaryjoin="foreign(Loan.book_id) == Book.id",
        viewonly=True,
        lazy="raise",
    )
    borrower: Mapped[Optional["Borrower"]] = relationship(
        "Borrower",
        primaryjoin="foreign(Loan.user_id) == Borrower.id",
        viewonly=True,
        lazy="raise",
    )

    @classmethod
    def issue(
        cls,
        book_id: int,
        user_id: int,
        issue_date: datetime,
        due_date: Optional[datetime] = None,
        loan_period_days: int = 14,
    ) -> "Loan":
        """Build a new issued loan, defaulting the due date from the loan period."""
        loan = cls(
            book_id=book_id,
            user_id=user_id,
            issue_date=issue_date,
            due_date=due_date or compute_due_date(issue_date, loan_period_days),
            return_date=None,
            status=LoanStatus.ISSUED,
        )
        loan.validate()
        return loan

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ISSUED

    def validate_return(self, returned_at: datetime) -> None:
        """Check that ``returned_at`` is a legal return date for this loan."""
        if as_utc(returned_at) < as_utc(self.issue_date):
            raise ValidationError(
                "Return date must be after issue date",
                field="returnDate",
                rule="not_before_issue_date",
            )

    def validate(self) -> None:
        """Check date ordering, raising before anything is written."""
        if as_utc(self.due_date) <= as_utc(self.issue_date):
            raise ValidationError(
                "Due date must be after issue date", field="dueDate", rule="after_issue_date"
            )
        if self.return_date is not None:
            self.validate_return(self.return_date)

    def is_overdue_at(self, now: datetime) -> bool:
        return is_overdue(self.due_date, active=self.is_active, now=now)

    def days_overdue_at(self, now: datetime) -> int:
        return days_overdue(self.due_date, active=self.is_active, now=now)

    def duration_at(self, now: datetime) -> int:
        return loan_duration(self.issue_date, self.return_date, now=now)

    def __repr__(self) -> str:
        return (
            f"<Loan(id={self.id}, book_id={self.book_id}, "
            f"user_id={self.user_id}, status={self.status})>"
        )
