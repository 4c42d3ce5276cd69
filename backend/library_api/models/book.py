"""Book model."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from library_api.core.exceptions import ValidationError
from library_api.database import Base

MIN_COPIES = 1
MAX_COPIES = 1000


class BookCategory(str, PyEnum):
    """Catalogue categories."""
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    SCIENCE = "Science"
    TECHNOLOGY = "Technology"
    HISTORY = "History"
    BIOGRAPHY = "Biography"
    MYSTERY = "Mystery"
    ROMANCE = "Romance"
    FANTASY = "Fantasy"
    HORROR = "Horror"
    SELF_HELP = "Self-Help"
    EDUCATIONAL = "Educational"
    REFERENCE = "Reference"
    OTHER = "Other"


class Book(Base):
    """A catalogue title with one or more physical copies."""

    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint(
            f"total_copies >= {MIN_COPIES} AND total_copies <= {MAX_COPIES}",
            name="ck_books_total_copies_range",
        ),
        CheckConstraint("available_copies >= 0", name="ck_books_available_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="ck_books_available_within_total"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False)
    isbn: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def issued_copies(self) -> int:
        return self.total_copies - self.available_copies

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    def validate(self) -> None:
        """Check the copy-count invariants, raising before anything is written."""
        if not MIN_COPIES <= self.total_copies <= MAX_COPIES:
            raise ValidationError(
                f"Total copies must be between {MIN_COPIES} and {MAX_COPIES}",
                field="totalCopies",
                rule="range",
            )
        if self.available_copies < 0:
            raise ValidationError(
                "Available copies cannot be negative",
                field="availableCopies",
                rule="non_negative",
            )
        if self.available_copies > self.total_copies:
            raise ValidationError(
                "Available copies cannot exceed total copies",
                field="availableCopies",
                rule="within_total",
            )

    def __repr__(self) -> str:
        return (
            f"<Book(id={self.id}, isbn={self.isbn}, "
            f"available={self.available_copies}/{self.total_copies})>"
        )
