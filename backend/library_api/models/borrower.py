"""Borrower model."""
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from library_api.database import Base


def format_name(name: str) -> str:
    """Capitalise each word of a borrower's name."""
    return " ".join(word.capitalize() for word in name.split())


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_student_id(student_id: str) -> str:
    return student_id.strip().upper()


class Borrower(Base):
    """A library member who can borrow books (``user`` on the wire)."""

    __tablename__ = "borrowers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    student_id: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @classmethod
    def register(cls, name: str, email: str, student_id: str, phone: str) -> "Borrower":
        """Build a borrower with normalised identity fields."""
        return cls(
            name=format_name(name),
            email=normalize_email(email),
            student_id=normalize_student_id(student_id),
            phone=phone.strip(),
        )

    @property
    def full_contact(self) -> str:
        return f"{self.name} ({self.email}, {self.phone})"

    def __repr__(self) -> str:
        return f"<Borrower(id={self.id}, email={self.email}, student_id={self.student_id})>"
