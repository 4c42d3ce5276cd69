"""Borrower Pydantic schemas (``user`` on the wire)."""
from typing import Optional

from pydantic import EmailStr, Field

from library_api.schemas.common import BaseSchema, TimestampMixin

NAME_PATTERN = r"^[a-zA-Z\s]+$"
STUDENT_ID_PATTERN = r"^[a-zA-Z0-9]+$"
PHONE_PATTERN = r"^[+]?[0-9]{10,15}$"


class BorrowerBase(BaseSchema):
    """Base borrower schema."""

    name: str = Field(..., min_length=2, max_length=100, pattern=NAME_PATTERN)
    email: EmailStr
    student_id: str = Field(..., min_length=3, max_length=20, pattern=STUDENT_ID_PATTERN)
    phone: str = Field(..., pattern=PHONE_PATTERN)


class BorrowerCreate(BorrowerBase):
    """Schema for registering a borrower."""

    pass


class BorrowerUpdate(BaseSchema):
    """Schema for updating a borrower."""

    name: Optional[str] = Field(None, min_length=2, max_length=100, pattern=NAME_PATTERN)
    email: Optional[EmailStr] = None
    student_id: Optional[str] = Field(
        None, min_length=3, max_length=20, pattern=STUDENT_ID_PATTERN
    )
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class BorrowerResponse(TimestampMixin):
    """Schema for borrower response."""

    id: int
    name: str
    email: str
    student_id: str
    phone: str
    full_contact: str


class BorrowerSummary(BaseSchema):
    """Borrower fields attached to a loan."""

    id: int
    name: str
    email: str
    student_id: str
