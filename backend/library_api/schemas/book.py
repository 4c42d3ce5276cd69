"""Book Pydantic schemas."""
import re
from typing import Optional

from pydantic import Field, field_validator

from library_api.models.book import MAX_COPIES, MIN_COPIES, BookCategory
from library_api.schemas.common import BaseSchema, Pagination, TimestampMixin

ISBN_PATTERN = re.compile(
    r"^(?:ISBN(?:-1[03])?:? )?"
    r"(?=[0-9X]{10}$|(?=(?:[0-9]+[- ]){3})[- 0-9X]{13}$|97[89][0-9]{10}$|(?=(?:[0-9]+[- ]){4})[- 0-9]{17}$)"
    r"(?:97[89][- ]?)?[0-9]{1,5}[- ]?[0-9]+[- ]?[0-9]+[- ]?[0-9X]$"
)


def check_isbn(value: Optional[str]) -> Optional[str]:
    if value is not None and not ISBN_PATTERN.match(value):
        raise ValueError("Please provide a valid ISBN")
    return value


class BookBase(BaseSchema):
    """Base book schema."""

    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    isbn: str = Field(..., min_length=1)
    total_copies: int = Field(..., ge=MIN_COPIES, le=MAX_COPIES)
    category: BookCategory

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: Optional[str]) -> Optional[str]:
        return check_isbn(v)


class BookCreate(BookBase):
    """Schema for creating a book. All copies start on the shelf."""

    pass


class BookUpdate(BaseSchema):
    """Schema for updating a book."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    isbn: Optional[str] = Field(None, min_length=1)
    total_copies: Optional[int] = Field(None, ge=MIN_COPIES, le=MAX_COPIES)
    category: Optional[BookCategory] = None

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: Optional[str]) -> Optional[str]:
        return check_isbn(v)


class BookResponse(TimestampMixin):
    """Schema for book response."""

    id: int
    title: str
    author: str
    isbn: str
    category: str
    total_copies: int
    available_copies: int
    issued_copies: int
    is_available: bool


class BookSummary(BaseSchema):
    """Book fields attached to a loan."""

    id: int
    title: str
    author: str
    isbn: str


class BookPage(BaseSchema):
    """One page of books."""

    books: list[BookResponse]
    pagination: Pagination
