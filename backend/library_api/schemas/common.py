"""Common Pydantic schemas."""
from datetime import datetime
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")

# Largest value a 64-bit INTEGER primary key can hold
MAX_ID = 2**63 - 1

RecordId = Annotated[int, Field(ge=1, le=MAX_ID)]


class BaseSchema(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class TimestampMixin(BaseSchema):
    """Mixin for timestamp fields."""

    created_at: datetime
    updated_at: Optional[datetime] = None


class Pagination(BaseSchema):
    """Pagination metadata."""

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None


class Envelope(BaseSchema, Generic[DataT]):
    """Success envelope wrapping every payload."""

    success: bool = True
    message: str
    data: Optional[DataT] = None
    timestamp: datetime


class MessageResponse(BaseSchema):
    """Envelope without a payload."""

    success: bool = True
    message: str
    timestamp: datetime


class ErrorDetail(BaseModel):
    """One field-level validation failure."""

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope."""

    success: bool = False
    message: str
    errors: Optional[list[ErrorDetail]] = None
    timestamp: datetime
