"""Dependency providers for the API routes."""
from typing import Annotated, Optional

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from library_api.config import settings
from library_api.core.dates import Clock, utcnow
from library_api.database import get_db
from library_api.schemas.common import MAX_ID
from library_api.services import BookService, BorrowerService, LoanService

# Ids outside this range can never match a row; they are rejected as malformed
IdPath = Annotated[int, Path(ge=1, le=MAX_ID)]


def get_clock() -> Clock:
    """Time source for loan dates. Overridden in tests to pin ``now``."""
    return utcnow


def page_size(limit: Optional[int]) -> int:
    """Requested page size, defaulted and capped by the settings. Zero means the default."""
    return min(limit or settings.default_page_size, settings.max_page_size)


def get_book_service(db: AsyncSession = Depends(get_db)) -> BookService:
    return BookService(db)


def get_borrower_service(db: AsyncSession = Depends(get_db)) -> BorrowerService:
    return BorrowerService(db)


def get_loan_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> LoanService:
    return LoanService(db, clock=clock)
