"""Borrower service for managing library members."""
from sqlalchemy.ext.asyncio import AsyncSession

from library_api.core.exceptions import ConflictError, NotFoundError
from library_api.core.logging import get_logger
from library_api.models.borrower import (
    Borrower,
    format_name,
    normalize_email,
    normalize_student_id,
)
from library_api.schemas.borrower import BorrowerCreate, BorrowerUpdate
from library_api.storage import BorrowerStore, LoanStore

logger = get_logger("services.borrowers")


class BorrowerService:
    """Service for borrower operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.borrowers = BorrowerStore(db)
        self.loans = LoanStore(db)

    async def create_borrower(self, borrower_data: BorrowerCreate) -> Borrower:
        """Register a borrower with a unique email and student id."""
        borrower = Borrower.register(
            name=borrower_data.name,
            email=borrower_data.email,
            student_id=borrower_data.student_id,
            phone=borrower_data.phone,
        )
        existing = await self.borrowers.find_by_email_or_student_id(
            borrower.email, borrower.student_id
        )
        if existing:
            raise ConflictError(
                "User with this email or student ID already exists", ConflictError.DUPLICATE
            )

        borrower = await self.borrowers.add(borrower)
        logger.info(f"Registered borrower {borrower.id} ({borrower.student_id})")
        return borrower

    async def get_borrower(self, user_id: int) -> Borrower:
        borrower = await self.borrowers.find_by_id(user_id)
        if borrower is None:
            raise NotFoundError("User", user_id)
        return borrower

    async def get_borrowers(self) -> list[Borrower]:
        return await self.borrowers.find_all()

    async def update_borrower(self, user_id: int, borrower_data: BorrowerUpdate) -> Borrower:
        """Apply a partial update, keeping email and student id unique."""
        borrower = await self.get_borrower(user_id)
        update_data = borrower_data.model_dump(exclude_unset=True, exclude_none=True)

        if "name" in update_data:
            update_data["name"] = format_name(update_data["name"])
        if "email" in update_data:
            update_data["email"] = normalize_email(update_data["email"])
        if "student_id" in update_data:
            update_data["student_id"] = normalize_student_id(update_data["student_id"])

        if "email" in update_data or "student_id" in update_data:
            existing = await self.borrowers.find_by_email_or_student_id(
                update_data.get("email", borrower.email),
                update_data.get("student_id", borrower.student_id),
                exclude_id=user_id,
            )
            if existing:
                raise ConflictError(
                    "Email or Student ID already exists for another user",
                    ConflictError.DUPLICATE,
                )

        for field, value in update_data.items():
            setattr(borrower, field, value)

        borrower = await self.borrowers.save(borrower)
        logger.info(f"Updated borrower {borrower.id}")
        return borrower

    async def delete_borrower(self, user_id: int) -> Borrower:
        """Remove a borrower who has no books out."""
        borrower = await self.borrowers.find_by_id(user_id, for_update=True)
        if borrower is None:
            raise NotFoundError("User", user_id)

        if await self.loans.count_active_by_user(user_id) > 0:
            raise ConflictError(
                "Cannot delete user with active book assignments",
                ConflictError.HAS_ACTIVE_LOANS,
            )

        await self.borrowers.delete(borrower)
        logger.info(f"Deleted borrower {user_id}")
        return borrower
