"""Borrower API routes, served under ``/users``."""
from fastapi import APIRouter, Depends, status

from library_api.api.deps import IdPath, get_borrower_service, get_loan_service
from library_api.core.responses import success_response
from library_api.schemas.borrower import BorrowerCreate, BorrowerResponse, BorrowerUpdate
from library_api.schemas.common import Envelope, MessageResponse
from library_api.schemas.loan import LoanResponse
from library_api.services import BorrowerService, LoanService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=Envelope[list[BorrowerResponse]])
async def list_borrowers(
    service: BorrowerService = Depends(get_borrower_service),
) -> dict:
    borrowers = await service.get_borrowers()
    return success_response("Users retrieved successfully", borrowers)


@router.get("/{user_id}", response_model=Envelope[BorrowerResponse])
async def get_borrower(
    user_id: IdPath,
    service: BorrowerService = Depends(get_borrower_service),
) -> dict:
    borrower = await service.get_borrower(user_id)
    return success_response("User retrieved successfully", borrower)


@router.get("/{user_id}/assignments", response_model=Envelope[list[LoanResponse]])
async def list_borrower_loans(
    user_id: IdPath,
    loans: LoanService = Depends(get_loan_service),
) -> dict:
    """Every loan a borrower has had, newest first."""
    history = await loans.get_borrower_loans(user_id)
    return success_response("User assignments retrieved successfully", loans.present_many(history))


@router.post("", response_model=Envelope[BorrowerResponse], status_code=status.HTTP_201_CREATED)
async def create_borrower(
    borrower_data: BorrowerCreate,
    service: BorrowerService = Depends(get_borrower_service),
) -> dict:
    borrower = await service.create_borrower(borrower_data)
    return success_response("User created successfully", borrower)


@router.put("/{user_id}", response_model=Envelope[BorrowerResponse])
async def update_borrower(
    user_id: IdPath,
    borrower_data: BorrowerUpdate,
    service: BorrowerService = Depends(get_borrower_service),
) -> dict:
    borrower = await service.update_borrower(user_id, borrower_data)
    return success_response("User updated successfully", borrower)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_borrower(
    user_id: IdPath,
    service: BorrowerService = Depends(get_borrower_service),
) -> dict:
    """Delete a borrower. Refused while they still have a book out."""
    await service.delete_borrower(user_id)
    return success_response("User deleted successfully")
