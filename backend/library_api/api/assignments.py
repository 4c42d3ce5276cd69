"""Loan API routes, served under ``/assignments``."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from library_api.api.deps import IdPath, get_loan_service, page_size
from library_api.core.logging import get_logger
from library_api.core.responses import pagination_info, success_response
from library_api.schemas.common import Envelope
from library_api.schemas.loan import LoanIssue, LoanPage, LoanResponse, ReconcileReport
from library_api.services import LoanService

logger = get_logger("api.assignments")

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.get("", response_model=Envelope[list[LoanResponse]])
async def list_loans(
    service: LoanService = Depends(get_loan_service),
) -> dict:
    loans = await service.get_all_loans()
    return success_response("All assignments retrieved successfully", service.present_many(loans))


@router.get("/active", response_model=Envelope[list[LoanResponse]])
async def list_active_loans(
    service: LoanService = Depends(get_loan_service),
) -> dict:
    """Loans still out, most recently issued first."""
    loans = await service.get_active_loans()
    return success_response(
        "Active assignments retrieved successfully", service.present_many(loans)
    )


@router.get("/history", response_model=Envelope[LoanPage])
async def loan_history(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=0),
    service: LoanService = Depends(get_loan_service),
) -> dict:
    limit = page_size(limit)
    loans, total = await service.get_loan_history(page=page, limit=limit)
    return success_response(
        "Assignment history retrieved successfully",
        {
            "assignments": service.present_many(loans),
            "pagination": pagination_info(page, limit, total),
        },
    )


@router.post("/issue", response_model=Envelope[LoanResponse], status_code=status.HTTP_201_CREATED)
async def issue_book(
    loan_data: LoanIssue,
    service: LoanService = Depends(get_loan_service),
) -> dict:
    """Lend a copy of a book to a borrower."""
    loan = await service.issue_loan(loan_data.book_id, loan_data.user_id)
    return success_response("Book issued successfully", service.present(loan))


@router.put("/return/{loan_id}", response_model=Envelope[LoanResponse])
async def return_book(
    loan_id: IdPath,
    service: LoanService = Depends(get_loan_service),
) -> dict:
    loan = await service.return_loan(loan_id)
    return success_response("Book returned successfully", service.present(loan))


@router.post("/reconcile", response_model=Envelope[ReconcileReport])
async def reconcile_inventory(
    dry_run: bool = Query(False, alias="dryRun"),
    service: LoanService = Depends(get_loan_service),
) -> dict:
    """Repair available-copy counts that drifted from the issued loans."""
    report = await service.reconcile(dry_run=dry_run)
    if report.repaired:
        logger.info(f"Reconcile touched {len(report.repaired)} book(s), dry_run={dry_run}")
    return success_response("Inventory reconciled successfully", report)
