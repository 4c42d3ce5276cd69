"""Loan service tests: issue, return, delete guards and reconciliation."""
import asyncio
import logging
from datetime import timedelta

import pytest
from sqlalchemy import delete, update

from conftest import T0, add_book, add_borrower
from library_api.core.exceptions import ConflictError, NotFoundError
from library_api.models import Book, LoanStatus
from library_api.services import BookService, BorrowerService, LoanService
from library_api.storage import LoanStore


@pytest.fixture
def loans(db, clock):
    return LoanService(db, clock=clock)


@pytest.mark.asyncio
async def test_issue_takes_a_copy_and_sets_due_date(db, loans):
    """Book(total=3) -> issue -> available=2, status issued, due in 14 days."""
    book = await add_book(db, total_copies=3)
    user = await add_borrower(db)

    loan = await loans.issue_loan(book.id, user.id)

    await db.refresh(book)
    assert book.available_copies == 2
    assert loan.status == LoanStatus.ISSUED
    assert loan.return_date is None
    assert loan.due_date - loan.issue_date == timedelta(days=14)
    assert loan.book.title == book.title
    assert loan.borrower.student_id == "S1001"


@pytest.mark.asyncio
async def test_issue_twice_to_same_borrower_conflicts(db, loans):
    book = await add_book(db, total_copies=3)
    user = await add_borrower(db)
    await loans.issue_loan(book.id, user.id)

    with pytest.raises(ConflictError) as exc_info:
        await loans.issue_loan(book.id, user.id)

    assert exc_info.value.reason == ConflictError.ALREADY_BORROWED
    assert exc_info.value.message == "User has already borrowed this book"
    await db.refresh(book)
    assert book.available_copies == 2


@pytest.mark.asyncio
async def test_issue_missing_book_or_borrower(db, loans):
    book = await add_book(db)
    user = await add_borrower(db)

    with pytest.raises(NotFoundError) as exc_info:
        await loans.issue_loan(999, user.id)
    assert exc_info.value.message == "Book not found"

    with pytest.raises(NotFoundError) as exc_info:
        await loans.issue_loan(book.id, 999)
    assert exc_info.value.message == "User not found"


@pytest.mark.asyncio
async def test_issue_checks_availability_before_borrower(db, loans):
    """No copies left wins over an unknown borrower."""
    book = await add_book(db, total_copies=1)
    user = await add_borrower(db)
    await loans.issue_loan(book.id, user.id)

    with pytest.raises(ConflictError) as exc_info:
        await loans.issue_loan(book.id, 999)
    assert exc_info.value.reason == ConflictError.NO_COPIES_AVAILABLE


@pytest.mark.asyncio
async def test_issue_never_goes_below_zero(db, loans):
    book = await add_book(db, total_copies=2)
    users = [await add_borrower(db, n) for n in range(1, 4)]

    await loans.issue_loan(book.id, users[0].id)
    await loans.issue_loan(book.id, users[1].id)
    with pytest.raises(ConflictError) as exc_info:
        await loans.issue_loan(book.id, users[2].id)

    assert exc_info.value.message == "Book is not available for issue"
    await db.refresh(book)
    assert book.available_copies == 0
    assert await LoanStore(db).count_active_by_book(book.id) == 2


@pytest.mark.asyncio
async def test_failed_insert_rolls_back_decrement(db, loans, monkeypatch):
    """A lost race on the unique index must not leave a copy missing."""
    book = await add_book(db, total_copies=3)
    user = await add_borrower(db)
    await loans.issue_loan(book.id, user.id)
    await db.commit()

    # Pretend the duplicate check ran before a concurrent insert landed
    async def no_active_loan(self, book_id, user_id):
        return None

    monkeypatch.setattr(LoanStore, "find_active_by_book_and_user", no_active_loan)

    with pytest.raises(ConflictError) as exc_info:
        await loans.issue_loan(book.id, user.id)

    assert exc_info.value.reason == ConflictError.ALREADY_BORROWED
    await db.refresh(book)
    assert book.available_copies == 2
    assert await LoanStore(db).count_active_by_book(book.id) == 1


@pytest.mark.asyncio
async def test_issue_then_return_restores_copies(db, loans, clock):
    book = await add_book(db, total_copies=3)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)

    clock.advance(days=3)
    returned = await loans.return_loan(loan.id)

    await db.refresh(book)
    assert book.available_copies == 3
    assert returned.status == LoanStatus.RETURNED
    assert returned.return_date is not None
    view = loans.present(returned)
    assert view["days_overdue"] == 0
    assert view["is_overdue"] is False
    assert view["duration"] == 3


@pytest.mark.asyncio
async def test_second_return_conflicts_without_mutation(db, loans):
    book = await add_book(db, total_copies=3)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)
    await loans.return_loan(loan.id)

    with pytest.raises(ConflictError) as exc_info:
        await loans.return_loan(loan.id)

    assert exc_info.value.reason == ConflictError.ALREADY_RETURNED
    assert exc_info.value.message == "Book has already been returned"
    await db.refresh(book)
    assert book.available_copies == 3


@pytest.mark.asyncio
async def test_return_unknown_loan(loans):
    with pytest.raises(NotFoundError) as exc_info:
        await loans.return_loan(42)
    assert exc_info.value.message == "Assignment not found"


@pytest.mark.asyncio
async def test_return_with_missing_book_still_succeeds(db, loans, caplog):
    book = await add_book(db)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)

    # Removed behind the service's back
    await db.execute(delete(Book).where(Book.id == book.id))

    with caplog.at_level(logging.WARNING, logger="library_api"):
        returned = await loans.return_loan(loan.id)

    assert returned.status == LoanStatus.RETURNED
    assert returned.book is None
    assert "inventory left unchanged" in caplog.text


@pytest.mark.asyncio
async def test_returned_loan_frees_the_pair_for_a_new_issue(db, loans):
    book = await add_book(db)
    user = await add_borrower(db)
    first = await loans.issue_loan(book.id, user.id)
    await loans.return_loan(first.id)

    second = await loans.issue_loan(book.id, user.id)

    assert second.id != first.id
    assert second.status == LoanStatus.ISSUED


@pytest.mark.asyncio
async def test_overdue_after_clock_moves_past_due_date(db, loans, clock):
    book = await add_book(db)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)

    clock.advance(days=24)

    view = loans.present(loan)
    assert view["is_overdue"] is True
    assert view["days_overdue"] == 10
    assert [l.id for l in await loans.get_overdue_loans()] == [loan.id]

    returned = await loans.return_loan(loan.id)
    view = loans.present(returned)
    assert view["is_overdue"] is False
    assert view["days_overdue"] == 0


@pytest.mark.asyncio
async def test_concurrent_issue_of_last_copy(session_factory, clock):
    """Two borrowers race for one copy: exactly one wins."""
    async with session_factory() as session:
        book = await add_book(session, total_copies=1)
        users = [await add_borrower(session, 1), await add_borrower(session, 2)]
        await session.commit()

    async def attempt(user_id):
        async with session_factory() as session:
            try:
                loan = await LoanService(session, clock=clock).issue_loan(book.id, user_id)
                await session.commit()
                return loan
            except ConflictError as exc:
                await session.rollback()
                return exc

    results = await asyncio.gather(*(attempt(user.id) for user in users))

    winners = [r for r in results if not isinstance(r, ConflictError)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].reason == ConflictError.NO_COPIES_AVAILABLE

    async with session_factory() as session:
        stored = await session.get(Book, book.id)
        assert stored.available_copies == 0


@pytest.mark.asyncio
async def test_concurrent_issue_of_same_pair(session_factory, clock):
    async with session_factory() as session:
        book = await add_book(session, total_copies=5)
        user = await add_borrower(session)
        await session.commit()

    async def attempt():
        async with session_factory() as session:
            try:
                loan = await LoanService(session, clock=clock).issue_loan(book.id, user.id)
                await session.commit()
                return loan
            except ConflictError as exc:
                await session.rollback()
                return exc

    results = await asyncio.gather(attempt(), attempt())

    assert sum(isinstance(r, ConflictError) for r in results) == 1
    async with session_factory() as session:
        stored = await session.get(Book, book.id)
        assert stored.available_copies == 4
        assert await LoanStore(session).count_active_by_user(user.id) == 1


@pytest.mark.asyncio
async def test_concurrent_issue_and_borrower_delete(session_factory, clock):
    """Either the loan lands and the delete is refused, or the borrower goes and the issue fails."""
    async with session_factory() as session:
        book = await add_book(session, total_copies=2)
        user = await add_borrower(session)
        await session.commit()

    async def issue():
        async with session_factory() as session:
            try:
                loan = await LoanService(session, clock=clock).issue_loan(book.id, user.id)
                await session.commit()
                return loan
            except NotFoundError as exc:
                await session.rollback()
                return exc

    async def remove():
        async with session_factory() as session:
            try:
                await BorrowerService(session).delete_borrower(user.id)
                await session.commit()
                return None
            except ConflictError as exc:
                await session.rollback()
                return exc

    issued, removed = await asyncio.gather(issue(), remove())

    async with session_factory() as session:
        borrower_left = await BorrowerService(session).borrowers.find_by_id(user.id)
        active = await LoanStore(session).count_active_by_user(user.id)
        stored = await session.get(Book, book.id)

    if borrower_left is None:
        assert isinstance(issued, NotFoundError)
        assert active == 0
        assert stored.available_copies == 2
    else:
        assert removed.reason == ConflictError.HAS_ACTIVE_LOANS
        assert active == 1
        assert stored.available_copies == 1

@pytest.mark.asyncio
async def test_delete_book_blocked_by_active_loan(db, loans):
    book = await add_book(db)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)
    books = BookService(db)

    with pytest.raises(ConflictError) as exc_info:
        await books.delete_book(book.id)
    assert exc_info.value.reason == ConflictError.HAS_ACTIVE_LOANS

    await loans.return_loan(loan.id)
    await books.delete_book(book.id)

    with pytest.raises(NotFoundError):
        await books.get_book(book.id)
    # History survives the book
    history, total = await loans.get_loan_history(page=1, limit=10)
    assert total == 1
    assert history[0].book is None


@pytest.mark.asyncio
async def test_delete_borrower_blocked_by_active_loan(db, loans):
    book = await add_book(db)
    user = await add_borrower(db)
    loan = await loans.issue_loan(book.id, user.id)
    borrowers = BorrowerService(db)

    with pytest.raises(ConflictError) as exc_info:
        await borrowers.delete_borrower(user.id)
    assert exc_info.value.message == "Cannot delete user with active book assignments"

    await loans.return_loan(loan.id)
    await borrowers.delete_borrower(user.id)

    with pytest.raises(NotFoundError):
        await borrowers.get_borrower(user.id)


@pytest.mark.asyncio
async def test_active_loans_and_history_order(db, loans, clock):
    book = await add_book(db, total_copies=5)
    users = [await add_borrower(db, n) for n in range(1, 4)]
    issued = []
    for user in users:
        issued.append(await loans.issue_loan(book.id, user.id))
        clock.advance(hours=1)
    await loans.return_loan(issued[0].id)

    active = await loans.get_active_loans()
    assert [l.id for l in active] == [issued[2].id, issued[1].id]

    page, total = await loans.get_loan_history(page=1, limit=2)
    assert total == 3
    assert [l.id for l in page] == [issued[2].id, issued[1].id]
    page, _ = await loans.get_loan_history(page=2, limit=2)
    assert [l.id for l in page] == [issued[0].id]

    mine = await loans.get_borrower_loans(users[0].id)
    assert [l.status for l in mine] == [LoanStatus.RETURNED]


@pytest.mark.asyncio
async def test_borrower_loans_for_unknown_borrower(loans):
    with pytest.raises(NotFoundError):
        await loans.get_borrower_loans(7)


@pytest.mark.asyncio
async def test_reconcile_repairs_drift(db, loans):
    book = await add_book(db, n=1, total_copies=3)
    steady = await add_book(db, n=2, total_copies=2)
    user = await add_borrower(db)
    await loans.issue_loan(book.id, user.id)

    # Someone edited the row by hand
    await db.execute(update(Book).where(Book.id == book.id).values(available_copies=3))

    dry = await loans.reconcile(dry_run=True)
    assert dry.books_checked == 2
    assert [(r.book_id, r.available_before, r.available_after) for r in dry.repaired] == [
        (book.id, 3, 2)
    ]
    await db.refresh(book)
    assert book.available_copies == 3

    report = await loans.reconcile()
    assert [r.book_id for r in report.repaired] == [book.id]
    await db.refresh(book)
    await db.refresh(steady)
    assert book.available_copies == 2
    assert steady.available_copies == 2

    again = await loans.reconcile()
    assert again.repaired == []


@pytest.mark.asyncio
async def test_reconcile_reports_over_issue_and_orphans(db, loans):
    book = await add_book(db, n=1, total_copies=2)
    gone = await add_book(db, n=2, total_copies=1)
    users = [await add_borrower(db, n) for n in range(1, 3)]
    await loans.issue_loan(book.id, users[0].id)
    await loans.issue_loan(book.id, users[1].id)
    await loans.issue_loan(gone.id, users[0].id)

    await db.execute(update(Book).where(Book.id == book.id).values(total_copies=1, available_copies=1))
    await db.execute(delete(Book).where(Book.id == gone.id))

    report = await loans.reconcile()

    assert report.over_issued_book_ids == [book.id]
    assert report.orphaned_book_ids == [gone.id]
    await db.refresh(book)
    assert book.available_copies == 0


@pytest.mark.asyncio
async def test_loan_period_is_configurable(db, clock):
    book = await add_book(db)
    user = await add_borrower(db)

    loan = await LoanService(db, clock=clock, loan_period_days=7).issue_loan(book.id, user.id)

    view = LoanService(db, clock=clock).present(loan)
    assert view["due_date"].date() == (T0 + timedelta(days=7)).date()
