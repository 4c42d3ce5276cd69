"""Book service for managing the catalogue."""
from sqlalchemy.ext.asyncio import AsyncSession

from library_api.core.exceptions import ConflictError, NotFoundError
from library_api.core.logging import get_logger
from library_api.models.book import Book
from library_api.schemas.book import BookCreate, BookUpdate
from library_api.storage import BookStore, LoanStore

logger = get_logger("services.books")


class BookService:
    """Service for book operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.books = BookStore(db)
        self.loans = LoanStore(db)

    async def create_book(self, book_data: BookCreate) -> Book:
        """Add a title to the catalogue with every copy on the shelf."""
        if await self.books.find_by_isbn(book_data.isbn):
            raise ConflictError("Book with this ISBN already exists", ConflictError.DUPLICATE)

        book = Book(
            title=book_data.title,
            author=book_data.author,
            isbn=book_data.isbn,
            total_copies=book_data.total_copies,
            available_copies=book_data.total_copies,
            category=book_data.category.value,
        )
        book = await self.books.add(book)
        logger.info(f"Added book {book.id} ({book.isbn}) with {book.total_copies} copies")
        return book

    async def get_book(self, book_id: int) -> Book:
        book = await self.books.find_by_id(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    async def get_books(self, page: int = 1, page_size: int = 10) -> tuple[list[Book], int]:
        """Get paginated books, newest first."""
        return await self.books.find_page(page, page_size)

    async def get_available_books(self) -> list[Book]:
        return await self.books.find_available()

    async def update_book(self, book_id: int, book_data: BookUpdate) -> Book:
        """Apply a partial update.

        Changing ``total_copies`` keeps the number of issued copies fixed and
        moves ``available_copies`` by the same amount.
        """
        book = await self.books.find_by_id(book_id, for_update=True)
        if book is None:
            raise NotFoundError("Book", book_id)

        update_data = book_data.model_dump(exclude_unset=True, exclude_none=True)

        isbn = update_data.get("isbn")
        if isbn and isbn != book.isbn:
            if await self.books.find_by_isbn(isbn, exclude_id=book_id):
                raise ConflictError(
                    "Book with this ISBN already exists", ConflictError.DUPLICATE
                )

        total = update_data.pop("total_copies", None)
        if total is not None and total != book.total_copies:
            available = total - book.issued_copies
            if available < 0:
                raise ConflictError(
                    "Cannot reduce total copies below currently issued books",
                    ConflictError.COPIES_BELOW_ISSUED,
                )
            book.total_copies = total
            book.available_copies = available

        if "category" in update_data:
            update_data["category"] = update_data["category"].value
        for field, value in update_data.items():
            setattr(book, field, value)

        book = await self.books.save(book)
        logger.info(f"Updated book {book.id}")
        return book

    async def delete_book(self, book_id: int) -> Book:
        """Remove a book that has no copies out on loan."""
        book = await self.books.find_by_id(book_id, for_update=True)
        if book is None:
            raise NotFoundError("Book", book_id)

        if await self.loans.count_active_by_book(book_id) > 0:
            raise ConflictError(
                "Cannot delete book with active assignments", ConflictError.HAS_ACTIVE_LOANS
            )

        await self.books.delete(book)
        logger.info(f"Deleted book {book_id} ({book.isbn})")
        return book
