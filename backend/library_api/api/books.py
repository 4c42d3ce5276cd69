"""Book API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from library_api.api.deps import IdPath, get_book_service, page_size
from library_api.core.responses import pagination_info, success_response
from library_api.schemas.book import BookCreate, BookPage, BookResponse, BookUpdate
from library_api.schemas.common import Envelope, MessageResponse
from library_api.services import BookService

router = APIRouter(prefix="/books", tags=["Books"])


@router.get("", response_model=Envelope[BookPage])
async def list_books(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=0),
    service: BookService = Depends(get_book_service),
) -> dict:
    """List books, newest first."""
    limit = page_size(limit)
    books, total = await service.get_books(page=page, page_size=limit)
    return success_response(
        "Books retrieved successfully",
        {"books": books, "pagination": pagination_info(page, limit, total)},
    )


@router.get("/available", response_model=Envelope[list[BookResponse]])
async def list_available_books(
    service: BookService = Depends(get_book_service),
) -> dict:
    """List books with at least one copy on the shelf."""
    books = await service.get_available_books()
    return success_response("Available books retrieved successfully", books)


@router.get("/{book_id}", response_model=Envelope[BookResponse])
async def get_book(
    book_id: IdPath,
    service: BookService = Depends(get_book_service),
) -> dict:
    book = await service.get_book(book_id)
    return success_response("Book retrieved successfully", book)


@router.post("", response_model=Envelope[BookResponse], status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    service: BookService = Depends(get_book_service),
) -> dict:
    book = await service.create_book(book_data)
    return success_response("Book created successfully", book)


@router.put("/{book_id}", response_model=Envelope[BookResponse])
async def update_book(
    book_id: IdPath,
    book_data: BookUpdate,
    service: BookService = Depends(get_book_service),
) -> dict:
    book = await service.update_book(book_id, book_data)
    return success_response("Book updated successfully", book)


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: IdPath,
    service: BookService = Depends(get_book_service),
) -> dict:
    """Delete a book. Refused while any copy is out on loan."""
    await service.delete_book(book_id)
    return success_response("Book deleted successfully")
