"""API routes."""
from fastapi import APIRouter

from library_api.api.assignments import router as assignments_router
from library_api.api.books import router as books_router
from library_api.api.borrowers import router as borrowers_router

# Create main API router
api_router = APIRouter(prefix="/api")

# Include all route modules
api_router.include_router(books_router)
api_router.include_router(borrowers_router)
api_router.include_router(assignments_router)

__all__ = ["api_router"]
