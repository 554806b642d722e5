"""
Book endpoints.

- GET    /books              : paginated list, optional genre filter
- GET    /books/search?q=    : free-text search over title, genre and tags
- GET    /books/{id}         : one book with its author
- POST   /books              : create (session required)
- PUT    /books/{id}         : update (session required)
- DELETE /books/{id}         : delete (session required)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from api.auth import Identity, is_authenticated
from api.database import MongoDBManager, get_db
from api.models import (
    BookInput, BookListResponse, BookResponse,
    BookSearchResponse, ErrorResponse, MessageResponse
)
from api.services import BookService
from api.validation import Pagination, pagination_params, validate_object_id

router = APIRouter(prefix="/books", tags=["Books"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID or data"},
    404: {"model": ErrorResponse, "description": "Book not found"},
}
WRITE_ERROR_RESPONSES = {
    **ERROR_RESPONSES,
    401: {"model": ErrorResponse, "description": "Login required"},
}


def get_book_service(db: MongoDBManager = Depends(get_db)) -> BookService:
    return BookService(db)


def book_id_param(book_id: str = Path(..., description="24-character hexadecimal book ID")) -> str:
    return validate_object_id(book_id)


@router.get("", response_model=BookListResponse, responses={400: ERROR_RESPONSES[400]})
async def list_books(
    genre: Optional[str] = Query(None, description="Case-insensitive genre filter"),
    pagination: Pagination = Depends(pagination_params),
    service: BookService = Depends(get_book_service)
):
    """
    Get books sorted by title.

    - **genre**: Filter by genre (case-insensitive, partial match)
    - **page**: Page number (starts from 1)
    - **limit**: Items per page (1-100)
    """
    return await service.list_books(pagination, genre=genre)


@router.get("/search", response_model=BookSearchResponse, responses={400: ERROR_RESPONSES[400]})
async def search_books(
    q: Optional[str] = Query(None, description="Text to look for in title, genre or tags"),
    service: BookService = Depends(get_book_service)
):
    """Search books by title, genre or tags. Results are not paginated."""
    return await service.search_books(q)


@router.get("/{book_id}", response_model=BookResponse, responses=ERROR_RESPONSES)
async def get_book(
    book_id: str = Depends(book_id_param),
    service: BookService = Depends(get_book_service)
):
    """Get a single book with its author's name and nationality."""
    return await service.get_book(book_id)


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: ERROR_RESPONSES[400], 401: WRITE_ERROR_RESPONSES[401], 409: {"model": ErrorResponse}},
)
async def create_book(
    payload: BookInput,
    identity: Identity = Depends(is_authenticated),
    service: BookService = Depends(get_book_service)
):
    """Create a new book for an existing author. Requires login."""
    return await service.create_book(payload.model_dump(exclude_unset=True))


@router.put("/{book_id}", response_model=BookResponse, responses=WRITE_ERROR_RESPONSES)
async def update_book(
    payload: BookInput,
    book_id: str = Depends(book_id_param),
    identity: Identity = Depends(is_authenticated),
    service: BookService = Depends(get_book_service)
):
    """Update the submitted fields of a book. Requires login."""
    return await service.update_book(book_id, payload.model_dump(exclude_unset=True))


@router.delete("/{book_id}", response_model=MessageResponse, responses=WRITE_ERROR_RESPONSES)
async def delete_book(
    book_id: str = Depends(book_id_param),
    identity: Identity = Depends(is_authenticated),
    service: BookService = Depends(get_book_service)
):
    """Delete a book. Requires login."""
    await service.delete_book(book_id)
    return MessageResponse(message="Book deleted")
