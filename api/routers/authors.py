"""
Author endpoints.

- GET    /authors             : paginated list
- GET    /authors/{id}        : one author
- GET    /authors/{id}/books  : an author and their books
- POST   /authors             : create (session required)
- PUT    /authors/{id}        : update (session required)
- DELETE /authors/{id}        : delete, refused while books reference it (session required)
"""

from fastapi import APIRouter, Depends, Path, status

from api.auth import Identity, is_authenticated
from api.database import MongoDBManager, get_db
from api.models import (
    AuthorBooksResponse, AuthorInput, AuthorListResponse,
    AuthorResponse, ErrorResponse, MessageResponse
)
from api.services import AuthorService
from api.validation import Pagination, pagination_params, validate_object_id

router = APIRouter(prefix="/authors", tags=["Authors"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid ID or data"},
    404: {"model": ErrorResponse, "description": "Author not found"},
}
WRITE_ERROR_RESPONSES = {
    **ERROR_RESPONSES,
    401: {"model": ErrorResponse, "description": "Login required"},
}


def get_author_service(db: MongoDBManager = Depends(get_db)) -> AuthorService:
    return AuthorService(db)


def author_id_param(author_id: str = Path(..., description="24-character hexadecimal author ID")) -> str:
    return validate_object_id(author_id)


@router.get("", response_model=AuthorListResponse, responses={400: ERROR_RESPONSES[400]})
async def list_authors(
    pagination: Pagination = Depends(pagination_params),
    service: AuthorService = Depends(get_author_service)
):
    """
    Get authors sorted by name.

    - **page**: Page number (starts from 1)
    - **limit**: Items per page (1-100)
    """
    return await service.list_authors(pagination)


@router.get("/{author_id}", response_model=AuthorResponse, responses=ERROR_RESPONSES)
async def get_author(
    author_id: str = Depends(author_id_param),
    service: AuthorService = Depends(get_author_service)
):
    """Get a single author by ID."""
    return await service.get_author(author_id)


@router.get("/{author_id}/books", response_model=AuthorBooksResponse, responses=ERROR_RESPONSES)
async def get_author_books(
    author_id: str = Depends(author_id_param),
    service: AuthorService = Depends(get_author_service)
):
    """Get an author together with a summary of each of their books."""
    return await service.get_author_books(author_id)


@router.post(
    "",
    response_model=AuthorResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: ERROR_RESPONSES[400], 401: WRITE_ERROR_RESPONSES[401], 409: {"model": ErrorResponse}},
)
async def create_author(
    payload: AuthorInput,
    identity: Identity = Depends(is_authenticated),
    service: AuthorService = Depends(get_author_service)
):
    """Create a new author. Requires login."""
    return await service.create_author(payload.model_dump(exclude_unset=True))


@router.put("/{author_id}", response_model=AuthorResponse, responses=WRITE_ERROR_RESPONSES)
async def update_author(
    payload: AuthorInput,
    author_id: str = Depends(author_id_param),
    identity: Identity = Depends(is_authenticated),
    service: AuthorService = Depends(get_author_service)
):
    """Update the submitted fields of an author. Requires login."""
    return await service.update_author(author_id, payload.model_dump(exclude_unset=True))


@router.delete("/{author_id}", response_model=MessageResponse, responses=WRITE_ERROR_RESPONSES)
async def delete_author(
    author_id: str = Depends(author_id_param),
    identity: Identity = Depends(is_authenticated),
    service: AuthorService = Depends(get_author_service)
):
    """
    Delete an author. Requires login.

    Refused with the number of dependent books while any book references the author.
    """
    await service.delete_author(author_id)
    return MessageResponse(message="Author deleted")
