"""
Route groups mounted by ``api.main``.
"""

from api.routers.auth import router as auth_router, users_router
from api.routers.authors import router as authors_router
from api.routers.books import router as books_router

__all__ = ["auth_router", "authors_router", "books_router", "users_router"]
