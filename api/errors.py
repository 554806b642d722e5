"""
Error taxonomy for the API.

Every failure leaving a service or router is one of these classes; the
exception handlers in ``api.main`` render them as ``ErrorResponse`` bodies.
"""

from typing import Any, Dict, List, Optional

from fastapi import status


class APIError(Exception):
    """Base class for failures that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extra(self) -> Dict[str, Any]:
        """Additional fields to include in the error body."""
        return {}


class ValidationFailure(APIError):
    """Submitted data violates field rules or cross-entity reference rules."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, errors: List[str], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = list(errors)

    def extra(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class MalformedIdentifier(APIError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid ID format"):
        super().__init__(message)


class NotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(APIError):
    """A uniqueness constraint was violated at the persistence layer."""

    status_code = status.HTTP_409_CONFLICT


class Unauthorized(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(
        self,
        message: str = "Please log in to access this resource",
        login_url: Optional[str] = None,
        redirect: bool = False
    ):
        super().__init__(message)
        self.login_url = login_url
        # Browser navigation gets a redirect to login_url instead of a JSON body
        self.redirect = redirect

    def extra(self) -> Dict[str, Any]:
        return {"login_url": self.login_url}


class Forbidden(APIError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class DependencyBlocked(APIError):
    """A delete was refused because dependent records still exist."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, dependent_count: int):
        super().__init__(message)
        self.dependent_count = dependent_count

    def extra(self) -> Dict[str, Any]:
        return {"book_count": self.dependent_count}


class Unexpected(APIError):
    """Any other persistence or runtime failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error", detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail
