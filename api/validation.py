"""
Validation helpers for submitted data, path identifiers and pagination.

The ``validate_*`` functions are pure: they take a dict of submitted fields
and return every violated rule as a message, in field order.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import Query
from pydantic import BaseModel, Field

from api.errors import MalformedIdentifier, ValidationFailure


OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
ISBN_PATTERN = re.compile(r"^(?:\d{10}|\d{13})$")

# Fields allowed to be submitted as empty strings
EMPTY_ALLOWED_FIELDS = {"bio", "summary"}

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

AUTHOR_NAME_MIN = 2
AUTHOR_NAME_MAX = 100
AUTHOR_BIO_MAX = 1000
BOOK_TITLE_MIN = 1
BOOK_TITLE_MAX = 200
BOOK_YEAR_MIN = 1000
BOOK_PAGES_MIN = 1
BOOK_PAGES_MAX = 10000
BOOK_PRICE_MIN = 0
BOOK_PRICE_MAX = 1000
BOOK_TAGS_MAX = 10
BOOK_SUMMARY_MAX = 2000


def is_valid_object_id(value: Optional[str]) -> bool:
    return bool(value) and isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def validate_object_id(value: str) -> str:
    """
    Check a path identifier before any data access.

    Raises:
        MalformedIdentifier: If the value is not a 24-character hex string
    """
    if not is_valid_object_id(value):
        raise MalformedIdentifier()
    return value


def sanitize_input(data: Any) -> Any:
    """
    Trim string values and drop empty strings.

    ``bio`` and ``summary`` may legitimately be cleared, so they keep empty
    strings. Non-dict payloads are returned untouched.
    """
    if not isinstance(data, dict):
        return data

    cleaned = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip()
            if value == "" and key not in EMPTY_ALLOWED_FIELDS:
                continue
        cleaned[key] = value
    return cleaned


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _check_required(
    data: Dict[str, Any],
    field: str,
    message: str,
    partial: bool,
    errors: List[str]
) -> bool:
    """Append a required-field error when needed. Returns True if a value is present."""
    if field not in data:
        if not partial:
            errors.append(message)
        return False
    if _is_missing(data[field]):
        errors.append(message)
        return False
    return True


def _check_not_null(data: Dict[str, Any], field: str, message: str, errors: List[str]) -> bool:
    """Reject an explicit null for a field that has a stored default. Returns True if a value is present."""
    if field in data and data[field] is None:
        errors.append(message)
        return False
    return field in data


def validate_author(data: Dict[str, Any], partial: bool = False) -> List[str]:
    """
    Validate submitted author fields.

    Args:
        data: Submitted fields keyed by snake_case name
        partial: True for updates, where absent fields are not required

    Returns:
        List of violation messages, empty if valid
    """
    errors: List[str] = []

    if _check_required(data, "name", "Author name is required", partial, errors):
        name = data["name"]
        if len(name) < AUTHOR_NAME_MIN:
            errors.append(f"Author name must be at least {AUTHOR_NAME_MIN} characters")
        if len(name) > AUTHOR_NAME_MAX:
            errors.append(f"Author name must be at most {AUTHOR_NAME_MAX} characters")

    if _check_not_null(data, "bio", "Biography cannot be null", errors):
        if len(data["bio"]) > AUTHOR_BIO_MAX:
            errors.append(f"Biography must be at most {AUTHOR_BIO_MAX} characters")

    birth_date = data.get("birth_date")
    if birth_date is not None:
        if isinstance(birth_date, datetime):
            birth_date = birth_date.date()
        if birth_date > date.today():
            errors.append("Birth date cannot be in the future")

    _check_not_null(data, "nationality", "Nationality cannot be null", errors)

    if _check_not_null(data, "genres", "Genres must be a list of strings", errors):
        if any(not isinstance(g, str) or not g.strip() for g in data["genres"]):
            errors.append("Genres must be non-empty strings")

    return errors


def validate_book(data: Dict[str, Any], partial: bool = False) -> List[str]:
    """
    Validate submitted book fields.

    Args:
        data: Submitted fields keyed by snake_case name
        partial: True for updates, where absent fields are not required

    Returns:
        List of violation messages, empty if valid
    """
    errors: List[str] = []
    current_year = date.today().year

    if _check_required(data, "title", "Book title is required", partial, errors):
        title = data["title"]
        if len(title) < BOOK_TITLE_MIN:
            errors.append("Title cannot be empty")
        if len(title) > BOOK_TITLE_MAX:
            errors.append(f"Title must be at most {BOOK_TITLE_MAX} characters")

    if _check_required(data, "author_id", "Author ID is required", partial, errors):
        if not is_valid_object_id(data["author_id"]):
            errors.append("Author ID must be a 24-character hexadecimal identifier")

    _check_required(data, "genre", "Genre is required", partial, errors)

    published_year = data.get("published_year")
    if published_year is not None and not BOOK_YEAR_MIN <= published_year <= current_year:
        errors.append(f"Published year must be between {BOOK_YEAR_MIN} and {current_year}")

    pages = data.get("pages")
    if pages is not None and not BOOK_PAGES_MIN <= pages <= BOOK_PAGES_MAX:
        errors.append(f"Pages must be between {BOOK_PAGES_MIN} and {BOOK_PAGES_MAX}")

    if _check_required(data, "price", "Price is required", partial, errors):
        if not BOOK_PRICE_MIN <= data["price"] <= BOOK_PRICE_MAX:
            errors.append(f"Price must be between {BOOK_PRICE_MIN} and {BOOK_PRICE_MAX}")

    _check_not_null(data, "in_stock", "inStock must be a boolean", errors)

    if _check_not_null(data, "tags", "Tags must be a list of strings", errors):
        if len(data["tags"]) > BOOK_TAGS_MAX:
            errors.append(f"Cannot have more than {BOOK_TAGS_MAX} tags")

    if _check_not_null(data, "summary", "Summary cannot be null", errors):
        if len(data["summary"]) > BOOK_SUMMARY_MAX:
            errors.append(f"Summary must be at most {BOOK_SUMMARY_MAX} characters")

    isbn = data.get("isbn")
    if isbn is not None and not ISBN_PATTERN.match(isbn):
        errors.append("ISBN must be 10 or 13 digits")

    _check_not_null(data, "language", "Language cannot be null", errors)

    return errors


class Pagination(BaseModel):
    """Validated page/limit pair."""
    page: int = Field(DEFAULT_PAGE, ge=1, description="Page number")
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Items per page")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def page_count(self, total: int) -> int:
        return math.ceil(total / self.limit)


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return default


def parse_pagination(page: Optional[str] = None, limit: Optional[str] = None) -> Pagination:
    """
    Turn raw query values into a Pagination.

    Absent or non-numeric values fall back to the defaults; numeric values
    outside the allowed ranges are rejected.

    Raises:
        ValidationFailure: If page < 1 or limit is outside [1, 100]
    """
    page_number = _parse_int(page, DEFAULT_PAGE)
    limit_number = _parse_int(limit, DEFAULT_LIMIT)

    if page_number < 1 or limit_number < 1 or limit_number > MAX_LIMIT:
        message = "Invalid pagination parameters. Page must be >= 1, limit between 1-100"
        raise ValidationFailure([message], message=message)

    return Pagination(page=page_number, limit=limit_number)


def pagination_params(
    page: Optional[str] = Query(None, description="Page number (starts from 1)"),
    limit: Optional[str] = Query(None, description="Items per page (1-100)")
) -> Pagination:
    """FastAPI dependency wrapping parse_pagination."""
    return parse_pagination(page, limit)


def raise_for_errors(errors: List[str]) -> None:
    if errors:
        raise ValidationFailure(errors)
