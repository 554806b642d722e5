"""
API models and schemas for the catalog.

Documents are stored with snake_case keys; request and response bodies use
camelCase aliases. Derived fields (age, availability, isClassic,
githubProfile) are computed when a document is read and never stored.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from api.validation import sanitize_input


GITHUB_PROFILE_BASE = "https://github.com"
CLASSIC_AGE_YEARS = 50


class UserRole(str, Enum):
    """User role enumeration."""
    USER = "user"
    ADMIN = "admin"


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases while accepting field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def calculate_age(birth_date: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole years between birth_date and today, or None without a birth date."""
    if birth_date is None:
        return None
    if isinstance(birth_date, datetime):
        birth_date = birth_date.date()
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def book_availability(in_stock: bool) -> str:
    return "In Stock" if in_stock else "Out of Stock"


def is_classic(published_year: Optional[int], current_year: Optional[int] = None) -> bool:
    """A book is a classic once it is at least fifty years old."""
    if not published_year:
        return False
    current_year = current_year or date.today().year
    return current_year - published_year >= CLASSIC_AGE_YEARS


def github_profile_url(username: str, github_id: Optional[str]) -> Optional[str]:
    if not github_id:
        return None
    return f"{GITHUB_PROFILE_BASE}/{username}"


def _object_id_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Request bodies


class AuthorInput(CamelModel):
    """Submitted author fields. Everything is optional so PUT can be partial."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "name": "Ursula K. Le Guin",
                "bio": "American author of speculative fiction.",
                "birthDate": "1929-10-21",
                "nationality": "American",
                "website": "https://www.ursulakleguin.com",
                "genres": ["Fantasy", "Science Fiction"]
            }
        },
    )

    name: Optional[str] = None
    bio: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    website: Optional[str] = None
    genres: Optional[List[str]] = None

    @model_validator(mode="before")
    @classmethod
    def sanitize(cls, data: Any) -> Any:
        return sanitize_input(data)


class BookInput(CamelModel):
    """Submitted book fields. Everything is optional so PUT can be partial."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "title": "A Wizard of Earthsea",
                "authorId": "64b7f0c2e4b0a1a2b3c4d5e6",
                "genre": "Fantasy",
                "publishedYear": 1968,
                "pages": 183,
                "price": 12.99,
                "inStock": True,
                "tags": ["magic", "coming of age"],
                "summary": "A young wizard learns the cost of power.",
                "isbn": "9780547773742",
                "language": "English"
            }
        },
    )

    title: Optional[str] = None
    author_id: Optional[str] = None
    genre: Optional[str] = None
    published_year: Optional[int] = None
    pages: Optional[int] = None
    price: Optional[float] = None
    in_stock: Optional[bool] = None
    tags: Optional[List[str]] = None
    summary: Optional[str] = None
    isbn: Optional[str] = None
    language: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def sanitize(cls, data: Any) -> Any:
        return sanitize_input(data)


# ---------------------------------------------------------------------------
# Responses


class AuthorResponse(CamelModel):
    """Author response model for API."""
    id: str = Field(..., description="Unique author identifier")
    name: str = Field(..., description="Author name")
    bio: str = Field("", description="Biography")
    birth_date: Optional[date] = Field(None, description="Date of birth")
    nationality: str = Field("", description="Nationality")
    website: Optional[str] = Field(None, description="Personal website")
    genres: List[str] = Field(default_factory=list, description="Genres the author writes in")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    age: Optional[int] = Field(None, description="Age in years, derived from birthDate")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuthorResponse":
        birth_date = doc.get("birth_date")
        if isinstance(birth_date, datetime):
            birth_date = birth_date.date()
        return cls(
            id=_object_id_str(doc["_id"]),
            name=doc["name"],
            bio=doc.get("bio") or "",
            birth_date=birth_date,
            nationality=doc.get("nationality") or "",
            website=doc.get("website"),
            genres=doc.get("genres") or [],
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            age=calculate_age(birth_date),
        )


class AuthorSummary(CamelModel):
    """Author fields embedded in a book detail response."""
    id: str
    name: str
    nationality: str = ""

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuthorSummary":
        return cls(
            id=_object_id_str(doc["_id"]),
            name=doc["name"],
            nationality=doc.get("nationality") or "",
        )


class BookResponse(CamelModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    author_id: str = Field(..., description="Identifier of the book's author")
    genre: str = Field(..., description="Book genre")
    published_year: Optional[int] = Field(None, description="Year of publication")
    pages: Optional[int] = Field(None, description="Number of pages")
    price: float = Field(..., description="Price")
    in_stock: bool = Field(True, description="Whether the book is in stock")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    summary: str = Field("", description="Book summary")
    isbn: Optional[str] = Field(None, description="ISBN-10 or ISBN-13")
    language: str = Field("English", description="Language of the edition")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    availability: str = Field(..., description="Availability status, derived from inStock")
    is_classic: bool = Field(False, description="Whether the book is at least fifty years old")
    author: Optional[AuthorSummary] = Field(None, description="Referenced author, on detail requests")

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        author: Optional[Dict[str, Any]] = None
    ) -> "BookResponse":
        in_stock = doc.get("in_stock")
        if in_stock is None:
            in_stock = True
        return cls(
            id=_object_id_str(doc["_id"]),
            title=doc["title"],
            author_id=_object_id_str(doc["author_id"]),
            genre=doc["genre"],
            published_year=doc.get("published_year"),
            pages=doc.get("pages"),
            price=doc["price"],
            in_stock=in_stock,
            tags=doc.get("tags") or [],
            summary=doc.get("summary") or "",
            isbn=doc.get("isbn"),
            language=doc.get("language") or "English",
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            availability=book_availability(in_stock),
            is_classic=is_classic(doc.get("published_year")),
            author=AuthorSummary.from_document(author) if author else None,
        )


class BookSummary(CamelModel):
    """Projection of a book used when listing an author's books."""
    id: str
    title: str
    genre: str
    published_year: Optional[int] = None
    price: float
    in_stock: bool = True

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookSummary":
        return cls(
            id=_object_id_str(doc["_id"]),
            title=doc["title"],
            genre=doc["genre"],
            published_year=doc.get("published_year"),
            price=doc["price"],
            in_stock=doc.get("in_stock") is not False,
        )


class PaginatedResponse(CamelModel):
    """Pagination envelope fields shared by list responses."""
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    total: int = Field(..., description="Total number of matching items")
    pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")


class AuthorListResponse(PaginatedResponse):
    authors: List[AuthorResponse] = Field(..., description="List of authors")


class BookListResponse(PaginatedResponse):
    books: List[BookResponse] = Field(..., description="List of books")


class BookSearchResponse(CamelModel):
    """Unpaginated search results."""
    query: str
    count: int
    books: List[BookResponse]


class AuthorBooksResponse(CamelModel):
    author: AuthorResponse
    count: int
    books: List[BookSummary]


class MessageResponse(CamelModel):
    message: str


class UserRecord(CamelModel):
    """A stored user, including the password hash. Never returned to clients."""
    id: str
    username: str
    email: str
    password: Optional[str] = None
    github_id: Optional[str] = None
    display_name: Optional[str] = None
    profile_url: Optional[str] = None
    role: UserRole = UserRole.USER
    email_is_placeholder: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserRecord":
        return cls(
            id=_object_id_str(doc["_id"]),
            username=doc["username"],
            email=doc["email"],
            password=doc.get("password"),
            github_id=doc.get("github_id"),
            display_name=doc.get("display_name"),
            profile_url=doc.get("profile_url"),
            role=doc.get("role") or UserRole.USER,
            email_is_placeholder=doc.get("email_is_placeholder", False),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserResponse(CamelModel):
    """Public view of a user."""
    id: str
    username: str
    email: str
    display_name: Optional[str] = None
    role: UserRole = UserRole.USER
    github_profile: Optional[str] = None

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            github_profile=github_profile_url(user.username, user.github_id),
        )


class CurrentUserResponse(CamelModel):
    user: UserResponse
    environment: str


class ExternalProfile(BaseModel):
    """Identity payload received after a successful GitHub handshake."""
    id: str = Field(..., description="Provider user id")
    username: str = Field(..., description="Provider login")
    display_name: Optional[str] = Field(None, description="Provider display name")
    profile_url: Optional[str] = Field(None, description="Provider profile page")
    emails: List[str] = Field(default_factory=list, description="Provider emails, preferred first")


class ErrorResponse(CamelModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    status_code: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Additional error details")
    errors: Optional[List[str]] = Field(None, description="Every violated rule")
    login_url: Optional[str] = Field(None, description="Where to log in")
    book_count: Optional[int] = Field(None, description="Number of dependent books")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
