"""
Database service layer for authors, books and users.

Services validate submitted data, enforce cross-entity rules, apply the
pre-persistence transforms and translate persistence errors into the API
error taxonomy.
"""

import asyncio
import re
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

import bcrypt
import structlog
from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from api.database import MongoDBManager
from api.errors import Conflict, DependencyBlocked, NotFound, Unexpected, ValidationFailure
from api.models import (
    AuthorBooksResponse, AuthorListResponse, AuthorResponse,
    BookListResponse, BookResponse, BookSearchResponse, BookSummary,
    UserRecord, UserRole
)
from api.validation import Pagination, is_valid_object_id, raise_for_errors, validate_author, validate_book

logger = structlog.get_logger(__name__)

PASSWORD_HASH_ROUNDS = 12

BOOK_SUMMARY_PROJECTION = {
    "title": 1, "genre": 1, "published_year": 1, "price": 1, "in_stock": 1
}


def author_defaults() -> Dict[str, Any]:
    """Stored values for author fields left out of a create request. A fresh dict per call."""
    return {"bio": "", "nationality": "", "genres": []}


def book_defaults() -> Dict[str, Any]:
    return {"in_stock": True, "tags": [], "summary": "", "language": "English"}


# ---------------------------------------------------------------------------
# Pre-persistence transforms


def stamp_created(doc: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Set both timestamps on a document about to be inserted."""
    now = now or datetime.utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    return doc


def stamp_updated(changes: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Set updated_at on a change set about to be written."""
    changes["updated_at"] = now or datetime.utcnow()
    return changes


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=PASSWORD_HASH_ROUNDS)).decode("utf-8")


def verify_password(candidate: str, password_hash: Optional[str]) -> bool:
    """Compare a candidate password with a stored hash. False when no hash is stored."""
    if not password_hash:
        return False
    return bcrypt.checkpw(candidate.encode("utf-8"), password_hash.encode("utf-8"))


async def prepare_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalise a user document before it is written.

    Trims and lowercases the email and replaces a plain password with its
    bcrypt hash. Hashing runs in a worker thread.
    """
    if doc.get("email"):
        doc["email"] = doc["email"].strip().lower()
    if doc.get("username"):
        doc["username"] = doc["username"].strip()
    if doc.get("password"):
        doc["password"] = await asyncio.to_thread(hash_password, doc["password"])
    return doc


def _storable_date(value: Optional[date]) -> Optional[datetime]:
    # BSON has no date-only type
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _text_pattern(text: str) -> Dict[str, str]:
    """Case-insensitive substring match on the literal text."""
    return {"$regex": re.escape(text), "$options": "i"}


class AuthorService:
    """Author operations."""

    def __init__(self, db: MongoDBManager):
        self.db = db

    async def list_authors(self, pagination: Pagination) -> AuthorListResponse:
        """
        Get authors sorted by name with pagination.

        Args:
            pagination: Validated page and limit

        Returns:
            AuthorListResponse with paginated results
        """
        try:
            total = await self.db.authors.count_documents({})
            cursor = (
                self.db.authors.find({})
                .sort("name", ASCENDING)
                .skip(pagination.skip)
                .limit(pagination.limit)
            )
            docs = await cursor.to_list(length=pagination.limit)
        except PyMongoError as e:
            logger.error("Failed to list authors", error=str(e), page=pagination.page)
            raise Unexpected("Error retrieving authors", detail=str(e))

        pages = pagination.page_count(total)
        return AuthorListResponse(
            authors=[AuthorResponse.from_document(doc) for doc in docs],
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            pages=pages,
            has_next=pagination.page < pages,
            has_prev=pagination.page > 1,
        )

    async def _find(self, author_id: str) -> Dict[str, Any]:
        try:
            doc = await self.db.authors.find_one({"_id": ObjectId(author_id)})
        except PyMongoError as e:
            logger.error("Failed to get author", author_id=author_id, error=str(e))
            raise Unexpected("Error retrieving author", detail=str(e))
        if not doc:
            raise NotFound("Author not found")
        return doc

    async def get_author(self, author_id: str) -> AuthorResponse:
        return AuthorResponse.from_document(await self._find(author_id))

    async def get_author_books(self, author_id: str) -> AuthorBooksResponse:
        """Get an author together with a summary of every book they wrote."""
        author = await self._find(author_id)
        try:
            cursor = self.db.books.find(
                {"author_id": author["_id"]}, BOOK_SUMMARY_PROJECTION
            ).sort("title", ASCENDING)
            books = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to get author's books", author_id=author_id, error=str(e))
            raise Unexpected("Error retrieving author's books", detail=str(e))

        return AuthorBooksResponse(
            author=AuthorResponse.from_document(author),
            count=len(books),
            books=[BookSummary.from_document(doc) for doc in books],
        )

    async def create_author(self, data: Dict[str, Any]) -> AuthorResponse:
        """
        Validate and insert a new author.

        Args:
            data: Submitted fields keyed by snake_case name

        Raises:
            ValidationFailure: If any field rule is violated
            Conflict: If a uniqueness constraint is violated
        """
        raise_for_errors(validate_author(data))

        doc = {**author_defaults(), **data}
        doc["birth_date"] = _storable_date(doc.get("birth_date"))
        stamp_created(doc)

        try:
            result = await self.db.authors.insert_one(doc)
        except DuplicateKeyError as e:
            logger.warning("Duplicate author rejected", name=data.get("name"), error=str(e))
            raise Conflict("An author with these details already exists")
        except PyMongoError as e:
            logger.error("Failed to create author", error=str(e))
            raise Unexpected("Error creating author", detail=str(e))

        doc["_id"] = result.inserted_id
        logger.info("Author created", author_id=str(result.inserted_id), name=doc["name"])
        return AuthorResponse.from_document(doc)

    async def update_author(self, author_id: str, data: Dict[str, Any]) -> AuthorResponse:
        """Apply the submitted fields to an existing author."""
        raise_for_errors(validate_author(data, partial=True))

        changes = dict(data)
        if "birth_date" in changes:
            changes["birth_date"] = _storable_date(changes["birth_date"])
        stamp_updated(changes)

        try:
            doc = await self.db.authors.find_one_and_update(
                {"_id": ObjectId(author_id)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning("Duplicate author rejected", author_id=author_id, error=str(e))
            raise Conflict("An author with these details already exists")
        except PyMongoError as e:
            logger.error("Failed to update author", author_id=author_id, error=str(e))
            raise Unexpected("Error updating author", detail=str(e))

        if not doc:
            raise NotFound("Author not found")
        logger.info("Author updated", author_id=author_id, fields=sorted(data))
        return AuthorResponse.from_document(doc)

    async def delete_author(self, author_id: str) -> None:
        """
        Delete an author that no book references.

        Raises:
            NotFound: If the author does not exist
            DependencyBlocked: If books still reference the author
        """
        author = await self._find(author_id)
        try:
            book_count = await self.db.books.count_documents({"author_id": author["_id"]})
            if book_count > 0:
                logger.info("Author delete blocked", author_id=author_id, book_count=book_count)
                raise DependencyBlocked(
                    f"Cannot delete author with {book_count} existing book(s). "
                    "Delete or reassign the books first.",
                    dependent_count=book_count,
                )
            await self.db.authors.delete_one({"_id": author["_id"]})
        except PyMongoError as e:
            logger.error("Failed to delete author", author_id=author_id, error=str(e))
            raise Unexpected("Error deleting author", detail=str(e))

        logger.info("Author deleted", author_id=author_id)


class BookService:
    """Book operations."""

    def __init__(self, db: MongoDBManager):
        self.db = db

    async def list_books(self, pagination: Pagination, genre: Optional[str] = None) -> BookListResponse:
        """
        Get books sorted by title with optional genre filter and pagination.

        Args:
            pagination: Validated page and limit
            genre: Case-insensitive genre substring

        Returns:
            BookListResponse with paginated results
        """
        filter_query: Dict[str, Any] = {}
        if genre:
            filter_query["genre"] = _text_pattern(genre)

        try:
            # Count and page use the same filter
            total = await self.db.books.count_documents(filter_query)
            cursor = (
                self.db.books.find(filter_query)
                .sort("title", ASCENDING)
                .skip(pagination.skip)
                .limit(pagination.limit)
            )
            docs = await cursor.to_list(length=pagination.limit)
        except PyMongoError as e:
            logger.error("Failed to list books", error=str(e), genre=genre, page=pagination.page)
            raise Unexpected("Error retrieving books", detail=str(e))

        pages = pagination.page_count(total)
        return BookListResponse(
            books=[BookResponse.from_document(doc) for doc in docs],
            page=pagination.page,
            limit=pagination.limit,
            total=total,
            pages=pages,
            has_next=pagination.page < pages,
            has_prev=pagination.page > 1,
        )

    async def search_books(self, query: Optional[str]) -> BookSearchResponse:
        """
        Match books whose title, genre or tags contain the query text.

        Raises:
            ValidationFailure: If the query is missing or blank
        """
        text = (query or "").strip()
        if not text:
            raise ValidationFailure(["Search query 'q' is required"], message="Search query is required")

        pattern = _text_pattern(text)
        filter_query = {"$or": [{"title": pattern}, {"genre": pattern}, {"tags": pattern}]}
        try:
            cursor = self.db.books.find(filter_query).sort("title", ASCENDING)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to search books", query=text, error=str(e))
            raise Unexpected("Error searching books", detail=str(e))

        return BookSearchResponse(
            query=text,
            count=len(docs),
            books=[BookResponse.from_document(doc) for doc in docs],
        )

    async def _find(self, book_id: str) -> Dict[str, Any]:
        try:
            doc = await self.db.books.find_one({"_id": ObjectId(book_id)})
        except PyMongoError as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise Unexpected("Error retrieving book", detail=str(e))
        if not doc:
            raise NotFound("Book not found")
        return doc

    async def _require_author(self, author_id: str) -> None:
        try:
            exists = await self.db.authors.count_documents({"_id": ObjectId(author_id)}, limit=1)
        except PyMongoError as e:
            logger.error("Failed to check author", author_id=author_id, error=str(e))
            raise Unexpected("Error checking author", detail=str(e))
        if not exists:
            raise ValidationFailure(
                [f"Author with ID {author_id} does not exist"],
                message="Referenced author does not exist",
            )

    async def get_book(self, book_id: str) -> BookResponse:
        """Get a book enriched with its author's details."""
        doc = await self._find(book_id)
        try:
            author = await self.db.authors.find_one({"_id": doc["author_id"]})
        except PyMongoError as e:
            logger.error("Failed to get book author", book_id=book_id, error=str(e))
            raise Unexpected("Error retrieving book", detail=str(e))
        return BookResponse.from_document(doc, author=author)

    async def create_book(self, data: Dict[str, Any]) -> BookResponse:
        """
        Validate and insert a new book whose author must already exist.

        Raises:
            ValidationFailure: If a field rule is violated or the author is missing
            Conflict: If a uniqueness constraint is violated
        """
        raise_for_errors(validate_book(data))
        await self._require_author(data["author_id"])

        doc = {**book_defaults(), **data}
        doc["author_id"] = ObjectId(data["author_id"])
        stamp_created(doc)

        try:
            result = await self.db.books.insert_one(doc)
        except DuplicateKeyError as e:
            logger.warning("Duplicate book rejected", title=data.get("title"), error=str(e))
            raise Conflict("A book with these details already exists")
        except PyMongoError as e:
            logger.error("Failed to create book", error=str(e))
            raise Unexpected("Error creating book", detail=str(e))

        doc["_id"] = result.inserted_id
        logger.info("Book created", book_id=str(result.inserted_id), title=doc["title"])
        return BookResponse.from_document(doc)

    async def update_book(self, book_id: str, data: Dict[str, Any]) -> BookResponse:
        """Apply the submitted fields to an existing book."""
        raise_for_errors(validate_book(data, partial=True))
        existing = await self._find(book_id)

        changes = dict(data)
        if "author_id" in changes:
            if changes["author_id"] != str(existing["author_id"]):
                await self._require_author(changes["author_id"])
            changes["author_id"] = ObjectId(changes["author_id"])
        stamp_updated(changes)

        try:
            doc = await self.db.books.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning("Duplicate book rejected", book_id=book_id, error=str(e))
            raise Conflict("A book with these details already exists")
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise Unexpected("Error updating book", detail=str(e))

        if not doc:
            raise NotFound("Book not found")
        logger.info("Book updated", book_id=book_id, fields=sorted(data))
        return BookResponse.from_document(doc)

    async def delete_book(self, book_id: str) -> None:
        try:
            result = await self.db.books.delete_one({"_id": ObjectId(book_id)})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise Unexpected("Error deleting book", detail=str(e))
        if result.deleted_count == 0:
            raise NotFound("Book not found")
        logger.info("Book deleted", book_id=book_id)


class UserService:
    """User lookups and writes used by identity resolution and the admin CLI."""

    def __init__(self, db: MongoDBManager):
        self.db = db

    async def _find_one(self, filter_query: Dict[str, Any]) -> Optional[UserRecord]:
        try:
            doc = await self.db.users.find_one(filter_query)
        except PyMongoError as e:
            logger.error("Failed to get user", error=str(e))
            raise Unexpected("Error retrieving user", detail=str(e))
        return UserRecord.from_document(doc) if doc else None

    async def get_by_id(self, user_id: Optional[str]) -> Optional[UserRecord]:
        if not is_valid_object_id(user_id):
            return None
        return await self._find_one({"_id": ObjectId(user_id)})

    async def get_by_github_id(self, github_id: str) -> Optional[UserRecord]:
        return await self._find_one({"github_id": github_id})

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        return await self._find_one({"email": email.strip().lower()})

    async def get_by_username(self, username: str) -> Optional[UserRecord]:
        return await self._find_one({"username": username})

    async def create_user(self, data: Dict[str, Any]) -> UserRecord:
        """
        Insert a new user.

        Raises:
            Conflict: If the username, email or GitHub id is already taken
        """
        doc = {"role": UserRole.USER.value, **data}
        await prepare_user(doc)
        stamp_created(doc)

        try:
            result = await self.db.users.insert_one(doc)
        except DuplicateKeyError as e:
            logger.warning("Duplicate user rejected", username=doc.get("username"), error=str(e))
            raise Conflict("A user with this username, email or GitHub account already exists")
        except PyMongoError as e:
            logger.error("Failed to create user", error=str(e))
            raise Unexpected("Error creating user", detail=str(e))

        doc["_id"] = result.inserted_id
        return UserRecord.from_document(doc)

    async def _update(self, user_id: str, changes: Dict[str, Any]) -> UserRecord:
        await prepare_user(changes)
        stamp_updated(changes)
        try:
            doc = await self.db.users.find_one_and_update(
                {"_id": ObjectId(user_id)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning("Duplicate user rejected", user_id=user_id, error=str(e))
            raise Conflict("A user with this username, email or GitHub account already exists")
        except PyMongoError as e:
            logger.error("Failed to update user", user_id=user_id, error=str(e))
            raise Unexpected("Error updating user", detail=str(e))
        if not doc:
            raise NotFound("User not found")
        return UserRecord.from_document(doc)

    async def link_github(self, user: UserRecord, github_id: str) -> UserRecord:
        """Attach a GitHub identity to an existing account."""
        return await self._update(user.id, {"github_id": github_id})

    async def set_role(self, user: UserRecord, role: UserRole) -> UserRecord:
        return await self._update(user.id, {"role": role.value})

    async def list_users(self) -> List[UserRecord]:
        try:
            docs = await self.db.users.find({}).sort("username", ASCENDING).to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list users", error=str(e))
            raise Unexpected("Error retrieving users", detail=str(e))
        return [UserRecord.from_document(doc) for doc in docs]
