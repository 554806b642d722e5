"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from api.auth import Identity, optional_auth
from api.database import get_db
from api.main import app
from api.models import UserRecord, UserRole


AUTHOR_ID = "64b7f0c2e4b0a1a2b3c4d5e6"
BOOK_ID = "64b7f0c2e4b0a1a2b3c4d5e7"
USER_ID = "64b7f0c2e4b0a1a2b3c4d5e8"


def make_collection():
    """
    Stand-in for a motor collection.

    Awaitable methods are AsyncMocks; ``find`` returns a chainable cursor
    exposed as ``collection.cursor``.
    """
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.delete_one = AsyncMock()
    collection.create_index = AsyncMock()

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    collection.cursor = cursor
    return collection


@pytest.fixture
def mock_db():
    """Mock data-access handle with authors, books and users collections."""
    db = MagicMock()
    db.authors = make_collection()
    db.books = make_collection()
    db.users = make_collection()
    return db


@pytest.fixture
def author_doc():
    """Stored author document."""
    return {
        "_id": ObjectId(AUTHOR_ID),
        "name": "Ursula K. Le Guin",
        "bio": "American author of speculative fiction.",
        "birth_date": datetime(1929, 10, 21),
        "nationality": "American",
        "website": "https://www.ursulakleguin.com",
        "genres": ["Fantasy", "Science Fiction"],
        "created_at": datetime(2024, 1, 15, 10, 30),
        "updated_at": datetime(2024, 1, 15, 10, 30),
    }


@pytest.fixture
def book_doc():
    """Stored book document."""
    return {
        "_id": ObjectId(BOOK_ID),
        "title": "A Wizard of Earthsea",
        "author_id": ObjectId(AUTHOR_ID),
        "genre": "Fantasy",
        "published_year": 1968,
        "pages": 183,
        "price": 12.99,
        "in_stock": True,
        "tags": ["magic", "coming of age"],
        "summary": "A young wizard learns the cost of power.",
        "isbn": "9780547773742",
        "language": "English",
        "created_at": datetime(2024, 1, 15, 10, 30),
        "updated_at": datetime(2024, 1, 15, 10, 30),
    }


@pytest.fixture
def user_doc():
    """Stored user document for a GitHub-linked account."""
    return {
        "_id": ObjectId(USER_ID),
        "username": "octocat",
        "email": "octocat@github.com",
        "github_id": "583231",
        "display_name": "The Octocat",
        "profile_url": "https://github.com/octocat",
        "role": "user",
        "email_is_placeholder": False,
        "created_at": datetime(2024, 1, 15, 10, 30),
        "updated_at": datetime(2024, 1, 15, 10, 30),
    }


@pytest.fixture
def user_record(user_doc):
    return UserRecord.from_document(user_doc)


@pytest.fixture
def admin_record(user_doc):
    return UserRecord.from_document({**user_doc, "role": UserRole.ADMIN.value})


@pytest.fixture
def client(mock_db):
    """Test client with the database handle overridden and no session."""
    app.dependency_overrides[get_db] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Make every following request authenticate as the given user."""
    def _login(user: UserRecord):
        app.dependency_overrides[optional_auth] = lambda: Identity(authenticated=True, user=user)
        return client
    return _login


@pytest.fixture
def auth_client(login_as, user_record):
    """Test client authenticated as a regular user."""
    return login_as(user_record)
