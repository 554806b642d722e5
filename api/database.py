"""
MongoDB data-access handle for the API.
Handles connection, indexing and collection access for authors, books and users.
"""

from typing import Dict, Optional

import structlog
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure

from api.errors import Unexpected

logger = structlog.get_logger(__name__)


class MongoDBManager:
    """
    Async MongoDB manager.

    Constructed explicitly by the application lifespan and injected into
    request handlers through ``get_db``; there is no module-level connection.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    @property
    def authors(self) -> AsyncIOMotorCollection:
        return self.database.authors

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.database.books

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.database.users

    async def connect(self) -> None:
        """Establish connection to MongoDB and make sure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create indexes for the common query patterns and uniqueness rules."""
        try:
            await self.authors.create_index("name")
            await self.authors.create_index("nationality")

            await self.books.create_index("title")
            await self.books.create_index("author_id")
            await self.books.create_index("genre")
            await self.books.create_index("price")
            await self.books.create_index("tags")

            await self.users.create_index("username", unique=True)
            await self.users.create_index("email", unique=True)
            # Sparse so users without a GitHub identity don't collide on null
            await self.users.create_index("github_id", unique=True, sparse=True)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        if self.database is None:
            return {"status": "unhealthy", "error": "Not connected"}
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "authors_count": await self.authors.count_documents({}),
                "books_count": await self.books.count_documents({}),
                "users_count": await self.users.count_documents({}),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


def get_db(request: Request) -> MongoDBManager:
    """FastAPI dependency returning the handle created at startup."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise Unexpected("Database service not available")
    return db
