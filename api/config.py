"""
API configuration settings.
"""

from typing import List

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Books & Authors API"
    api_version: str = "1.0.0"
    api_description: str = """
    CRUD API for a catalog of books and their authors.

    ## Authentication

    Reading is open to everyone. Creating, updating and deleting requires a
    session: log in through `/auth/github` and the session cookie is sent with
    every following request.

    ## Pagination

    List endpoints accept `page` (from 1) and `limit` (1-100, default 10).
    """
    docs_url: str = "/api-docs"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8080
    public_url: str = "http://localhost:8080"

    # Session Settings
    session_secret: str = "books-api-development-key"
    session_cookie: str = "books_session"
    session_max_age: int = 24 * 60 * 60  # 24 hours in seconds

    # GitHub OAuth Settings
    github_client_id: str = ""
    github_client_secret: str = ""
    github_callback_url: str = ""
    login_url: str = "/auth/github"

    # CORS Settings
    cors_origins: List[str] = ["http://localhost:8080"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    def get_callback_url(self) -> str:
        """Get the OAuth callback URL, derived from the public URL if unset."""
        return self.github_callback_url or f"{self.public_url}/auth/github/callback"


# Global config instance
config = APIConfig()
