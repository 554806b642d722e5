"""
FastAPI RESTful API for the Books & Authors catalog.

This package provides:
- Author and book CRUD with validation and pagination
- Book search by title, genre and tags
- GitHub OAuth login with cookie sessions
- Structured error responses
"""
