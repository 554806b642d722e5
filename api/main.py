"""
FastAPI main application for the Books & Authors API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.auth import Identity, optional_auth
from api.config import config as api_config
from api.database import MongoDBManager
from api.errors import APIError, Unauthorized, Unexpected, ValidationFailure
from api.models import ErrorResponse, HealthResponse
from api.routers import auth_router, authors_router, books_router, users_router
from utilities.config import config
from utilities.logger import RequestLogger, setup_logging

logger = structlog.get_logger(__name__)

AVAILABLE_ROUTES = {
    "home": "/",
    "login": "/login",
    "logout": "/logout",
    "apiDocs": api_config.docs_url,
    "books": "/books",
    "authors": "/authors",
    "auth": {
        "login": "/auth/github",
        "logout": "/auth/logout",
        "current": "/auth/current",
    },
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Books & Authors API", environment=config.environment)

    db = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database
    )
    try:
        await db.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise
    app.state.db = db

    yield

    logger.info("Shutting down Books & Authors API")
    await db.disconnect()
    app.state.db = None


app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    docs_url=api_config.docs_url,
    lifespan=lifespan
)

app.add_middleware(
    SessionMiddleware,
    secret_key=api_config.session_secret,
    session_cookie=api_config.session_cookie,
    max_age=api_config.session_max_age,
    same_site="lax",
    https_only=config.is_production(),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its outcome."""
    request_logger = RequestLogger(request.method, request.url.path, config.environment)
    try:
        response = await call_next(request)
    except Exception as e:
        request_logger.log_failure(str(e))
        raise
    request_logger.log_response(response.status_code)
    return response


def error_response(status_code: int, message: str, **fields: Any) -> JSONResponse:
    body = ErrorResponse(error=message, status_code=status_code, **fields)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


# Exception handlers
@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    """Render failures from the API error taxonomy."""
    if isinstance(exc, Unauthorized) and exc.redirect and exc.login_url:
        return RedirectResponse(exc.login_url, status_code=status.HTTP_302_FOUND)

    fields: Dict[str, Any] = dict(exc.extra())
    if isinstance(exc, Unexpected):
        logger.error("Request failed", error=exc.message, detail=exc.detail, path=request.url.path)
        if not config.is_production():
            fields["detail"] = exc.detail
    return error_response(exc.status_code, exc.message, **fields)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed input the same way as rule violations."""
    messages = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "body"
        messages.append(f"{field}: {err.get('msg')}")
    failure = ValidationFailure(messages)
    return error_response(failure.status_code, failure.message, **failure.extra())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions raised by routing."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "Route not found",
                "statusCode": exc.status_code,
                "availableRoutes": AVAILABLE_ROUTES,
                "environment": config.environment,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), status_code=exc.status_code)
        .model_dump(by_alias=True, exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=None if config.is_production() else str(exc),
    )


@app.get("/", tags=["Home"])
async def home(identity: Identity = Depends(optional_auth)):
    """Welcome message, personalised when logged in."""
    environment = config.environment
    if identity.authenticated:
        user = identity.user
        return {
            "message": f"Welcome {user.display_name or user.username}!",
            "user": {
                "id": user.id,
                "username": user.username,
                "displayName": user.display_name,
            },
            "logoutUrl": "/logout",
            "apiDocs": api_config.docs_url,
            "environment": environment,
        }
    return {
        "message": "Welcome to Books & Authors API!",
        "loginUrl": "/login",
        "apiDocs": api_config.docs_url,
        "environment": environment,
        "currentUrl": api_config.public_url,
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    db: MongoDBManager = getattr(request.app.state, "db", None)
    db_status = "unavailable"
    if db is not None:
        health_info = await db.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


@app.get("/login", include_in_schema=False)
async def login_redirect():
    return RedirectResponse("/auth/github", status_code=status.HTTP_302_FOUND)


@app.get("/logout", include_in_schema=False)
async def logout_redirect():
    return RedirectResponse("/auth/logout", status_code=status.HTTP_302_FOUND)


app.include_router(authors_router)
app.include_router(books_router)
app.include_router(auth_router)
app.include_router(users_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=config.debug,
        log_level="info"
    )
