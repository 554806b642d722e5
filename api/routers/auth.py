"""
Login, logout and current-user endpoints backed by GitHub OAuth.
"""

import secrets
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from api.auth import Identity, is_admin, is_authenticated, login_user, logout_user, resolve_identity
from api.config import config as api_config
from api.database import MongoDBManager, get_db
from api.errors import APIError, Unexpected
from api.github import GitHubOAuthClient, OAuthError, get_github_client
from api.models import CurrentUserResponse, ErrorResponse, UserResponse
from api.services import UserService
from utilities.config import config

logger = structlog.get_logger(__name__)

SESSION_STATE_KEY = "oauth_state"

router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/github", response_class=RedirectResponse, status_code=302)
async def github_login(
    request: Request,
    github: GitHubOAuthClient = Depends(get_github_client)
):
    """Start the GitHub OAuth handshake."""
    if not github.client_id:
        logger.error("GitHub OAuth is not configured")
        raise Unexpected("GitHub login is not configured")

    state = secrets.token_urlsafe(16)
    request.session[SESSION_STATE_KEY] = state
    return RedirectResponse(github.authorize_url(state), status_code=302)


@router.get("/github/callback", response_class=RedirectResponse, status_code=302)
async def github_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    github: GitHubOAuthClient = Depends(get_github_client),
    db: MongoDBManager = Depends(get_db)
):
    """
    Complete the GitHub OAuth handshake.

    On success the session is bound to the resolved user and the browser is
    sent to the API docs; any failure sends it back to the home page.
    """
    expected_state = request.session.pop(SESSION_STATE_KEY, None)
    if error or not code or not state or state != expected_state:
        logger.warning("GitHub callback rejected", error=error, has_code=bool(code),
                       state_matches=bool(state) and state == expected_state)
        return RedirectResponse("/", status_code=302)

    try:
        profile = await github.complete_handshake(code)
        user = await resolve_identity(profile, UserService(db))
    except (OAuthError, APIError) as e:
        logger.error("GitHub login failed", error=str(e))
        return RedirectResponse("/", status_code=302)

    login_user(request, user)
    logger.info("Login successful", username=user.username, user_id=user.id)
    return RedirectResponse(api_config.docs_url, status_code=302)


@router.get("/logout", response_class=RedirectResponse, status_code=302,
            responses={401: {"model": ErrorResponse}})
async def logout(request: Request, identity: Identity = Depends(is_authenticated)):
    """End the current session."""
    logger.info("Logging out user", username=identity.user.username)
    logout_user(request)
    return RedirectResponse("/", status_code=302)


@router.get("/current", response_model=CurrentUserResponse, responses={401: {"model": ErrorResponse}})
async def current_user(identity: Identity = Depends(is_authenticated)):
    """Get the logged-in user."""
    return CurrentUserResponse(
        user=UserResponse.from_record(identity.user),
        environment=config.environment,
    )


@users_router.get("", response_model=List[UserResponse],
                  responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}})
async def list_users(
    identity: Identity = Depends(is_admin),
    db: MongoDBManager = Depends(get_db)
):
    """List every user. Requires the admin role."""
    users = await UserService(db).list_users()
    return [UserResponse.from_record(user) for user in users]
