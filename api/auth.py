"""
Session authentication gates and GitHub identity resolution.

The session cookie only carries the user id. Every request resolves it to a
``UserRecord`` and hands handlers an explicit ``Identity``.
"""

from typing import Optional

import structlog
from fastapi import Depends, Request
from pydantic import BaseModel

from api.config import config as api_config
from api.database import MongoDBManager, get_db
from api.errors import Forbidden, Unauthorized
from api.models import ExternalProfile, UserRecord
from api.services import UserService

logger = structlog.get_logger(__name__)

SESSION_USER_KEY = "user_id"
PLACEHOLDER_EMAIL_DOMAIN = "users.noreply.github.com"


class Identity(BaseModel):
    """Who is making the request."""
    authenticated: bool = False
    user: Optional[UserRecord] = None


def login_user(request: Request, user: UserRecord) -> None:
    """Bind the session to a user. Only the id is stored."""
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


def logout_user(request: Request) -> None:
    request.session.clear()


def wants_redirect(request: Request) -> bool:
    """
    Whether an unauthenticated request should be redirected to login.

    Requests under ``/api/`` and anything that does not ask for HTML get JSON.
    """
    if request.url.path.startswith("/api/"):
        return False
    accept = request.headers.get("accept", "")
    return "text/html" in accept


async def optional_auth(
    request: Request,
    db: MongoDBManager = Depends(get_db)
) -> Identity:
    """Resolve the session to an Identity without ever blocking the request."""
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return Identity()

    user = await UserService(db).get_by_id(user_id)
    if user is None:
        # Session refers to a user that no longer exists
        logger.warning("Session user not found", user_id=user_id)
        request.session.pop(SESSION_USER_KEY, None)
        return Identity()

    return Identity(authenticated=True, user=user)


async def is_authenticated(
    request: Request,
    identity: Identity = Depends(optional_auth)
) -> Identity:
    """
    Require an authenticated session.

    Raises:
        Unauthorized: With a login hint, as a redirect for browser navigation
    """
    if identity.authenticated:
        return identity

    logger.info("Unauthenticated access denied", path=request.url.path, method=request.method)
    raise Unauthorized(
        login_url=api_config.login_url,
        redirect=wants_redirect(request),
    )


async def is_admin(identity: Identity = Depends(is_authenticated)) -> Identity:
    """
    Require an authenticated session whose user has the admin role.

    Raises:
        Forbidden: If the user is not an admin
    """
    if not identity.user.is_admin:
        logger.info("Admin access denied", user_id=identity.user.id)
        raise Forbidden()
    return identity


def placeholder_email(username: str) -> str:
    """Email used when GitHub withholds the user's address."""
    return f"{username}@{PLACEHOLDER_EMAIL_DOMAIN}"


async def resolve_identity(profile: ExternalProfile, users: UserService) -> UserRecord:
    """
    Map a GitHub profile onto a local user.

    1. A user with this GitHub id is returned as is.
    2. Otherwise a user with the same email gets the GitHub id attached.
    3. Otherwise a new user is created from the profile.

    Args:
        profile: Profile received from GitHub
        users: User service bound to the database handle

    Returns:
        The local user to authenticate as
    """
    user = await users.get_by_github_id(profile.id)
    if user:
        logger.info("User found by GitHub ID", username=user.username)
        return user

    email_is_placeholder = not profile.emails
    email = profile.emails[0] if profile.emails else placeholder_email(profile.username)
    if email_is_placeholder:
        logger.info("No email from GitHub, using placeholder", username=profile.username, email=email)

    user = await users.get_by_email(email)
    if user:
        logger.info("Linking GitHub account to existing user", username=user.username)
        return await users.link_github(user, profile.id)

    user = await users.create_user({
        "github_id": profile.id,
        "username": profile.username,
        "email": email,
        "email_is_placeholder": email_is_placeholder,
        "display_name": profile.display_name or profile.username,
        "profile_url": profile.profile_url,
    })
    logger.info("New user created", username=user.username, user_id=user.id)
    return user
