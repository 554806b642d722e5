"""
GitHub OAuth client.
Builds the authorize redirect, exchanges codes for tokens and fetches profiles.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
import structlog

from api.config import config as api_config
from api.models import ExternalProfile

logger = structlog.get_logger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_URL = "https://api.github.com"
SCOPE = "user:email"


class OAuthError(Exception):
    """The GitHub handshake could not be completed."""


class GitHubOAuthClient:
    """Talks to GitHub on behalf of the OAuth callback."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.client_config = {
            "timeout": httpx.Timeout(timeout),
            "headers": {"Accept": "application/json", "User-Agent": "books-catalog-api"},
        }
        if transport is not None:
            self.client_config["transport"] = transport

    def authorize_url(self, state: str) -> str:
        """URL the browser is sent to in order to start the handshake."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "scope": SCOPE,
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        """
        Exchange an authorization code for an access token.

        Raises:
            OAuthError: If GitHub refuses the code
        """
        response = await client.post(TOKEN_URL, data={
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.callback_url,
        })
        response.raise_for_status()
        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise OAuthError(payload.get("error_description") or payload.get("error") or "No access token returned")
        return token

    async def _fetch_emails(self, client: httpx.AsyncClient, headers: Dict[str, str]) -> List[Dict[str, Any]]:
        response = await client.get(f"{API_URL}/user/emails", headers=headers)
        if response.status_code != 200:
            # Scope not granted; the profile email is all we get
            logger.info("GitHub emails unavailable", status_code=response.status_code)
            return []
        return response.json()

    async def fetch_profile(self, client: httpx.AsyncClient, token: str) -> ExternalProfile:
        """Fetch the authenticated user's profile, primary verified email first."""
        headers = {"Authorization": f"Bearer {token}"}
        response = await client.get(f"{API_URL}/user", headers=headers)
        response.raise_for_status()
        user = response.json()

        email_entries = await self._fetch_emails(client, headers)
        verified = [e for e in email_entries if e.get("verified")]
        verified.sort(key=lambda e: not e.get("primary"))
        emails = [e["email"] for e in verified]
        if user.get("email") and user["email"] not in emails:
            emails.append(user["email"])

        return ExternalProfile(
            id=str(user["id"]),
            username=user["login"],
            display_name=user.get("name"),
            profile_url=user.get("html_url"),
            emails=emails,
        )

    async def complete_handshake(self, code: str) -> ExternalProfile:
        """
        Run the token exchange and profile fetch for a callback code.

        Raises:
            OAuthError: If any step fails
        """
        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                token = await self.exchange_code(client, code)
                return await self.fetch_profile(client, token)
        except httpx.HTTPError as e:
            logger.error("GitHub request failed", error=str(e))
            raise OAuthError(str(e)) from e


def get_github_client() -> GitHubOAuthClient:
    """FastAPI dependency building the client from API settings."""
    return GitHubOAuthClient(
        client_id=api_config.github_client_id,
        client_secret=api_config.github_client_secret,
        callback_url=api_config.get_callback_url(),
    )
