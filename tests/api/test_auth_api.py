"""
Tests for the home, health and authentication endpoints.
"""

from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from bson import ObjectId

from api.github import GitHubOAuthClient, OAuthError, get_github_client
from api.main import app
from api.models import ExternalProfile
from tests.conftest import USER_ID


@pytest.fixture
def github():
    """GitHub client whose handshake is stubbed out."""
    client = GitHubOAuthClient(
        client_id="client-id",
        client_secret="client-secret",
        callback_url="http://testserver/auth/github/callback",
    )
    client.complete_handshake = AsyncMock(return_value=ExternalProfile(
        id="583231",
        username="octocat",
        display_name="The Octocat",
        profile_url="https://github.com/octocat",
        emails=["octocat@github.com"],
    ))
    app.dependency_overrides[get_github_client] = lambda: client
    return client


def start_login(client) -> str:
    response = client.get("/auth/github", follow_redirects=False)
    assert response.status_code == 302
    return parse_qs(urlparse(response.headers["location"]).query)["state"][0]


def test_home_anonymous(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["loginUrl"] == "/login"


def test_home_logged_in(auth_client):
    data = auth_client.get("/").json()

    assert data["message"] == "Welcome The Octocat!"
    assert data["user"]["username"] == "octocat"


def test_health_without_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database_status"] == "unavailable"


def test_login_redirect(client):
    response = client.get("/login", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/auth/github"


def test_unknown_route(client):
    response = client.get("/nowhere")

    assert response.status_code == 404
    data = response.json()
    assert data["error"] == "Route not found"
    assert data["availableRoutes"]["auth"]["login"] == "/auth/github"


def test_current_user_requires_login(client):
    response = client.get("/auth/current")

    assert response.status_code == 401
    assert response.json()["loginUrl"] == "/auth/github"


def test_current_user(auth_client):
    response = auth_client.get("/auth/current")

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["username"] == "octocat"
    assert data["user"]["githubProfile"] == "https://github.com/octocat"
    assert "environment" in data


def test_list_users_requires_admin(auth_client):
    response = auth_client.get("/users")

    assert response.status_code == 403
    assert response.json()["error"] == "Admin access required"


def test_list_users_as_admin(login_as, admin_record, mock_db, user_doc):
    mock_db.users.cursor.to_list.return_value = [user_doc]

    response = login_as(admin_record).get("/users")

    assert response.status_code == 200
    assert [u["username"] for u in response.json()] == ["octocat"]


def test_github_login_redirects_with_state(client, github):
    state = start_login(client)
    assert len(state) > 10


def test_github_login_not_configured(client):
    app.dependency_overrides[get_github_client] = lambda: GitHubOAuthClient("", "", "http://testserver/cb")

    response = client.get("/auth/github", follow_redirects=False)

    assert response.status_code == 500


def test_callback_rejects_state_mismatch(client, github, mock_db):
    start_login(client)

    response = client.get("/auth/github/callback?code=abc&state=forged", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/"
    github.complete_handshake.assert_not_called()


def test_callback_handshake_failure(client, github, mock_db):
    github.complete_handshake.side_effect = OAuthError("bad_verification_code")
    state = start_login(client)

    response = client.get(f"/auth/github/callback?code=abc&state={state}", follow_redirects=False)

    assert response.headers["location"] == "/"
    assert client.get("/auth/current").status_code == 401


def test_full_login_creates_user_and_session(client, github, mock_db, user_doc):
    """Test the OAuth flow end to end with a first-time GitHub user."""
    async def find_user(query):
        if "_id" in query:
            return user_doc
        return None

    mock_db.users.find_one.side_effect = find_user
    mock_db.users.insert_one.return_value = MagicMock(inserted_id=ObjectId(USER_ID))
    state = start_login(client)

    response = client.get(f"/auth/github/callback?code=abc&state={state}", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/api-docs"
    github.complete_handshake.assert_awaited_once_with("abc")
    created = mock_db.users.insert_one.call_args.args[0]
    assert created["github_id"] == "583231"
    assert created["email"] == "octocat@github.com"

    current = client.get("/auth/current")
    assert current.status_code == 200
    assert current.json()["user"]["id"] == USER_ID

    logout = client.get("/auth/logout", follow_redirects=False)
    assert logout.headers["location"] == "/"
    assert client.get("/auth/current").status_code == 401


def test_login_links_existing_email_account(client, github, mock_db, user_doc):
    """Test that a known email gains the GitHub id instead of a duplicate user."""
    local_user = {**user_doc, "github_id": None}

    async def find_user(query):
        if "email" in query or "_id" in query:
            return local_user
        return None

    mock_db.users.find_one.side_effect = find_user
    mock_db.users.find_one_and_update.return_value = user_doc
    state = start_login(client)

    client.get(f"/auth/github/callback?code=abc&state={state}", follow_redirects=False)

    mock_db.users.insert_one.assert_not_called()
    query, update = mock_db.users.find_one_and_update.call_args.args
    assert query == {"_id": ObjectId(USER_ID)}
    assert update["$set"]["github_id"] == "583231"
