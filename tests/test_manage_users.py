"""
Tests for the user management script.
"""

from unittest.mock import AsyncMock

import pytest

import manage_users
from api.services import hash_password


@pytest.fixture
def cli_db(mock_db, monkeypatch):
    """Point the script at the mocked database handle."""
    mock_db.connect = AsyncMock()
    mock_db.disconnect = AsyncMock()
    monkeypatch.setattr(manage_users, "make_db_manager", lambda: mock_db)
    return mock_db


@pytest.mark.asyncio
async def test_check_password(cli_db, user_doc):
    cli_db.users.find_one.return_value = {**user_doc, "password": hash_password("s3cret")}

    assert await manage_users.check_password("octocat", "s3cret") is True
    assert await manage_users.check_password("octocat", "wrong") is False
    cli_db.users.find_one.assert_awaited_with({"username": "octocat"})
    cli_db.disconnect.assert_awaited()


@pytest.mark.asyncio
async def test_check_password_github_only_user(cli_db, user_doc):
    cli_db.users.find_one.return_value = user_doc

    assert await manage_users.check_password("octocat", "s3cret") is False


@pytest.mark.asyncio
async def test_check_password_unknown_user(cli_db):
    assert await manage_users.check_password("nobody", "s3cret") is False
