#!/usr/bin/env python3
"""
User Management Utility

This script provides utilities to manage users:
- List all users
- Promote a user to admin or demote back to user
- Create a local user with a password
- Check a local user's password
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.database import MongoDBManager
from api.errors import APIError
from api.models import UserRole, github_profile_url
from api.services import UserService, verify_password
from utilities.config import config
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)


def make_db_manager() -> MongoDBManager:
    return MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database
    )


async def list_all_users():
    """List all users in the database."""
    print("\n" + "="*80)
    print("👥 ALL USERS")
    print("="*80)

    db_manager = make_db_manager()
    try:
        await db_manager.connect()
        users = await UserService(db_manager).list_users()

        if not users:
            print("❌ No users found in database")
            return

        print(f"✅ Found {len(users)} users:")
        print()

        for i, user in enumerate(users, 1):
            print(f"{i:3d}. {user.username} ({user.role.value})")
            print(f"     Email: {user.email}{' (placeholder)' if user.email_is_placeholder else ''}")
            print(f"     GitHub: {github_profile_url(user.username, user.github_id) or '-'}")
            print(f"     Created: {user.created_at}")
            print()

    except APIError as e:
        logger.error("Failed to list users", error=e.message)
        print(f"❌ Error listing users: {e.message}")
    finally:
        await db_manager.disconnect()


async def change_role(username: str, role: UserRole):
    """Set the role of an existing user."""
    db_manager = make_db_manager()
    try:
        await db_manager.connect()
        users = UserService(db_manager)

        user = await users.get_by_username(username)
        if not user:
            print(f"❌ User '{username}' not found")
            return

        user = await users.set_role(user, role)
        logger.info("User role changed", username=user.username, role=user.role.value)
        print(f"✅ {user.username} is now {user.role.value}")

    except APIError as e:
        logger.error("Failed to change role", username=username, error=e.message)
        print(f"❌ Error changing role: {e.message}")
    finally:
        await db_manager.disconnect()


async def create_local_user(username: str, email: str, password: str):
    """Create a user that logs in without GitHub."""
    db_manager = make_db_manager()
    try:
        await db_manager.connect()
        user = await UserService(db_manager).create_user({
            "username": username,
            "email": email,
            "password": password,
            "display_name": username,
        })
        logger.info("Local user created", username=user.username)
        print(f"✅ Created user {user.username} <{user.email}>")

    except APIError as e:
        logger.error("Failed to create user", username=username, error=e.message)
        print(f"❌ Error creating user: {e.message}")
    finally:
        await db_manager.disconnect()


async def check_password(username: str, password: str) -> bool:
    """Check a password against a local user's stored hash."""
    db_manager = make_db_manager()
    try:
        await db_manager.connect()
        user = await UserService(db_manager).get_by_username(username)
        if not user:
            print(f"❌ User '{username}' not found")
            return False

        if not user.password:
            print(f"⚠️  {user.username} has no local password (GitHub login only)")
            return False

        matches = await asyncio.to_thread(verify_password, password, user.password)
        print(f"✅ Password matches for {user.username}" if matches else "❌ Password does not match")
        return matches

    except APIError as e:
        logger.error("Failed to check password", username=username, error=e.message)
        print(f"❌ Error checking password: {e.message}")
        return False
    finally:
        await db_manager.disconnect()


def print_usage():
    print("Usage: python manage_users.py [list|promote|demote|create|check] [args]")
    print()
    print("Commands:")
    print("  list                               - List all users")
    print("  promote <username>                 - Give a user the admin role")
    print("  demote <username>                  - Give a user the user role")
    print("  create <username> <email> <password> - Create a local user")
    print("  check <username> <password>        - Check a local user's password")
    print()
    print("Examples:")
    print("  python manage_users.py list")
    print("  python manage_users.py promote octocat")
    print("  python manage_users.py create librarian librarian@example.com s3cret")
    print("  python manage_users.py check librarian s3cret")


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    # Setup logging
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command == "list":
        await list_all_users()
    elif command in ("promote", "demote"):
        if len(sys.argv) < 3:
            print(f"❌ Error: username required for {command} command")
            print(f"Usage: python manage_users.py {command} <username>")
            sys.exit(1)
        role = UserRole.ADMIN if command == "promote" else UserRole.USER
        await change_role(sys.argv[2], role)
    elif command == "create":
        if len(sys.argv) < 5:
            print("❌ Error: username, email and password required for create command")
            print("Usage: python manage_users.py create <username> <email> <password>")
            sys.exit(1)
        await create_local_user(sys.argv[2], sys.argv[3], sys.argv[4])
    elif command == "check":
        if len(sys.argv) < 4:
            print("❌ Error: username and password required for check command")
            print("Usage: python manage_users.py check <username> <password>")
            sys.exit(1)
        if not await check_password(sys.argv[2], sys.argv[3]):
            sys.exit(1)
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: list, promote, demote, create, check")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
