"""
Seed script: create the board tables (if missing) and one user per role.

Usage:
    python scripts/seed_board_users.py
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path so we can import taskboard modules
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from taskboard.core.permissions import Roles
from taskboard.db.session import create_schema, engine, get_async_session_context
from taskboard.repositories.user_repository import UserRepository

SEED_USERS = [
    ("admin", Roles.ADMIN),
    ("manager", Roles.MANAGER),
    ("worker", Roles.WORKER),
]


async def seed_users():
    await create_schema(engine)

    async with get_async_session_context() as db:
        users = UserRepository(db)
        for username, role in SEED_USERS:
            existing = await users.get_by_username(username)
            if existing:
                print(f"✓ {username} already exists (ID: {existing.id}, role: {existing.role})")
                continue
            user = await users.create(username, role=role)
            print(f"✓ Created {username} (ID: {user.id}, role: {user.role}, permissions: {user.permissions})")

    print("\nCall the API as one of them with:")
    print("  X-User-Id: <ID>")
    print("  X-User-Role: <role>")


if __name__ == "__main__":
    print("Seeding board users...\n")
    asyncio.run(seed_users())
    print("\n✓ Done!")
