"""
Pytest configuration and shared fixtures.

Store tests run against a throwaway SQLite file per test. NullPool keeps
connections from leaking between the event loops that asyncio.run and
TestClient create.
"""

import asyncio
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from taskboard.core.dependencies import get_db
from taskboard.core.permissions import Principal, Roles, capabilities_for_role
from taskboard.db.session import build_engine, build_session_maker, create_schema
from taskboard.models.user import User
from taskboard.schemas.task import TaskCreate, TaskRead
from taskboard.services.event_broadcaster import EventBroadcaster
from taskboard.services.task_service import TaskService


# Seeded users: (id, username, role)
SEED_USERS = [
    (1, "admin", Roles.ADMIN),
    (2, "manager", Roles.MANAGER),
    (3, "worker3", Roles.WORKER),
    (7, "worker7", Roles.WORKER),
    (8, "worker8", Roles.WORKER),
]
INACTIVE_USER_ID = 9

ADMIN = Principal.for_role(1, Roles.ADMIN)
MANAGER = Principal.for_role(2, Roles.MANAGER)
WORKER_3 = Principal.for_role(3, Roles.WORKER)
WORKER_7 = Principal.for_role(7, Roles.WORKER)
WORKER_8 = Principal.for_role(8, Roles.WORKER)

DEADLINE = datetime(2025, 6, 1, tzinfo=timezone.utc)


def future_deadline(days: int = 10) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


def headers_for(principal: Principal) -> Dict[str, str]:
    return {
        "X-User-Id": str(principal.id),
        "X-User-Role": principal.role,
        "X-User-Permissions": ",".join(sorted(principal.permissions)),
    }


@dataclass
class BoardDatabase:
    engine: AsyncEngine
    sessions: async_sessionmaker[AsyncSession]

    async def seed_users(self) -> None:
        async with self.sessions() as session:
            for user_id, username, role in SEED_USERS:
                session.add(User(
                    id=user_id,
                    username=username,
                    role=role,
                    permissions=sorted(capabilities_for_role(role)),
                    is_active=True,
                ))
            session.add(User(id=INACTIVE_USER_ID, username="former", role=Roles.WORKER, permissions=[], is_active=False))
            await session.commit()

    async def make_task(
        self,
        title: str = "Draft landing page",
        assignees: Optional[List[int]] = None,
        deadline: Optional[datetime] = None,
        principal: Principal = ADMIN,
        broadcaster: Optional[EventBroadcaster] = None,
        **fields,
    ) -> TaskRead:
        async with self.sessions() as session:
            service = TaskService(session, broadcaster)
            return await service.create_task(
                TaskCreate(
                    title=title,
                    deadline=deadline or future_deadline(),
                    assignees=assignees or [],
                    **fields,
                ),
                principal,
            )


@pytest.fixture
def board_db(tmp_path):
    """Fresh schema with seeded users."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}", poolclass=NullPool)
    database = BoardDatabase(engine=engine, sessions=build_session_maker(engine))

    async def setup():
        await create_schema(engine)
        await database.seed_users()

    asyncio.run(setup())
    yield database
    asyncio.run(engine.dispose())


@pytest.fixture
def board_app(board_db):
    """Application wired to the test database."""
    from taskboard.main import create_app

    app = create_app()

    async def override_get_db():
        async with board_db.sessions() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    return app


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: requires database")
    config.addinivalue_line("markers", "server: requires running HTTP server")


def pytest_collection_modifyitems(config, items):
    run_db = os.environ.get("RUN_DB_TESTS") == "1"
    run_server = os.environ.get("RUN_SERVER_TESTS") == "1"

    skip_db = pytest.mark.skip(reason="db tests skipped by default; set RUN_DB_TESTS=1 to enable")
    skip_server = pytest.mark.skip(reason="server tests skipped by default; set RUN_SERVER_TESTS=1 to enable")

    for item in items:
        if "db" in item.keywords and not run_db:
            item.add_marker(skip_db)
        if "server" in item.keywords and not run_server:
            item.add_marker(skip_server)
