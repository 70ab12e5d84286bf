"""
Database session and engine configuration.

This file sets up the async database connection using SQLAlchemy
(asyncpg for Postgres, aiosqlite for local and test databases).
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from taskboard.core.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; extra kwargs go straight to create_async_engine."""
    return create_async_engine(url, echo=settings.DEBUG, future=True, **kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Keeps snapshots readable after commit
    )


engine = build_engine(settings.DATABASE_URL)
async_session_maker = build_session_maker(engine)

# Alias for dependencies
AsyncSessionLocal = async_session_maker


@asynccontextmanager
async def get_async_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager helper for async DB sessions (used in scripts)."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_schema(target: AsyncEngine) -> None:
    """Create all tables directly from metadata (local runs and tests; production uses alembic)."""
    from taskboard.db.base import Base
    import taskboard.models  # noqa: F401  registers tables

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
