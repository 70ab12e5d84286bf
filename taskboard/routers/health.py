"""Health check router."""

import logging
from pathlib import Path
from typing import Optional

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.dependencies import get_broadcaster, get_db
from taskboard.services.event_broadcaster import EventBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter()

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def migration_head() -> Optional[str]:
    """Newest revision shipped in alembic/versions, if the tree is present."""
    ini_path = PROJECT_ROOT / "alembic.ini"
    if not ini_path.exists():
        return None
    alembic_cfg = Config(str(ini_path))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return ScriptDirectory.from_config(alembic_cfg).get_current_head()


async def applied_revision(db: AsyncSession) -> Optional[str]:
    """Revision stamped in the database; None when alembic never ran."""
    try:
        rows = await db.execute(text("SELECT version_num FROM alembic_version"))
    except SQLAlchemyError:
        # Schema created from metadata (tests, AUTO_CREATE_SCHEMA)
        await db.rollback()
        return None
    return rows.scalar_one_or_none()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    """Liveness plus database, migration and broadcast state."""
    try:
        await db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        db_ok = False

    current = await applied_revision(db) if db_ok else None
    head = migration_head()

    return {
        "api_ok": True,
        "db_ok": db_ok,
        "alembic_current": current,
        "alembic_head": head,
        "alembic_head_ok": current is not None and current == head,
        "observers": broadcaster.subscriber_count,
        "events_published": broadcaster.published,
    }
