"""
FastAPI dependencies for the application.

Authentication happens upstream; the principal arrives in trusted headers.
"""

from typing import AsyncGenerator, Optional

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.permissions import Principal, Roles, capabilities_for_role
from taskboard.db import session as db_session
from taskboard.services.event_broadcaster import EventBroadcaster


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session; anything left uncommitted is rolled back."""
    async with db_session.AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_current_principal(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_permissions: Optional[str] = Header(None),
) -> Principal:
    """
    Build the acting principal from the headers set by the auth layer.
    
    Without X-User-Permissions the role preset applies.
    
    Raises:
        401: If the id or role header is missing or the role is unknown
    """
    if x_user_id is None or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id and X-User-Role headers are required",
        )
    if x_user_role not in Roles.ALL:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        )
    overrides = None
    if x_user_permissions is not None:
        overrides = [name for name in x_user_permissions.split(",") if name.strip()]
    return Principal(
        id=x_user_id,
        role=x_user_role,
        permissions=capabilities_for_role(x_user_role, overrides),
    )


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster
