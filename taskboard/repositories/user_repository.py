"""
User repository - the read side the board needs from the identity layer.
"""

from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.permissions import capabilities_for_role
from taskboard.models.user import User


class UserRepository:
    """Repository for User database operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get a user by ID."""
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()
    
    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()
    
    async def create(
        self,
        username: str,
        role: str = "worker",
        permissions: Optional[Iterable[str]] = None,
        is_active: bool = True,
    ) -> User:
        """Create a user; permissions default to the role preset."""
        user = User(
            username=username,
            role=role,
            permissions=sorted(capabilities_for_role(role, permissions)),
            is_active=is_active,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user
    
    async def find_unavailable(self, user_ids: Iterable[int]) -> List[int]:
        """
        Return the ids, in input order, that are not active users.
        """
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        result = await self.db.execute(
            select(User.id).where(User.id.in_(ids), User.is_active.is_(True))
        )
        active = set(result.scalars().all())
        return [user_id for user_id in ids if user_id not in active]
