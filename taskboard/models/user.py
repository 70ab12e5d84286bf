"""
User model.

Users are owned by the identity layer; the board keeps only what it needs to
check that an assignee is an active principal.
"""

from typing import List

from sqlalchemy import Boolean, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.models.base_model import BoardModel


class User(BoardModel):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="worker")
    # Capability names resolved from the role preset when the user was assigned the role
    permissions: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
