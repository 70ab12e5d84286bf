"""
Base models with common fields.

Board tables inherit from these to get:
- id (integer primary key, assigned by the database, never reused)
- created_at (when the record was created)
- updated_at (when the record was last modified, mutable rows only)
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.db.base import Base
from taskboard.utils.time import utc_now


class AppendOnlyModel(Base):
    """
    Abstract base for rows that are written once and never updated
    (split records, effort logs, comments, assignment links).
    """
    
    __abstract__ = True  # This means: don't create a table for this class
    
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    
    # Python-side default so the value is available right after flush
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )


class BoardModel(AppendOnlyModel):
    """Abstract base for mutable board rows."""
    
    __abstract__ = True
    
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
        nullable=False,
    )
