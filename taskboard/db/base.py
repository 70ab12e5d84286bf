"""
SQLAlchemy declarative base.

All board models inherit from this Base class so they share one metadata.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
