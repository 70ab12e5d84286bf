"""
Base Pydantic schemas with common fields.

These are templates that other schemas inherit from.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RecordRead(BaseModel):
    """
    Base schema for reading append-only rows.
    
    Includes the auto-generated id and creation timestamp.
    """
    
    id: int
    created_at: datetime
    
    # This tells Pydantic to work with SQLAlchemy models
    model_config = ConfigDict(from_attributes=True)


class BoardRead(RecordRead):
    """Base schema for reading mutable rows."""
    
    updated_at: datetime
