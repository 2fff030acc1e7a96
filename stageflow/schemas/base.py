"""
Base Pydantic schemas with common fields.

These are templates that other schemas inherit from.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class EntityRead(BaseModel):
    """
    Base schema for reading stored entities.

    Includes the auto-generated fields: id and timestamps.
    """

    id: UUID
    created_at: datetime
    updated_at: datetime

    # Read straight from SQLAlchemy models
    model_config = ConfigDict(from_attributes=True)
