"""
SQLAlchemy declarative base.

All workflow tables inherit from this Base class so Alembic and
metadata.create_all see them together.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
