"""
Declarative base for all ORM models.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for platform tables read and written by the migration service."""

    pass
