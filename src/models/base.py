"""
SQLAlchemy ORM Base Configuration
Provides the declarative base for the GitHub entity tables.

Statements are executed through database.connection; the importer does not
use ORM sessions, only the table metadata.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass
