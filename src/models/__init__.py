# GH Archive Importer - Models Package

# Import all ORM models to register them with SQLAlchemy's declarative base
from .base import Base
from .orm_actor import Actor
from .orm_repo import Repo
from .orm_event import Event, EventKind

__all__ = [
    'Base',
    'Actor',
    'Repo',
    'Event',
    'EventKind',
]
