"""
SQLAlchemy ORM Model: Event
A classified GitHub event imported from GH Archive.
"""

from sqlalchemy import BigInteger, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from models.base import Base
from datetime import datetime
import enum


class EventKind(enum.Enum):
    """Internal event kinds, stored in event.type."""
    PULL_REQUEST = "PR"
    COMMENT = "MSG"
    COMMIT = "COM"


class Event(Base):
    """
    One imported event.

    actor_id and repo_id reference actor.id and repo.id but are not declared
    as foreign keys: rows are written in bulk and conflicting inserts are
    ignored, so referential integrity is not enforced by the store.
    """
    __tablename__ = "event"

    # GH Archive event ID
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    type: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        comment="EventKind value: PR, MSG or COM"
    )
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    repo_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False, comment="Original payload, JSON encoded")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default='')
    count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Number of commits for COM events, 1 otherwise"
    )

    __table_args__ = (
        Index('idx_event_type', 'type'),
        Index('idx_event_actor', 'actor_id'),
        Index('idx_event_repo', 'repo_id'),
        {'extend_existing': True}
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, type='{self.type}', repo_id={self.repo_id})>"
