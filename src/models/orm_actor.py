"""
SQLAlchemy ORM Model: Actor
A GitHub user (or bot) that triggered an event.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column
from models.base import Base


class Actor(Base):
    __tablename__ = "actor"
    __table_args__ = {'extend_existing': True}

    # GitHub account ID
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    login: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(255), nullable=False, default='')
    avatar_url: Mapped[str] = mapped_column(String(255), nullable=False, default='')

    def __repr__(self) -> str:
        return f"<Actor(id={self.id}, login='{self.login}')>"
