"""
SQLAlchemy ORM Model: Repo
A GitHub repository an event happened on.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column
from models.base import Base


class Repo(Base):
    __tablename__ = "repo"
    __table_args__ = {'extend_existing': True}

    # GitHub repository ID
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="owner/name")
    url: Mapped[str] = mapped_column(String(255), nullable=False, default='')

    def __repr__(self) -> str:
        return f"<Repo(id={self.id}, name='{self.name}')>"
