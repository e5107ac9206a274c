"""
GH Archive Importer - pytest Configuration and Fixtures

Provides shared test fixtures for:
- Sample GH Archive records and gzip archives
- An in-memory SQLite store with the actor/repo/event tables
- A stub archive fetcher for pipeline tests

Note: MySQL fixtures are in tests/integration/conftest.py
"""

import gzip
import json
from datetime import date
from typing import Dict, List, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from database.connection import DatabaseConnection
from database.repositories.github_event_repository import UpsertWriter
from importer.archive_fetcher import FetchFailure
from models import Base


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def make_record():
    """
    Factory for GH Archive records.

    Returns:
        Function building a record dict; keyword arguments override fields
    """
    def _make_record(
        event_id: int = 2489651045,
        event_type: str = "PushEvent",
        actor_id: int = 665991,
        repo_id: int = 28688495,
        size: int = 1,
        **overrides
    ) -> dict:
        record = {
            "id": str(event_id),
            "type": event_type,
            "actor": {
                "id": actor_id,
                "login": f"user{actor_id}",
                "gravatar_id": "",
                "url": f"https://api.github.com/users/user{actor_id}",
                "avatar_url": f"https://avatars.githubusercontent.com/u/{actor_id}?"
            },
            "repo": {
                "id": repo_id,
                "name": f"org/repo{repo_id}",
                "url": f"https://api.github.com/repos/org/repo{repo_id}"
            },
            "payload": {"action": "opened"},
            "public": True,
            "created_at": "2015-01-01T15:00:00Z"
        }
        if event_type == "PushEvent":
            record["payload"] = {
                "push_id": 536863970,
                "size": size,
                "distinct_size": size,
                "ref": "refs/heads/master",
                "commits": []
            }
        record.update(overrides)
        return record

    return _make_record


@pytest.fixture
def to_lines():
    """Serialize records into archive lines."""
    def _to_lines(records: List[dict]) -> List[str]:
        return [json.dumps(record) for record in records]

    return _to_lines


@pytest.fixture
def gzip_archive():
    """Build a gzip-compressed newline-delimited JSON archive."""
    def _gzip_archive(records: List[dict]) -> bytes:
        body = "\n".join(json.dumps(record) for record in records) + "\n"
        return gzip.compress(body.encode("utf-8"))

    return _gzip_archive


@pytest.fixture
def archive_day():
    return date(2015, 1, 1)


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def sqlite_database():
    """
    In-memory SQLite store with the importer tables created.

    StaticPool keeps every connection on the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    database = DatabaseConnection(engine=engine)
    yield database
    engine.dispose()


@pytest.fixture
def writer(sqlite_database):
    """UpsertWriter with the default ignore-on-conflict policy."""
    return UpsertWriter(sqlite_database.get_connection)


# ============================================================================
# Fetcher Fixtures
# ============================================================================

class StubFetcher:
    """
    Archive fetcher serving prepared lines per hour.

    An hour mapped to an exception raises FetchFailure when its lines are
    consumed, like ArchiveFetcher.iter_window does.
    """

    def __init__(self, hours: Dict[int, Union[List[str], Exception]]):
        self.hours = hours
        self.fetched_hours: List[int] = []

    def _lines(self, day, hour):
        self.fetched_hours.append(hour)
        outcome = self.hours.get(hour, [])
        if isinstance(outcome, Exception):
            raise FetchFailure(day, hour, outcome)
        yield from outcome

    def iter_window(self, window):
        for hour in window.hours:
            yield hour, self._lines(window.day, hour)


@pytest.fixture
def stub_fetcher():
    """Factory for StubFetcher."""
    return StubFetcher
