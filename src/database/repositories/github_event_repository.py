"""
Repository: GitHub events
Bulk upserts of actor, repo and event rows produced by the archive importer.

Each entity kind is written with one multi-row INSERT in its own transaction.
What happens to rows whose id already exists is decided by an UpsertPolicy:
- IgnoreConflictPolicy (default): keep the existing row untouched
- UpdateConflictPolicy: overwrite the existing row with the incoming values
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Any, TYPE_CHECKING

from sqlalchemy import Table, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.dml import Insert
from sqlalchemy.dialects import mysql, postgresql, sqlite

from database.connection import DatabaseConnectionError
from models import Actor, Repo, Event
from utils.config import ConfigurationError
from utils.logger import logger

if TYPE_CHECKING:
    from importer.batch_accumulator import Batch
    from importer.record_projector import ActorTuple, RepoTuple, EventTuple

ConnectionFactory = Callable[[], AbstractContextManager]


class WriteFailure(Exception):
    """Raised when the store rejects a write for a reason other than an ignored conflict."""

    def __init__(self, entity: str, cause: Exception):
        super().__init__(f"Failed to write {entity} rows: {cause}")
        self.entity = entity
        self.cause = cause


SUPPORTED_DIALECTS = ('postgresql', 'sqlite', 'mysql', 'mariadb')


def ensure_supported_dialect(dialect_name: str) -> None:
    """
    Check that bulk upserts can be built for a dialect.

    Raises:
        ConfigurationError: For any dialect outside SUPPORTED_DIALECTS
    """
    if dialect_name not in SUPPORTED_DIALECTS:
        raise ConfigurationError(
            f"Upserts are not supported on the '{dialect_name}' dialect. "
            f"Expected one of: {', '.join(SUPPORTED_DIALECTS)}"
        )


def _dialect_insert(table: Table, dialect_name: str):
    ensure_supported_dialect(dialect_name)
    if dialect_name == 'postgresql':
        return postgresql.insert(table)
    if dialect_name == 'sqlite':
        return sqlite.insert(table)
    return mysql.insert(table)


class UpsertPolicy:
    """Builds the bulk INSERT for one entity kind, including its conflict clause."""

    name = 'abstract'

    def build(self, table: Table, rows: Sequence[Dict[str, Any]], dialect_name: str) -> Insert:
        raise NotImplementedError


class IgnoreConflictPolicy(UpsertPolicy):
    """Insert new rows, silently keep existing ones (upsert-ignore)."""

    name = 'ignore'

    def build(self, table: Table, rows: Sequence[Dict[str, Any]], dialect_name: str) -> Insert:
        stmt = _dialect_insert(table, dialect_name).values(list(rows))
        if dialect_name in ('mysql', 'mariadb'):
            # No-op assignment: unlike INSERT IGNORE, other errors still raise
            return stmt.on_duplicate_key_update(id=table.c.id)
        return stmt.on_conflict_do_nothing(index_elements=["id"])


class UpdateConflictPolicy(UpsertPolicy):
    """Insert new rows, overwrite the non-identity columns of existing ones."""

    name = 'update'

    def build(self, table: Table, rows: Sequence[Dict[str, Any]], dialect_name: str) -> Insert:
        stmt = _dialect_insert(table, dialect_name).values(list(rows))
        columns = [column.name for column in table.columns if not column.primary_key]
        if dialect_name in ('mysql', 'mariadb'):
            return stmt.on_duplicate_key_update(
                {name: stmt.inserted[name] for name in columns}
            )
        return stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={name: stmt.excluded[name] for name in columns}
        )


UPSERT_POLICIES = {
    IgnoreConflictPolicy.name: IgnoreConflictPolicy,
    UpdateConflictPolicy.name: UpdateConflictPolicy,
}


def get_upsert_policy(name: str) -> UpsertPolicy:
    """
    Resolve an upsert policy by name ('ignore' or 'update').

    Raises:
        ConfigurationError: For unknown names
    """
    policy_class = UPSERT_POLICIES.get((name or '').lower())
    if policy_class is None:
        raise ConfigurationError(
            f"Unknown upsert policy '{name}'. Expected one of: {', '.join(sorted(UPSERT_POLICIES))}"
        )
    return policy_class()


@dataclass
class FlushResult:
    """Rows sent and rows reported as written for one flush."""
    actors: int = 0
    repos: int = 0
    events: int = 0
    events_written: Optional[int] = None


class UpsertWriter:
    """
    Writes drained batches to the store.

    Args:
        connection_factory: Callable returning a transactional connection
            context manager, e.g. DatabaseConnection.get_connection
        policy: Conflict policy (default: IgnoreConflictPolicy)
    """

    def __init__(self, connection_factory: ConnectionFactory, policy: Optional[UpsertPolicy] = None):
        self.connection_factory = connection_factory
        self.policy = policy or IgnoreConflictPolicy()

    def _write(self, entity: str, table: Table, rows: List[Dict[str, Any]]) -> Optional[int]:
        """
        Execute one bulk statement for one entity kind in one transaction.

        Returns:
            Row count reported by the driver, or None when it has none
        """
        if not rows:
            return 0

        try:
            with self.connection_factory() as conn:
                stmt = self.policy.build(table, rows, conn.dialect.name)
                result = conn.execute(stmt)
                rowcount = result.rowcount
        except (SQLAlchemyError, DatabaseConnectionError, ConfigurationError) as e:
            # Already logged by the connection layer
            raise WriteFailure(entity, e)

        logger.debug(f"Upserted {len(rows)} {entity} rows (policy={self.policy.name})")
        return rowcount if rowcount is not None and rowcount >= 0 else None

    def write_actors(self, actors: Sequence["ActorTuple"]) -> Optional[int]:
        return self._write('actor', Actor.__table__, [actor.to_row() for actor in actors])

    def write_repos(self, repos: Sequence["RepoTuple"]) -> Optional[int]:
        return self._write('repo', Repo.__table__, [repo.to_row() for repo in repos])

    def write_events(self, events: Sequence["EventTuple"]) -> Optional[int]:
        return self._write('event', Event.__table__, [event.to_row() for event in events])

    def flush(self, batch: "Batch") -> FlushResult:
        """
        Write one batch: actors, then repos, then events.

        Raises:
            WriteFailure: On the first rejected statement; earlier statements
                stay committed
        """
        self.write_actors(batch.actors)
        self.write_repos(batch.repos)
        events_written = self.write_events(batch.events)
        return FlushResult(
            actors=len(batch.actors),
            repos=len(batch.repos),
            events=len(batch.events),
            events_written=events_written,
        )

    def count_rows(self) -> Dict[str, int]:
        """Row counts per table."""
        counts = {}
        with self.connection_factory() as conn:
            for model in (Actor, Repo, Event):
                table = model.__table__
                counts[table.name] = conn.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        return counts
