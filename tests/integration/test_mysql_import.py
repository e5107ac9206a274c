"""
Integration Tests: MySQL import

Runs the import pipeline against a real MySQL test database to check the
ON DUPLICATE KEY UPDATE statements of both upsert policies.
"""

import pytest
from sqlalchemy import select

from database.repositories.github_event_repository import UpdateConflictPolicy, UpsertWriter
from importer.archive_fetcher import ArchiveWindow
from importer.import_pipeline import ImportPipeline, PipelineState
from importer.record_projector import project_record
from models import Actor, EventKind


pytestmark = pytest.mark.integration


def test_mysql_import_is_idempotent(mysql_database, stub_fetcher, make_record, to_lines, archive_day):
    """Two imports of the same hour leave identical row counts."""
    lines = to_lines([make_record(event_id=i, actor_id=i % 4, size=2) for i in range(30)])
    writer = UpsertWriter(mysql_database.get_connection)
    window = ArchiveWindow(day=archive_day, hours=(15,))

    first = ImportPipeline(stub_fetcher({15: lines}), writer, batch_size=7).run(window)
    counts = writer.count_rows()
    second = ImportPipeline(stub_fetcher({15: lines}), writer, batch_size=7).run(window)

    assert first.state is PipelineState.DONE
    assert second.state is PipelineState.DONE
    assert first.flush_sizes == [7, 7, 7, 7, 2]
    assert counts == {"actor": 4, "repo": 1, "event": 30}
    assert writer.count_rows() == counts


def test_mysql_update_policy_overwrites(mysql_database, make_record):
    writer = UpsertWriter(mysql_database.get_connection, policy=UpdateConflictPolicy())
    original = make_record(actor_id=1)
    renamed = make_record(actor_id=1)
    renamed["actor"]["login"] = "renamed"

    writer.write_actors([project_record(original, EventKind.COMMIT).actor])
    writer.write_actors([project_record(renamed, EventKind.COMMIT).actor])

    with mysql_database.get_connection() as conn:
        login = conn.execute(select(Actor.__table__.c.login)).scalar_one()
    assert login == "renamed"
