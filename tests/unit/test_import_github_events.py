"""
Unit Tests: import_github_events CLI
Tests for option parsing, exit codes and the end-to-end run against SQLite.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests
from freezegun import freeze_time

from database.connection import DatabaseConnectionError
from importer.archive_fetcher import ALL_HOURS, ArchiveWindow
from importer.import_pipeline import ImportResult, PipelineState
from scripts import import_github_events
from scripts.import_github_events import EXIT_CONFIGURATION_ERROR, build_parser, main


@pytest.fixture
def mock_fetcher_class(stub_fetcher):
    """Patch ArchiveFetcher; configure hours through the returned mock."""
    with patch.object(import_github_events, "ArchiveFetcher") as fetcher_class:
        def serve(hours):
            stub = stub_fetcher(hours)
            fetcher_class.return_value.iter_window.side_effect = stub.iter_window
            return stub

        fetcher_class.serve = serve
        yield fetcher_class


class TestBuildParser:
    """Tests for the argument parser."""

    def test_defaults(self):
        args = build_parser().parse_args([])

        assert args.day is None
        assert args.hour == "{0..23}"
        assert args.on_fetch_failure in ("abort", "skip")
        assert args.on_conflict in ("ignore", "update")
        assert args.create_tables is False

    @patch.object(import_github_events, "ARCHIVE_STREAM_DECOMPRESS", True)
    def test_stream_can_be_turned_off(self):
        """A configured streaming default can be overridden with --no-stream."""
        assert build_parser().parse_args([]).stream is True
        assert build_parser().parse_args(["--no-stream"]).stream is False

    @patch.object(import_github_events, "ARCHIVE_STREAM_DECOMPRESS", False)
    def test_stream_can_be_turned_on(self):
        assert build_parser().parse_args([]).stream is False
        assert build_parser().parse_args(["--stream"]).stream is True

    def test_short_options(self):
        args = build_parser().parse_args(["-d", "2015-01-01", "-H", "15", "-b", "500", "-q"])

        assert args.day == "2015-01-01"
        assert args.hour == "15"
        assert args.batch_size == "500"
        assert args.quiet is True

    def test_unknown_fetch_failure_policy_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--on-fetch-failure", "retry"])


class TestMainConfigurationErrors:
    """Invalid options exit with code 2 before anything is fetched."""

    @pytest.mark.parametrize("argv", [
        ["--hour", "24"],
        ["--day", "2015-13-01"],
        ["--batch-size", "0"],
        ["--batch-size", "-3"],
        ["--batch-size", "many"],
    ])
    def test_invalid_options(self, argv, mock_fetcher_class, capsys):
        assert main(argv) == EXIT_CONFIGURATION_ERROR

        mock_fetcher_class.assert_not_called()
        assert "Configuration error" in capsys.readouterr().err

    def test_unsupported_database_dialect(self, mock_fetcher_class, capsys):
        """An unsupported store is rejected before any archive is downloaded."""
        with patch.object(import_github_events, "DatabaseConnection") as database_class:
            database_class.return_value.get_engine.return_value.dialect.name = "oracle"

            exit_code = main(["--day", "2015-01-01", "--hour", "15", "--database-url", "oracle://u@db/xe"])

        assert exit_code == EXIT_CONFIGURATION_ERROR
        assert "oracle" in capsys.readouterr().err
        mock_fetcher_class.return_value.iter_window.assert_not_called()
        database_class.return_value.create_tables.assert_not_called()
        database_class.return_value.close.assert_called_once()


class TestMainRun:
    """Tests for complete runs."""

    def test_import_into_sqlite(self, mock_fetcher_class, make_record, to_lines, capsys):
        lines = to_lines([
            make_record(event_id=1),
            make_record(event_id=2, event_type="PullRequestEvent"),
            make_record(event_id=3, event_type="WatchEvent"),
        ])
        mock_fetcher_class.serve({15: lines})

        exit_code = main([
            "--day", "2015-01-01", "--hour", "15",
            "--database-url", "sqlite://", "--create-tables", "--quiet"
        ])

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "Import Complete: 2015-01-01-15" in output
        assert "Events:        2" in output
        mock_fetcher_class.return_value.close.assert_called_once()

    def test_fetch_failure_exits_with_failure(self, mock_fetcher_class, capsys):
        mock_fetcher_class.serve({15: requests.ConnectionError("unreachable")})

        exit_code = main([
            "--day", "2015-01-01", "--hour", "15",
            "--database-url", "sqlite://", "--create-tables", "--quiet"
        ])

        assert exit_code == 1
        assert "Import FAILED" in capsys.readouterr().out

    def test_database_error_exits_with_failure(self, mock_fetcher_class, capsys):
        with patch.object(import_github_events, "DatabaseConnection") as database_class:
            database_class.return_value.get_engine.return_value.dialect.name = "mysql"
            database_class.return_value.create_tables.side_effect = DatabaseConnectionError("refused")

            exit_code = main(["--database-url", "mysql+pymysql://u@nowhere/db", "--create-tables"])

        assert exit_code == 1
        assert "Database error: refused" in capsys.readouterr().err
        mock_fetcher_class.return_value.close.assert_called_once()
        database_class.return_value.close.assert_called_once()

    @freeze_time("2016-02-03 10:00:00")
    def test_default_window_is_today_all_hours(self, mock_fetcher_class):
        """Without --day and --hour the whole current UTC day is imported."""
        with patch.object(import_github_events, "ImportPipeline") as pipeline_class, \
                patch.object(import_github_events, "db") as mock_db:
            mock_db.get_engine.return_value.dialect.name = "mysql"
            window = ArchiveWindow(day=date(2016, 2, 3), hours=ALL_HOURS)
            pipeline_class.return_value.run.return_value = ImportResult(
                window=window, state=PipelineState.DONE, lines_read=0, events_seen=0,
                events_flushed=0, records_skipped=0, flushes=0
            )

            exit_code = main(["--quiet", "--on-conflict", "update"])

        assert exit_code == 0
        assert pipeline_class.return_value.run.call_args[0][0] == window
        assert pipeline_class.call_args[1]["progress_callback"] is None
        assert pipeline_class.call_args[1]["writer"].policy.name == "update"
        mock_db.close.assert_called_once()
