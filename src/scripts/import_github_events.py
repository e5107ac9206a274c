#!/usr/bin/env python3
"""
GH Archive Importer - Import CLI
Imports one window of public GitHub events from data.gharchive.org.

Usage:
    # Import every hour of today (UTC)
    python -m scripts.import_github_events

    # Import a single hour
    python -m scripts.import_github_events --day 2015-01-01 --hour 15

    # Import a whole day, flushing every 500 events, skipping missing hours
    python -m scripts.import_github_events --day 2016-02-03 --batch-size 500 --on-fetch-failure skip

Exit codes: 0 success, 1 import failed, 2 invalid configuration.
"""

import argparse
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from utils.config import (
    IMPORT_BATCH_SIZE, FETCH_FAILURE_POLICY, UPSERT_POLICY, ARCHIVE_STREAM_DECOMPRESS,
    ConfigurationError
)
from utils.logger import logger
from database.connection import DatabaseConnection, DatabaseConnectionError, db
from database.repositories.github_event_repository import (
    UpsertWriter, ensure_supported_dialect, get_upsert_policy, UPSERT_POLICIES
)
from importer import ArchiveFetcher, ArchiveWindow, ImportPipeline, ImportProgress, ImportResult
from importer.archive_fetcher import ALL_HOURS_SENTINELS
from importer.batch_accumulator import validate_batch_size
from importer.import_pipeline import FETCH_FAILURE_POLICIES, EXIT_FAILURE

EXIT_CONFIGURATION_ERROR = 2


def print_progress(progress: ImportProgress) -> None:
    """Print progress update to console."""
    print(f"\r[{progress.state.value:<12}] Hour: {progress.current_hour} | "
          f"Lines: {progress.lines_read:,} | Events: {progress.events_seen:,} | "
          f"Flushed: {progress.events_flushed:,} ({progress.flushes} batches) | "
          f"Skipped: {progress.records_skipped}", end='', flush=True)


def print_summary(result: ImportResult) -> None:
    """Print the final counters; also printed for failed runs."""
    print()  # New line after progress output
    print(f"{'='*60}")
    print(f"Import {'Complete' if result.succeeded else 'FAILED'}: {result.window.label}")
    print(f"{'='*60}")
    print(f"Status:        {result.state.value}")
    print(f"Lines read:    {result.lines_read:,}")
    print(f"Events:        {result.events_seen:,}")
    print(f"Flushed:       {result.events_flushed:,} in {result.flushes} batches")
    print(f"Skipped:       {result.records_skipped} malformed records")
    if result.skipped_hours:
        print(f"Missing hours: {', '.join(str(hour) for hour in result.skipped_hours)}")
    print(f"Duration:      {result.duration_seconds:.1f}s")
    if result.error:
        print(f"Error:         {result.error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='import-github-events',
        description="Import GitHub events from data.gharchive.org"
    )
    parser.add_argument(
        '--day', '-d',
        type=str,
        default=None,
        help='Day to import (YYYY-MM-DD, default: today UTC)'
    )
    parser.add_argument(
        '--hour', '-H',
        type=str,
        default=ALL_HOURS_SENTINELS[0],
        help=f'Hour to import, 0-23, or {ALL_HOURS_SENTINELS[0]} for the whole day (default)'
    )
    parser.add_argument(
        '--batch-size', '-b',
        type=str,
        default=str(IMPORT_BATCH_SIZE),
        help=f'Events to accumulate before writing them (default: {IMPORT_BATCH_SIZE})'
    )
    parser.add_argument(
        '--on-fetch-failure',
        choices=FETCH_FAILURE_POLICIES,
        default=FETCH_FAILURE_POLICY if FETCH_FAILURE_POLICY in FETCH_FAILURE_POLICIES else 'abort',
        help='Abort the run or skip the hour when an archive cannot be fetched (default: abort)'
    )
    parser.add_argument(
        '--on-conflict',
        choices=sorted(UPSERT_POLICIES),
        default=UPSERT_POLICY if UPSERT_POLICY in UPSERT_POLICIES else 'ignore',
        help='Keep (ignore) or overwrite (update) rows that already exist (default: ignore)'
    )
    parser.add_argument(
        '--stream',
        action=argparse.BooleanOptionalAction,
        default=ARCHIVE_STREAM_DECOMPRESS,
        help='Decompress archives while downloading instead of in memory (--no-stream to buffer them)'
    )
    parser.add_argument(
        '--database-url',
        type=str,
        default=None,
        help='SQLAlchemy URL of the store (default: from DATABASE_URL / DB_* settings)'
    )
    parser.add_argument(
        '--create-tables',
        action='store_true',
        help='Create the actor, repo and event tables if they are missing'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Do not print progress'
    )
    return parser


def report_configuration_error(error: ConfigurationError) -> int:
    logger.error("Invalid configuration", extra={
        "event_type": "configuration_error",
        "error_message": str(error)
    })
    print(f"Configuration error: {error}", file=sys.stderr)
    return EXIT_CONFIGURATION_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        window = ArchiveWindow.from_options(args.day, args.hour)
        batch_size = validate_batch_size(args.batch_size)
        policy = get_upsert_policy(args.on_conflict)
    except ConfigurationError as e:
        return report_configuration_error(e)

    database = DatabaseConnection(url=args.database_url) if args.database_url else db
    fetcher = ArchiveFetcher(stream=args.stream)

    try:
        # Checked before any archive is downloaded
        ensure_supported_dialect(database.get_engine().dialect.name)

        if args.create_tables:
            database.create_tables()

        pipeline = ImportPipeline(
            fetcher=fetcher,
            writer=UpsertWriter(database.get_connection, policy=policy),
            batch_size=batch_size,
            fetch_failure_policy=args.on_fetch_failure,
            progress_callback=None if args.quiet else print_progress
        )
        result = pipeline.run(window)

    except ConfigurationError as e:
        return report_configuration_error(e)

    except (DatabaseConnectionError, SQLAlchemyError) as e:
        logger.exception("Import could not start")
        print(f"Database error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    finally:
        fetcher.close()
        database.close()

    print_summary(result)
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())
