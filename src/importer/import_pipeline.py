"""
Import Pipeline for GH Archive events
Orchestrates archive fetching, classification, projection, batching and
bulk upserts for one archive window.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from importer.archive_fetcher import ArchiveFetcher, ArchiveWindow, FetchFailure
from importer.batch_accumulator import BatchAccumulator, validate_batch_size
from importer.event_classifier import classify
from importer.record_projector import MalformedRecordError, decode_line, project_record
from database.repositories.github_event_repository import UpsertWriter, WriteFailure
from utils.config import ConfigurationError
from utils.logger import (
    logger, log_import_start, log_batch_flushed, log_record_skipped, log_fetch_error,
    log_import_complete, log_import_error
)

FETCH_FAILURE_POLICIES = ('abort', 'skip')

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class PipelineState(enum.Enum):
    """Import pipeline states."""
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    CLASSIFYING = "CLASSIFYING"
    PROJECTING = "PROJECTING"
    ACCUMULATING = "ACCUMULATING"
    FLUSHING = "FLUSHING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class ImportProgress:
    """Running counters for an import."""
    state: PipelineState
    lines_read: int
    events_seen: int
    events_flushed: int
    records_skipped: int
    flushes: int
    current_hour: Optional[int] = None


@dataclass
class ImportResult:
    """Result of a finished import (successful or not)."""
    window: ArchiveWindow
    state: PipelineState
    lines_read: int
    events_seen: int
    events_flushed: int
    records_skipped: int
    flushes: int
    flush_sizes: List[int] = field(default_factory=list)
    skipped_hours: List[int] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.succeeded else EXIT_FAILURE


class ImportPipeline:
    """
    Imports one archive window into the store.

    Lines are processed strictly in archive order. Every batch_size
    accumulated events are flushed (actors, repos, events) before reading
    on; whatever is left is flushed once the input is exhausted.

    Failure handling:
    - Malformed records are logged and skipped
    - A fetch failure aborts the run (or skips the hour with policy 'skip');
      events already accumulated from earlier hours are flushed first
    - A write failure aborts the run; earlier batches stay committed, and
      re-running the window is idempotent
    """

    def __init__(
        self,
        fetcher: ArchiveFetcher,
        writer: UpsertWriter,
        batch_size: int = 100,
        fetch_failure_policy: str = 'abort',
        progress_callback: Optional[Callable[[ImportProgress], None]] = None
    ):
        """
        Args:
            fetcher: Archive source
            writer: Store writer
            batch_size: Events per flush (positive integer)
            fetch_failure_policy: 'abort' (default) or 'skip'
            progress_callback: Optional callback for progress updates

        Raises:
            ConfigurationError: For an invalid batch size or policy
        """
        if fetch_failure_policy not in FETCH_FAILURE_POLICIES:
            raise ConfigurationError(
                f"Unknown fetch failure policy '{fetch_failure_policy}'. "
                f"Expected one of: {', '.join(FETCH_FAILURE_POLICIES)}"
            )
        self.fetcher = fetcher
        self.writer = writer
        self.batch_size = validate_batch_size(batch_size)
        self.fetch_failure_policy = fetch_failure_policy
        self.progress_callback = progress_callback
        self._reset()

    def _reset(self) -> None:
        self.state = PipelineState.IDLE
        self.accumulator = BatchAccumulator()
        self.lines_read = 0
        self.events_seen = 0
        self.events_flushed = 0
        self.records_skipped = 0
        self.flush_sizes: List[int] = []
        self.skipped_hours: List[int] = []
        self.current_hour: Optional[int] = None

    @property
    def progress(self) -> ImportProgress:
        return ImportProgress(
            state=self.state,
            lines_read=self.lines_read,
            events_seen=self.events_seen,
            events_flushed=self.events_flushed,
            records_skipped=self.records_skipped,
            flushes=len(self.flush_sizes),
            current_hour=self.current_hour
        )

    def _report_progress(self) -> None:
        if self.progress_callback:
            self.progress_callback(self.progress)

    def run(self, window: ArchiveWindow) -> ImportResult:
        """
        Import one archive window.

        Returns:
            ImportResult; check exit_code / error for failures
        """
        self._reset()
        start_time = datetime.now(timezone.utc)
        error: Optional[Exception] = None

        log_import_start(window.day.isoformat(), list(window.hours), self.batch_size)

        try:
            for hour, lines in self.fetcher.iter_window(window):
                self.current_hour = hour
                self.state = PipelineState.FETCHING
                try:
                    for line in lines:
                        self._process_line(line)
                except FetchFailure as e:
                    log_fetch_error(e, window.day.isoformat(), hour, self.fetch_failure_policy)
                    if self.fetch_failure_policy == 'abort':
                        raise
                    self.skipped_hours.append(hour)

            self._flush()
            self.state = PipelineState.DONE

        except FetchFailure as e:
            error = e
            self._flush_after_fetch_failure()

        except WriteFailure as e:
            error = e
            self.state = PipelineState.FAILED

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()

        if error is None:
            log_import_complete(duration, self.events_seen, self.events_flushed,
                                self.records_skipped, len(self.flush_sizes))
        else:
            log_import_error(error, self.events_seen, self.events_flushed)

        self._report_progress()

        return ImportResult(
            window=window,
            state=self.state,
            lines_read=self.lines_read,
            events_seen=self.events_seen,
            events_flushed=self.events_flushed,
            records_skipped=self.records_skipped,
            flushes=len(self.flush_sizes),
            flush_sizes=list(self.flush_sizes),
            skipped_hours=list(self.skipped_hours),
            duration_seconds=duration,
            error=str(error) if error else None
        )

    def _process_line(self, line: str) -> None:
        self.lines_read += 1

        self.state = PipelineState.CLASSIFYING
        try:
            record = decode_line(line)
        except MalformedRecordError as e:
            self._skip_record(e)
            return
        kind = classify(record)
        if kind is None:
            return

        self.state = PipelineState.PROJECTING
        try:
            projected = project_record(record, kind)
        except MalformedRecordError as e:
            self._skip_record(e)
            return

        self.state = PipelineState.ACCUMULATING
        self.accumulator.append(projected)
        self.events_seen += 1

        if self.accumulator.should_flush(self.batch_size):
            self._flush()

    def _skip_record(self, error: MalformedRecordError) -> None:
        self.records_skipped += 1
        log_record_skipped(str(error), self.lines_read, error.record_id)

    def _flush(self) -> None:
        """Write the accumulated batch; a no-op when nothing is pending."""
        if self.accumulator.is_empty:
            return

        self.state = PipelineState.FLUSHING
        batch = self.accumulator.drain_all()
        result = self.writer.flush(batch)

        self.events_flushed += batch.appended
        self.flush_sizes.append(batch.appended)
        log_batch_flushed(batch.appended, result.actors, result.repos, self.events_flushed,
                          result.events_written)
        self._report_progress()

    def _flush_after_fetch_failure(self) -> None:
        """Persist what completed hours produced, then mark the run failed."""
        try:
            self._flush()
        except WriteFailure as e:
            logger.error(f"Could not flush pending events after fetch failure: {e}")
        self.state = PipelineState.FAILED
