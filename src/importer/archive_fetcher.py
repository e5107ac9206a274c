"""
Archive Fetcher for GH Archive hourly dumps
Downloads gzip-compressed newline-delimited JSON archives and yields their lines.

GH Archive addresses one hour of public GitHub events as
https://data.gharchive.org/YYYY-MM-DD-H.json.gz (hour is not zero-padded).
"""

import codecs
import gzip
import zlib
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple, Union

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type, RetryError

from utils.config import (
    GHARCHIVE_BASE_URL, HTTP_TIMEOUT_SECONDS, MAX_RETRY_ATTEMPTS, RETRY_BACKOFF_MULTIPLIER,
    ARCHIVE_STREAM_DECOMPRESS, ConfigurationError
)
from utils.logger import logger, log_archive_fetched

# Placeholders accepted for "every hour of the day"
ALL_HOURS_SENTINELS = ('{0..23}', 'all', '*')
ALL_HOURS: Tuple[int, ...] = tuple(range(24))

GZIP_WBITS = 16 + zlib.MAX_WBITS
STREAM_CHUNK_SIZE = 1024 * 1024


class DecompressionError(Exception):
    """Raised when an archive is not valid gzip data."""
    pass


class FetchFailure(Exception):
    """Raised when one hour of the archive cannot be downloaded or decompressed."""

    def __init__(self, day: date, hour: int, cause: Exception):
        super().__init__(f"Could not fetch archive {day.isoformat()}-{hour}: {cause}")
        self.day = day
        self.hour = hour
        self.cause = cause


def parse_day(value: Union[str, date, None]) -> date:
    """
    Parse the archive day.

    Args:
        value: YYYY-MM-DD string, date, or None for today (UTC)

    Raises:
        ConfigurationError: If the value is not a valid date
    """
    if value is None or value == '':
        return datetime.now(timezone.utc).date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except ValueError:
        raise ConfigurationError(f"Invalid day: {value!r}. Use YYYY-MM-DD")


def parse_hours(value: Union[str, int, None]) -> Tuple[int, ...]:
    """
    Parse the hour specifier.

    Args:
        value: An hour 0-23, one of ALL_HOURS_SENTINELS, or None (all hours)

    Returns:
        Tuple of hours, in order

    Raises:
        ConfigurationError: If the value is not a valid hour
    """
    if value is None:
        return ALL_HOURS
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ALL_HOURS_SENTINELS:
            return ALL_HOURS
        if not text.isdigit():
            raise ConfigurationError(f"Invalid hour: {value!r}. Use 0-23 or {ALL_HOURS_SENTINELS[0]}")
        value = int(text)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 23:
        raise ConfigurationError(f"Invalid hour: {value!r}. Use 0-23 or {ALL_HOURS_SENTINELS[0]}")
    return (value,)


@dataclass(frozen=True)
class ArchiveWindow:
    """One day and the hours of it to import."""
    day: date
    hours: Tuple[int, ...] = ALL_HOURS

    @classmethod
    def from_options(cls, day: Union[str, date, None] = None,
                     hour: Union[str, int, None] = None) -> "ArchiveWindow":
        return cls(day=parse_day(day), hours=parse_hours(hour))

    @property
    def is_all_hours(self) -> bool:
        return self.hours == ALL_HOURS

    @property
    def label(self) -> str:
        if self.is_all_hours:
            return f"{self.day.isoformat()}-{ALL_HOURS_SENTINELS[0]}"
        return "|".join(f"{self.day.isoformat()}-{hour}" for hour in self.hours)


def decompress_archive(content: bytes) -> str:
    """
    Decompress a whole gzip archive into text.

    Raises:
        DecompressionError: If content is not valid gzip or not UTF-8
    """
    try:
        return gzip.decompress(content).decode('utf-8')
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionError(f"Failed to decompress archive: {e}")
    except UnicodeDecodeError as e:
        raise DecompressionError(f"Archive is not valid UTF-8: {e}")


def iter_decompressed(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """
    Incrementally decompress gzip data, including multi-member files.

    Raises:
        DecompressionError: On corrupt or truncated data
    """
    decompressor = zlib.decompressobj(GZIP_WBITS)
    in_member = False
    try:
        for chunk in chunks:
            while chunk:
                in_member = True
                data = decompressor.decompress(chunk)
                if data:
                    yield data
                if decompressor.eof:
                    in_member = False
                    chunk = decompressor.unused_data
                    decompressor = zlib.decompressobj(GZIP_WBITS)
                else:
                    chunk = b''
        tail = decompressor.flush()
        if tail:
            yield tail
    except zlib.error as e:
        raise DecompressionError(f"Failed to decompress archive: {e}")

    if in_member:
        raise DecompressionError("Archive ended before the end of the gzip stream")


def iter_text_lines(blocks: Iterable[bytes]) -> Iterator[str]:
    """Split decompressed UTF-8 blocks into non-blank lines."""
    decoder = codecs.getincrementaldecoder('utf-8')()
    pending = ''
    try:
        for block in blocks:
            pending += decoder.decode(block)
            *lines, pending = pending.split('\n')
            for line in lines:
                if line.strip():
                    yield line
        pending += decoder.decode(b'', final=True)
    except UnicodeDecodeError as e:
        raise DecompressionError(f"Archive is not valid UTF-8: {e}")
    if pending.strip():
        yield pending


class ArchiveFetcher:
    """
    Client for GH Archive with automatic retry logic.

    Retries with exponential backoff on transient failures (timeouts,
    connection errors). HTTP error statuses and corrupt archives are not
    retried. Every failure for an hour surfaces as FetchFailure.
    """

    def __init__(
        self,
        base_url: str = GHARCHIVE_BASE_URL,
        timeout: int = HTTP_TIMEOUT_SECONDS,
        stream: bool = ARCHIVE_STREAM_DECOMPRESS
    ):
        """
        Args:
            base_url: Archive root URL
            timeout: Per-request timeout in seconds
            stream: Stream-decompress archives instead of loading them whole
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.stream = stream
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': 'GHArchiveImporter/1.0',
            'Accept': 'application/gzip, application/octet-stream'
        })

    def archive_url(self, day: date, hour: int) -> str:
        return f"{self.base_url}/{day.isoformat()}-{hour}.json.gz"

    @retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=RETRY_BACKOFF_MULTIPLIER, min=2, max=60),
        retry=retry_if_exception_type((requests.Timeout, requests.ConnectionError))
    )
    def _get(self, url: str, stream: bool = False) -> requests.Response:
        """
        GET an archive.

        Raises:
            requests.HTTPError: If the archive returns an error status
            RetryError: If timeouts/connection errors persist after retries
        """
        logger.debug(f"Fetching archive {url}")
        response = self.session.get(url, timeout=self.timeout, stream=stream)
        try:
            response.raise_for_status()
        except requests.HTTPError:
            response.close()
            raise
        return response

    def fetch_hour(self, day: date, hour: int) -> List[str]:
        """
        Download one hour and decompress it fully in memory.

        Returns:
            Non-blank lines, in archive order

        Raises:
            FetchFailure: On network, HTTP or decompression errors
        """
        url = self.archive_url(day, hour)
        try:
            response = self._get(url)
            content = response.content
        except (requests.RequestException, RetryError) as e:
            raise FetchFailure(day, hour, e)

        try:
            text = decompress_archive(content)
        except DecompressionError as e:
            raise FetchFailure(day, hour, e)

        lines = [line for line in text.split('\n') if line.strip()]
        log_archive_fetched(url, len(lines))
        return lines

    def stream_hour(self, day: date, hour: int) -> Iterator[str]:
        """
        Download one hour and decompress it while reading.

        Memory stays bounded by the chunk size. A failure part way through
        raises FetchFailure after the lines already yielded; the stream cannot
        be resumed, only restarted.
        """
        url = self.archive_url(day, hour)
        try:
            response = self._get(url, stream=True)
        except (requests.RequestException, RetryError) as e:
            raise FetchFailure(day, hour, e)

        line_count = 0
        try:
            chunks = response.iter_content(chunk_size=STREAM_CHUNK_SIZE)
            for line in iter_text_lines(iter_decompressed(chunks)):
                line_count += 1
                yield line
        except (requests.RequestException, DecompressionError) as e:
            raise FetchFailure(day, hour, e)
        finally:
            response.close()

        log_archive_fetched(url, line_count)

    def iter_hour(self, day: date, hour: int) -> Iterator[str]:
        """Lazily fetch one hour; nothing is downloaded until iteration starts."""
        if self.stream:
            yield from self.stream_hour(day, hour)
        else:
            yield from self.fetch_hour(day, hour)

    def iter_window(self, window: ArchiveWindow) -> Iterator[Tuple[int, Iterator[str]]]:
        """
        One lazy line sequence per hour of the window, in hour order.

        A FetchFailure raised while consuming one hour does not stop the
        outer iteration, so callers can skip that hour and continue.
        """
        for hour in window.hours:
            yield hour, self.iter_hour(window.day, hour)

    def close(self):
        """Close the HTTP session."""
        self.session.close()
