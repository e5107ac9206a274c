"""
Batch Accumulator
Buffers projected rows per entity kind until a batch is ready to be written.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from importer.record_projector import ActorTuple, RepoTuple, EventTuple, ProjectedRecord
from utils.config import ConfigurationError


def validate_batch_size(value) -> int:
    """
    Validate a batch size.

    Raises:
        ConfigurationError: If value is not a positive integer
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid batch size: {value!r}")
    try:
        batch_size = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid batch size: {value!r}")
    if isinstance(value, float) and value != batch_size:
        raise ConfigurationError(f"Invalid batch size: {value!r}")
    if batch_size <= 0:
        raise ConfigurationError(f"Batch size must be a positive integer, got {batch_size}")
    return batch_size


@dataclass
class Batch:
    """Rows drained from the accumulator, ready for one flush."""
    actors: List[ActorTuple] = field(default_factory=list)
    repos: List[RepoTuple] = field(default_factory=list)
    events: List[EventTuple] = field(default_factory=list)
    appended: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.events


class BatchAccumulator:
    """
    Per-kind buffers keyed by entity id.

    Within one batch the last appended row for an id wins, so an actor that
    shows up in 50 events is sent to the store once. The flush threshold
    counts appended records, not distinct event ids.
    """

    def __init__(self):
        self._actors: Dict[int, ActorTuple] = {}
        self._repos: Dict[int, RepoTuple] = {}
        self._events: Dict[int, EventTuple] = {}
        self._appended = 0

    def append(self, record: ProjectedRecord) -> None:
        self._actors[record.actor.id] = record.actor
        self._repos[record.repo.id] = record.repo
        self._events[record.event.id] = record.event
        self._appended += 1

    @property
    def pending(self) -> int:
        """Records appended since the last drain."""
        return self._appended

    @property
    def is_empty(self) -> bool:
        return self._appended == 0

    def should_flush(self, batch_size: int) -> bool:
        return self._appended >= batch_size

    def drain_all(self) -> Batch:
        """Return the buffered rows and reset all three buffers."""
        batch = Batch(
            actors=list(self._actors.values()),
            repos=list(self._repos.values()),
            events=list(self._events.values()),
            appended=self._appended,
        )
        self._actors = {}
        self._repos = {}
        self._events = {}
        self._appended = 0
        return batch
