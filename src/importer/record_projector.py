"""
Record Projector for GH Archive records
Decodes archive lines and projects a classified record into the actor, repo
and event rows that are written to the store.
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser

from models.orm_event import EventKind


class MalformedRecordError(Exception):
    """Raised when an archive record is missing a required field or cannot be decoded."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


@dataclass(frozen=True)
class ActorTuple:
    """Actor row, identified by id."""
    id: int
    login: str
    url: str
    avatar_url: str

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RepoTuple:
    """Repo row, identified by id."""
    id: int
    name: str
    url: str

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EventTuple:
    """Event row, identified by id."""
    id: int
    kind: EventKind
    actor_id: int
    repo_id: int
    payload: str
    created_at: datetime
    comment: str = ''
    count: int = 1

    def to_row(self) -> Dict[str, Any]:
        """Map onto the event table columns."""
        return {
            'id': self.id,
            'type': self.kind.value,
            'actor_id': self.actor_id,
            'repo_id': self.repo_id,
            'payload': self.payload,
            'created_at': self.created_at,
            'comment': self.comment,
            'count': self.count,
        }


@dataclass(frozen=True)
class ProjectedRecord:
    """The complete (actor, repo, event) triple for one archive record."""
    actor: ActorTuple
    repo: RepoTuple
    event: EventTuple


def decode_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Decode one newline-delimited JSON line.

    Returns:
        The decoded object, or None for a blank line

    Raises:
        MalformedRecordError: If the line is not a JSON object
    """
    if not line or not line.strip():
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Invalid JSON: {e}")
    if not isinstance(record, dict):
        raise MalformedRecordError(f"Expected a JSON object, got {type(record).__name__}")
    return record


def _require(container: Dict[str, Any], key: str, path: str, record_id: Optional[str]) -> Any:
    value = container.get(key)
    if value is None or value == '':
        raise MalformedRecordError(f"Missing required field: {path}", record_id)
    return value


def _require_int(container: Dict[str, Any], key: str, path: str, record_id: Optional[str]) -> int:
    """Integers, digit strings and integral floats; anything else is malformed."""
    value = _require(container, key, path, record_id)
    if isinstance(value, bool):
        raise MalformedRecordError(f"Field {path} is not an integer: {value!r}", record_id)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value)
    raise MalformedRecordError(f"Field {path} is not an integer: {value!r}", record_id)


def _require_str(container: Dict[str, Any], key: str, path: str, record_id: Optional[str]) -> str:
    value = _require(container, key, path, record_id)
    if not isinstance(value, str):
        raise MalformedRecordError(f"Field {path} is not a string: {value!r}", record_id)
    return value


def _optional_str(container: Dict[str, Any], key: str, path: str, record_id: Optional[str]) -> str:
    value = container.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise MalformedRecordError(f"Field {path} is not a string: {value!r}", record_id)
    return value


def _require_object(record: Dict[str, Any], key: str, record_id: Optional[str]) -> Dict[str, Any]:
    value = record.get(key)
    if not isinstance(value, dict):
        raise MalformedRecordError(f"Missing required field: {key}", record_id)
    return value


def _parse_created_at(value: Any, record_id: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp into a naive UTC datetime."""
    if not isinstance(value, str) or not value:
        raise MalformedRecordError("Missing required field: created_at", record_id)
    try:
        parsed = date_parser.isoparse(value)
    except ValueError:
        raise MalformedRecordError(f"Invalid created_at timestamp: {value!r}", record_id)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def project_actor(actor: Dict[str, Any], record_id: Optional[str] = None) -> ActorTuple:
    return ActorTuple(
        id=_require_int(actor, 'id', 'actor.id', record_id),
        login=_require_str(actor, 'login', 'actor.login', record_id),
        url=_optional_str(actor, 'url', 'actor.url', record_id),
        avatar_url=_optional_str(actor, 'avatar_url', 'actor.avatar_url', record_id),
    )


def project_repo(repo: Dict[str, Any], record_id: Optional[str] = None) -> RepoTuple:
    return RepoTuple(
        id=_require_int(repo, 'id', 'repo.id', record_id),
        name=_require_str(repo, 'name', 'repo.name', record_id),
        url=_optional_str(repo, 'url', 'repo.url', record_id),
    )


def commit_count(payload: Dict[str, Any], record_id: Optional[str] = None) -> int:
    """
    Number of commits carried by a push.

    A push without payload.size means the archive format changed, so it is
    rejected rather than defaulted.
    """
    size = _require_int(payload, 'size', 'payload.size', record_id)
    if size < 0:
        raise MalformedRecordError(f"Field payload.size is negative: {size}", record_id)
    return size


def project_record(record: Dict[str, Any], kind: EventKind) -> ProjectedRecord:
    """
    Project a classified archive record into its actor, repo and event rows.

    Args:
        record: Decoded archive record
        kind: EventKind returned by the classifier

    Returns:
        ProjectedRecord with all three rows

    Raises:
        MalformedRecordError: If a required field is missing or invalid
    """
    raw_id = record.get('id')
    record_id = str(raw_id) if raw_id is not None else None

    event_id = _require_int(record, 'id', 'id', record_id)
    actor = project_actor(_require_object(record, 'actor', record_id), record_id)
    repo = project_repo(_require_object(record, 'repo', record_id), record_id)
    created_at = _parse_created_at(record.get('created_at'), record_id)

    payload = record.get('payload')
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise MalformedRecordError("Field payload is not an object", record_id)

    count = commit_count(payload, record_id) if kind is EventKind.COMMIT else 1

    event = EventTuple(
        id=event_id,
        kind=kind,
        actor_id=actor.id,
        repo_id=repo.id,
        payload=json.dumps(payload, separators=(',', ':'), ensure_ascii=False),
        created_at=created_at,
        comment='',
        count=count,
    )
    return ProjectedRecord(actor=actor, repo=repo, event=event)
