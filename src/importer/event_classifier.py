"""
Event Classifier for GH Archive records
Maps the external GitHub event type tag onto the internal EventKind.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from models.orm_event import EventKind


class GitHubEventType(str, Enum):
    """GitHub event types the importer recognises."""
    PULL_REQUEST = "PullRequestEvent"
    ISSUE_COMMENT = "IssueCommentEvent"
    COMMIT_COMMENT = "CommitCommentEvent"
    PUSH = "PushEvent"


# Every GitHubEventType member must be listed here
EVENT_KIND_BY_TYPE: Dict[GitHubEventType, EventKind] = {
    GitHubEventType.PULL_REQUEST: EventKind.PULL_REQUEST,
    GitHubEventType.ISSUE_COMMENT: EventKind.COMMENT,
    GitHubEventType.COMMIT_COMMENT: EventKind.COMMENT,
    GitHubEventType.PUSH: EventKind.COMMIT,
}

_unmapped = set(GitHubEventType) - set(EVENT_KIND_BY_TYPE)
if _unmapped:
    raise RuntimeError(
        f"GitHub event types without a classification: {sorted(t.value for t in _unmapped)}"
    )


def classify_type(type_tag: Optional[str]) -> Optional[EventKind]:
    """
    Classify an external type tag.

    Args:
        type_tag: Value of the record's "type" field

    Returns:
        EventKind, or None when the tag is not recognised
    """
    if not isinstance(type_tag, str):
        return None
    try:
        event_type = GitHubEventType(type_tag)
    except ValueError:
        return None
    return EVENT_KIND_BY_TYPE[event_type]


def classify(record: Any) -> Optional[EventKind]:
    """
    Classify a decoded archive record.

    Unrecognised, missing or null types (and records that are not JSON
    objects) yield None. This is a normal outcome: the record is dropped.
    """
    if not isinstance(record, dict):
        return None
    return classify_type(record.get('type'))


def valid_event_types() -> List[str]:
    """Return the external type tags that are imported."""
    return [event_type.value for event_type in GitHubEventType]
