"""Data model for ac - issues, comments, and project config."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ac_core.constants import (
    BASE36_CHARS,
    DEFAULT_ISSUE_TYPE,
    DEFAULT_PRIORITY,
    LEGACY_TYPE_ALIASES,
    PREFIX_LENGTH,
    SCHEMA_VERSION,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    VALID_ISSUE_TYPES,
    VALID_STATUSES,
)
from ac_core.exceptions import ConfigError, InvalidFieldError
from ac_core.utils import validate_priority, validate_title

__all__ = [
    "Comment",
    "Issue",
    "Config",
    "normalize_issue_type",
    "check_issue",
]


def normalize_issue_type(value: object) -> str:
    """Map an issue type label to its canonical form.

    Historical labels (bug, feature, chore) fold into "task".

    Raises:
        InvalidFieldError: If the label is neither canonical nor a known alias
    """
    if not isinstance(value, str):
        raise InvalidFieldError(f"Issue type must be a string, got {value!r}")
    label = value.strip().lower()
    label = LEGACY_TYPE_ALIASES.get(label, label)
    if label not in VALID_ISSUE_TYPES:
        raise InvalidFieldError(
            f"Unknown issue type: {value}. Must be one of {sorted(VALID_ISSUE_TYPES)}"
        )
    return label


@dataclass
class Comment:
    author: str
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"author": self.author, "message": self.message, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> "Comment":
        if not isinstance(data, dict):
            raise InvalidFieldError(f"Comment must be an object, got {data!r}")
        try:
            author, message, timestamp = data["author"], data["message"], data["timestamp"]
        except KeyError as e:
            raise InvalidFieldError(f"Comment missing field {e.args[0]!r}") from None
        for name, value in (("author", author), ("message", message), ("timestamp", timestamp)):
            if not isinstance(value, str):
                raise InvalidFieldError(f"Comment {name} must be a string")
        return cls(author=author, message=message, timestamp=timestamp)


@dataclass
class Issue:
    """One unit of trackable work.

    ``status`` changes only through the transition engine, and ``owner`` is
    set exactly while the issue is in progress. ``blocked_by`` and
    ``blocks`` hold IDs, never Issue references; the dependency service keeps
    them mirrored across the index.
    """

    id: str
    title: str
    created_at: str
    updated_at: str
    description: Optional[str] = None
    issue_type: str = DEFAULT_ISSUE_TYPE
    status: str = STATUS_OPEN
    priority: int = DEFAULT_PRIORITY
    owner: Optional[str] = None
    claimed_at: Optional[str] = None
    closed_at: Optional[str] = None
    labels: Set[str] = field(default_factory=set)
    comments: List[Comment] = field(default_factory=list)
    blocked_by: Set[str] = field(default_factory=set)
    blocks: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        """Return the record in canonical field order with sets sorted."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "issue_type": self.issue_type,
            "status": self.status,
            "priority": self.priority,
            "owner": self.owner,
            "claimed_at": self.claimed_at,
            "closed_at": self.closed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "labels": sorted(self.labels),
            "comments": [c.to_dict() for c in self.comments],
            "blocked_by": sorted(self.blocked_by),
            "blocks": sorted(self.blocks),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Issue":
        """Parse one stored record.

        Accepts records written by older versions: missing optional fields
        take their defaults, legacy type labels are normalized, and on an
        in-progress record a ``session_id`` key stands in for ``owner``. A
        stale ``session_id`` on any other status is dropped.

        Raises:
            InvalidFieldError: If a field is missing, ill-typed, or the record
                breaks the ownership invariant
        """
        if not isinstance(data, dict):
            raise InvalidFieldError(f"Record must be a JSON object, got {type(data).__name__}")

        for key in ("id", "title", "status", "created_at", "updated_at"):
            if key not in data:
                raise InvalidFieldError(f"Missing required field {key!r}")

        # Older writers left session_id behind on released and closed issues
        owner = data.get("owner")
        if owner is None and data.get("status") == STATUS_IN_PROGRESS:
            owner = data.get("session_id")

        issue = cls(
            id=_require_str(data, "id"),
            title=_require_str(data, "title"),
            created_at=_require_str(data, "created_at"),
            updated_at=_require_str(data, "updated_at"),
            description=_optional_str(data, "description"),
            issue_type=normalize_issue_type(data.get("issue_type", DEFAULT_ISSUE_TYPE)),
            status=_require_str(data, "status"),
            priority=data.get("priority", DEFAULT_PRIORITY),
            owner=owner,
            claimed_at=_optional_str(data, "claimed_at"),
            closed_at=_optional_str(data, "closed_at"),
            labels=_str_set(data, "labels"),
            comments=[Comment.from_dict(c) for c in _list(data, "comments")],
            blocked_by=_str_set(data, "blocked_by"),
            blocks=_str_set(data, "blocks"),
        )
        check_issue(issue)
        return issue


def check_issue(issue: Issue) -> None:
    """Validate the structural invariants of a single issue.

    Raises:
        InvalidFieldError: On the first violated invariant
    """
    if not issue.id:
        raise InvalidFieldError("Issue ID must be non-empty")
    validate_title(issue.title)
    validate_priority(issue.priority)
    if issue.status not in VALID_STATUSES:
        raise InvalidFieldError(
            f"Invalid status: {issue.status}. Must be one of {sorted(VALID_STATUSES)}"
        )
    if issue.owner is not None and not isinstance(issue.owner, str):
        raise InvalidFieldError("Owner must be a string or null")

    in_progress = issue.status == STATUS_IN_PROGRESS
    if in_progress and not issue.owner:
        raise InvalidFieldError(f"Issue {issue.id} is in_progress but has no owner")
    if not in_progress and issue.owner:
        raise InvalidFieldError(f"Issue {issue.id} is {issue.status} but owned by {issue.owner}")

    if issue.id in issue.blocked_by:
        raise InvalidFieldError(f"Issue {issue.id} lists itself in blocked_by")


@dataclass
class Config:
    """Per-project settings stored in config.json."""

    version: int
    prefix: str

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "prefix": self.prefix}

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        if not isinstance(data, dict):
            raise ConfigError("config.json must contain a JSON object")

        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ConfigError(f"config.json: version must be an integer, got {version!r}")
        if version > SCHEMA_VERSION:
            raise ConfigError(
                f"config.json: schema version {version} is newer than supported ({SCHEMA_VERSION})"
            )

        prefix = data.get("prefix")
        if (
            not isinstance(prefix, str)
            or len(prefix) != PREFIX_LENGTH
            or any(c not in BASE36_CHARS for c in prefix)
        ):
            raise ConfigError(f"config.json: prefix must be {PREFIX_LENGTH} base36 characters, got {prefix!r}")

        return cls(version=version, prefix=prefix)


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise InvalidFieldError(f"Field {key!r} must be a string")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidFieldError(f"Field {key!r} must be a string or null")
    return value


def _list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidFieldError(f"Field {key!r} must be an array")
    return value


def _str_set(data: Dict[str, Any], key: str) -> Set[str]:
    values = _list(data, key)
    if not all(isinstance(v, str) for v in values):
        raise InvalidFieldError(f"Field {key!r} must contain only strings")
    return set(values)
