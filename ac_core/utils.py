"""Shared utilities for ac - timestamps, paths, field checks."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Set, Union

from ac_core.constants import PRIORITY_RANGE
from ac_core.exceptions import InvalidFieldError

__all__ = [
    "get_iso_timestamp",
    "canonical_path",
    "validate_priority",
    "validate_title",
    "normalize_labels",
]


def get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO format with Z suffix.

    Returns:
        ISO 8601 formatted timestamp string (e.g., "2024-01-15T10:30:00.123456Z")
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def canonical_path(path: Union[str, "os.PathLike[str]"]) -> str:
    """Resolve a project path to its canonical absolute form.

    Symlinks, relative segments and a leading ``~`` are resolved so that the
    same project always maps to the same string.

    Args:
        path: Path to a project directory

    Returns:
        Absolute, symlink-free path string
    """
    return str(Path(path).expanduser().resolve())


def validate_priority(priority: object) -> int:
    """Check that a priority is an int within PRIORITY_RANGE.

    Raises:
        InvalidFieldError: If priority is not an int or out of range
    """
    min_priority, max_priority = PRIORITY_RANGE
    # bool is an int subclass; "true" is not a priority
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise InvalidFieldError(f"Priority must be an integer, got {priority!r}")
    if not (min_priority <= priority <= max_priority):
        raise InvalidFieldError(
            f"Priority must be between {min_priority} and {max_priority}, got {priority}"
        )
    return priority


def validate_title(title: object) -> str:
    """Check that a title is a non-blank string.

    Raises:
        InvalidFieldError: If title is empty or not a string
    """
    if not isinstance(title, str) or not title.strip():
        raise InvalidFieldError("Title must be a non-empty string")
    return title


def normalize_labels(labels: Optional[Iterable[str]]) -> Set[str]:
    """Strip whitespace from labels and drop empty ones."""
    if labels is None:
        return set()
    result = set()
    for label in labels:
        if not isinstance(label, str):
            raise InvalidFieldError(f"Label must be a string, got {label!r}")
        label = label.strip()
        if label:
            result.add(label)
    return result
