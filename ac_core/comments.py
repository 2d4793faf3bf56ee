"""Comments module for ac - add and retrieve issue comments."""

from typing import Dict, List, Optional

from ac_core.exceptions import InvalidFieldError
from ac_core.issues import get_issue
from ac_core.models import Comment, Issue
from ac_core.utils import get_iso_timestamp

__all__ = [
    "add_comment",
    "get_comments",
]


def add_comment(
    index: Dict[str, Issue],
    issue_id: str,
    message: str,
    author: str = "user",
    now: Optional[str] = None,
) -> Comment:
    """Add a comment to an issue.

    Args:
        index: Loaded issue index
        issue_id: Issue ID to comment on
        message: Comment text
        author: Who made the comment (e.g., a session ID, "user")
        now: Timestamp override (defaults to the current time)

    Returns:
        The appended comment

    Note:
        Comments are append-only - no edit or delete operations.
    """
    issue = get_issue(index, issue_id)

    if not message or not message.strip():
        raise InvalidFieldError("Comment message must be non-empty")
    if not author:
        raise InvalidFieldError("Comment author must be non-empty")

    now = now or get_iso_timestamp()
    comment = Comment(author=author, message=message, timestamp=now)
    issue.comments.append(comment)
    issue.updated_at = now
    return comment


def get_comments(index: Dict[str, Issue], issue_id: str) -> List[Comment]:
    """Get all comments for an issue, oldest first."""
    return list(get_issue(index, issue_id).comments)
