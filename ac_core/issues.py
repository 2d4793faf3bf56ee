"""Issue management for ac - create, query, and edit metadata."""

from typing import Dict, Iterable, List, Optional, Union

from ac_core.constants import DEFAULT_ISSUE_TYPE, DEFAULT_PRIORITY, STATUS_CLOSED, STATUS_OPEN, VALID_STATUSES
from ac_core.exceptions import InvalidFieldError, NotFoundError, SessionRequiredError
from ac_core.ids import generate_id
from ac_core.models import Config, Issue, normalize_issue_type
from ac_core.utils import get_iso_timestamp, normalize_labels, validate_priority, validate_title

__all__ = [
    "create_issue",
    "get_issue",
    "list_issues",
    "update_issue",
    "mine",
]


def _sort_key(issue: Issue):
    return (issue.priority, issue.created_at, issue.id)


def create_issue(
    index: Dict[str, Issue],
    config: Config,
    title: str,
    description: Optional[str] = None,
    issue_type: str = DEFAULT_ISSUE_TYPE,
    priority: int = DEFAULT_PRIORITY,
    labels: Optional[Iterable[str]] = None,
    now: Optional[str] = None,
) -> Issue:
    """Create a new issue.

    Args:
        index: Loaded issue index (the new issue is added to it)
        config: Project config, supplies the ID prefix
        title: Issue title
        description: Optional detailed description
        issue_type: task, epic, refactor or spike (legacy labels accepted)
        priority: Priority 0-4 (0=critical, 4=backlog)
        labels: Optional labels
        now: Timestamp override (defaults to the current time)

    Returns:
        The created issue, open and unowned

    Raises:
        InvalidFieldError: If title, type, or priority is invalid
        AllocationExhaustedError: If no free ID could be generated
    """
    validate_title(title)
    issue_type = normalize_issue_type(issue_type)
    validate_priority(priority)
    label_set = normalize_labels(labels)

    issue_id = generate_id(title, config.prefix, existing_ids=set(index))
    now = now or get_iso_timestamp()

    issue = Issue(
        id=issue_id,
        title=title,
        description=description or None,
        issue_type=issue_type,
        status=STATUS_OPEN,
        priority=priority,
        labels=label_set,
        created_at=now,
        updated_at=now,
    )
    index[issue_id] = issue
    return issue


def get_issue(index: Dict[str, Issue], issue_id: str) -> Issue:
    """Get issue by ID.

    Raises:
        NotFoundError: If no issue has this ID
    """
    issue = index.get(issue_id)
    if issue is None:
        raise NotFoundError(issue_id)
    return issue


def list_issues(
    index: Dict[str, Issue],
    status: Optional[Union[str, List[str]]] = None,
    issue_type: Optional[str] = None,
    label: Optional[str] = None,
    owner: Optional[str] = None,
    include_closed: bool = False,
) -> List[Issue]:
    """List issues with optional filtering.

    Args:
        index: Loaded issue index
        status: Single status or list of statuses (optional)
        issue_type: Filter by type; legacy labels are normalized (optional)
        label: Only issues carrying this label (optional)
        owner: Only issues owned by this session (optional)
        include_closed: Include closed issues when no status filter is given

    Returns:
        Matching issues, sorted by priority, then created_at, then ID
    """
    if status is None:
        statuses = set(VALID_STATUSES)
        if not include_closed:
            statuses.discard(STATUS_CLOSED)
    else:
        statuses = {status} if isinstance(status, str) else set(status)
        unknown = statuses - VALID_STATUSES
        if unknown:
            raise InvalidFieldError(
                f"Invalid status: {', '.join(sorted(unknown))}. Must be one of {sorted(VALID_STATUSES)}"
            )

    if issue_type is not None:
        issue_type = normalize_issue_type(issue_type)

    result = [
        issue
        for issue in index.values()
        if issue.status in statuses
        and (issue_type is None or issue.issue_type == issue_type)
        and (label is None or label in issue.labels)
        and (owner is None or issue.owner == owner)
    ]
    result.sort(key=_sort_key)
    return result


def update_issue(
    index: Dict[str, Issue],
    issue_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[int] = None,
    add_labels: Optional[Iterable[str]] = None,
    remove_labels: Optional[Iterable[str]] = None,
    now: Optional[str] = None,
) -> Issue:
    """Update issue metadata.

    Status and ownership are not editable here; use the transitions in
    ac_core.transitions. An empty description clears it.

    Raises:
        NotFoundError: If no issue has this ID
        InvalidFieldError: If title or priority is invalid
    """
    issue = get_issue(index, issue_id)

    # Validate everything before touching the issue
    if title is not None:
        validate_title(title)
    if priority is not None:
        validate_priority(priority)
    to_add = normalize_labels(add_labels)
    to_remove = normalize_labels(remove_labels)

    changed = False

    if title is not None and title != issue.title:
        issue.title = title
        changed = True

    if description is not None:
        new_description = description or None
        if new_description != issue.description:
            issue.description = new_description
            changed = True

    if priority is not None and priority != issue.priority:
        issue.priority = priority
        changed = True

    new_labels = (issue.labels | to_add) - to_remove
    if new_labels != issue.labels:
        issue.labels = new_labels
        changed = True

    if changed:
        issue.updated_at = now or get_iso_timestamp()

    return issue


def mine(index: Dict[str, Issue], session: Optional[str]) -> List[Issue]:
    """Get issues currently claimed by a session.

    Raises:
        SessionRequiredError: If session is empty or blank
    """
    if not session or not session.strip():
        raise SessionRequiredError()
    result = [issue for issue in index.values() if issue.owner == session]
    result.sort(key=_sort_key)
    return result
