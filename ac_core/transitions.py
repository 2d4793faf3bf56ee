"""Lifecycle transitions for ac - claim, release, finish, close.

Status is never assigned directly. Every change goes through
apply_transition(), which checks the transition table and the ownership
guards and returns a new Issue; the input issue is never modified.
"""

from dataclasses import replace
from enum import Enum
from typing import Dict, FrozenSet, NamedTuple, Optional

from ac_core.constants import STATUS_CLOSED, STATUS_IN_PROGRESS, STATUS_OPEN
from ac_core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    NotOwnerError,
    SessionRequiredError,
)
from ac_core.models import Issue
from ac_core.utils import get_iso_timestamp

__all__ = [
    "Transition",
    "TRANSITIONS",
    "apply_transition",
    "claim_issue",
    "release_issue",
    "finish_issue",
    "close_issue",
]


class Transition(Enum):
    CLAIM = "claim"
    RELEASE = "release"
    FINISH = "finish"
    CLOSE = "close"


class _Rule(NamedTuple):
    sources: FrozenSet[str]
    target: str
    needs_actor: bool
    owner_only: bool


TRANSITIONS: Dict[Transition, _Rule] = {
    Transition.CLAIM: _Rule(frozenset({STATUS_OPEN, STATUS_CLOSED}), STATUS_IN_PROGRESS, True, False),
    Transition.RELEASE: _Rule(frozenset({STATUS_IN_PROGRESS}), STATUS_OPEN, True, True),
    Transition.FINISH: _Rule(frozenset({STATUS_IN_PROGRESS}), STATUS_CLOSED, True, True),
    Transition.CLOSE: _Rule(frozenset({STATUS_OPEN}), STATUS_CLOSED, False, False),
}


def apply_transition(
    issue: Issue,
    transition: Transition,
    actor: Optional[str],
    now: str,
) -> Issue:
    """Apply a lifecycle transition to an issue.

    Args:
        issue: Current state of the issue
        transition: Transition to attempt
        actor: Session identifier of the caller (ignored by CLOSE)
        now: Timestamp to record for the change

    Returns:
        A new Issue reflecting the transition

    Raises:
        SessionRequiredError: If the transition needs a session and it is missing or blank
        InvalidTransitionError: If the transition is not valid from the current status
        NotOwnerError: If RELEASE/FINISH is attempted by a session other than the owner

    Notes:
        Pure: no I/O, no clock reads, no shared state. The same inputs
        always give the same result or the same error.
    """
    rule = TRANSITIONS[transition]

    if rule.needs_actor and (not actor or not actor.strip()):
        raise SessionRequiredError()

    if issue.status not in rule.sources:
        raise InvalidTransitionError(issue.status, transition.value)

    if rule.owner_only and actor != issue.owner:
        raise NotOwnerError(actor, issue.owner)

    if transition is Transition.CLAIM:
        changes = {"owner": actor, "claimed_at": now, "closed_at": None}
    elif transition is Transition.RELEASE:
        changes = {"owner": None, "claimed_at": None}
    elif transition is Transition.FINISH:
        changes = {"owner": None, "claimed_at": None, "closed_at": now}
    elif transition is Transition.CLOSE:
        changes = {"closed_at": now}
    else:
        raise AssertionError(f"Unhandled transition: {transition}")

    # Fresh containers so the result shares no mutable state with the input
    return replace(
        issue,
        status=rule.target,
        updated_at=now,
        labels=set(issue.labels),
        comments=list(issue.comments),
        blocked_by=set(issue.blocked_by),
        blocks=set(issue.blocks),
        **changes,
    )


def _transition_in_index(
    index: Dict[str, Issue],
    issue_id: str,
    transition: Transition,
    actor: Optional[str],
    now: Optional[str],
) -> Issue:
    issue = index.get(issue_id)
    if issue is None:
        raise NotFoundError(issue_id)

    updated = apply_transition(issue, transition, actor, now or get_iso_timestamp())
    index[issue_id] = updated
    return updated


def claim_issue(
    index: Dict[str, Issue],
    issue_id: str,
    session: Optional[str],
    now: Optional[str] = None,
) -> Issue:
    """Claim an open or closed issue for a session.

    Args:
        index: Loaded issue index
        issue_id: Issue to claim
        session: Claiming session identifier
        now: Timestamp override (defaults to the current time)

    Returns:
        The claimed issue, now in_progress and owned by session
    """
    return _transition_in_index(index, issue_id, Transition.CLAIM, session, now)


def release_issue(
    index: Dict[str, Issue],
    issue_id: str,
    session: Optional[str],
    now: Optional[str] = None,
) -> Issue:
    """Give up ownership of an in-progress issue, returning it to open."""
    return _transition_in_index(index, issue_id, Transition.RELEASE, session, now)


def finish_issue(
    index: Dict[str, Issue],
    issue_id: str,
    session: Optional[str],
    now: Optional[str] = None,
) -> Issue:
    """Close an in-progress issue owned by session."""
    return _transition_in_index(index, issue_id, Transition.FINISH, session, now)


def close_issue(
    index: Dict[str, Issue],
    issue_id: str,
    now: Optional[str] = None,
) -> Issue:
    """Close an open issue that nobody claimed."""
    return _transition_in_index(index, issue_id, Transition.CLOSE, None, now)
