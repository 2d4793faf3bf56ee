"""Tests for issue creation, queries, and metadata edits."""

import pytest

from tests.conftest import LATER, TS


def test_create_issue_defaults(index, config):
    """A new issue is open, unowned, priority 2, type task."""
    from ac_core import create_issue

    issue = create_issue(index, config, "Fix auth bug", now=TS)

    assert issue.id.startswith("zz-")
    assert len(issue.id) == 7
    assert issue.title == "Fix auth bug"
    assert issue.status == "open"
    assert issue.owner is None
    assert issue.priority == 2
    assert issue.issue_type == "task"
    assert issue.created_at == TS
    assert issue.updated_at == TS
    assert index[issue.id] is issue


def test_create_issue_with_all_fields(index, config):
    """Description, type, priority, and labels are stored."""
    from ac_core import create_issue

    issue = create_issue(
        index,
        config,
        "Explore caching",
        description="Compare a few strategies",
        issue_type="spike",
        priority=0,
        labels=["perf", " infra ", ""],
    )

    assert issue.description == "Compare a few strategies"
    assert issue.issue_type == "spike"
    assert issue.priority == 0
    assert issue.labels == {"perf", "infra"}


def test_create_issue_normalizes_legacy_type(index, config):
    """Legacy type names map to task at creation too."""
    from ac_core import create_issue

    assert create_issue(index, config, "Crash", issue_type="bug").issue_type == "task"


@pytest.mark.parametrize("title", ["", "   "])
def test_create_issue_rejects_blank_title(index, config, title):
    """Titles must be non-empty."""
    from ac_core import InvalidFieldError, create_issue

    with pytest.raises(InvalidFieldError):
        create_issue(index, config, title)

    assert index == {}


@pytest.mark.parametrize("priority", [-1, 5])
def test_create_issue_rejects_out_of_range_priority(index, config, priority):
    """Priority outside 0-4 is an error."""
    from ac_core import InvalidFieldError, create_issue

    with pytest.raises(InvalidFieldError):
        create_issue(index, config, "Task", priority=priority)


def test_create_many_issues_same_title_unique_ids(index, config):
    """Repeated titles still get distinct IDs."""
    from ac_core import create_issue

    ids = {create_issue(index, config, "Same title").id for _ in range(50)}

    assert len(ids) == 50
    assert len(index) == 50


def test_get_issue(index, make_issue):
    """get_issue returns the stored issue or raises NotFoundError."""
    from ac_core import NotFoundError, get_issue

    issue = make_issue("zz-0001")

    assert get_issue(index, "zz-0001") is issue
    with pytest.raises(NotFoundError) as exc_info:
        get_issue(index, "zz-nope")
    assert exc_info.value.issue_id == "zz-nope"


def test_list_issues_hides_closed_by_default(index, make_issue):
    """Closed issues appear only when asked for."""
    from ac_core import list_issues

    make_issue("zz-0001")
    make_issue("zz-0002", status="in_progress")
    make_issue("zz-0003", status="closed")

    assert [i.id for i in list_issues(index)] == ["zz-0001", "zz-0002"]
    assert [i.id for i in list_issues(index, include_closed=True)] == ["zz-0001", "zz-0002", "zz-0003"]
    assert [i.id for i in list_issues(index, status="closed")] == ["zz-0003"]


def test_list_issues_filters(index, make_issue):
    """Status, type, label, and owner filters combine."""
    from ac_core import list_issues

    make_issue("zz-0001", issue_type="epic", labels={"auth"})
    make_issue("zz-0002", issue_type="task", labels={"auth"})
    make_issue("zz-0003", status="in_progress", owner="S1", labels={"ui"})
    make_issue("zz-0004", status="in_progress", owner="S2")

    assert [i.id for i in list_issues(index, issue_type="epic")] == ["zz-0001"]
    assert [i.id for i in list_issues(index, label="auth")] == ["zz-0001", "zz-0002"]
    assert [i.id for i in list_issues(index, owner="S1")] == ["zz-0003"]
    assert [i.id for i in list_issues(index, status=["open", "in_progress"], label="ui")] == ["zz-0003"]
    assert [i.id for i in list_issues(index, issue_type="bug", label="auth")] == ["zz-0002"]


def test_list_issues_sort_order(index, make_issue):
    """Sorted by priority, then created_at, then ID."""
    from ac_core import list_issues

    make_issue("zz-0004", priority=1, created_at=LATER)
    make_issue("zz-0003", priority=1, created_at=TS)
    make_issue("zz-0002", priority=0, created_at=LATER)
    make_issue("zz-0001", priority=1, created_at=TS)

    assert [i.id for i in list_issues(index)] == ["zz-0002", "zz-0001", "zz-0003", "zz-0004"]


def test_list_issues_rejects_unknown_status(index):
    """A typo in the status filter is reported."""
    from ac_core import InvalidFieldError, list_issues

    with pytest.raises(InvalidFieldError, match="Invalid status"):
        list_issues(index, status="done")


def test_update_issue_fields(index, make_issue):
    """Title, description, priority, and labels can be changed."""
    from ac_core import update_issue

    make_issue("zz-0001", labels={"old", "keep"})

    issue = update_issue(
        index,
        "zz-0001",
        title="New title",
        description="Details",
        priority=0,
        add_labels=["new"],
        remove_labels=["old"],
        now=LATER,
    )

    assert issue.title == "New title"
    assert issue.description == "Details"
    assert issue.priority == 0
    assert issue.labels == {"keep", "new"}
    assert issue.updated_at == LATER


def test_update_issue_empty_description_clears(index, make_issue):
    """An empty string removes the description."""
    from ac_core import update_issue

    make_issue("zz-0001", description="Something")

    assert update_issue(index, "zz-0001", description="").description is None


def test_update_issue_without_changes_keeps_timestamp(index, make_issue):
    """Setting fields to their current values does not bump updated_at."""
    from ac_core import update_issue

    make_issue("zz-0001", title="Same")

    issue = update_issue(index, "zz-0001", title="Same", priority=2, now=LATER)

    assert issue.updated_at == TS


def test_update_issue_invalid_input_changes_nothing(index, make_issue):
    """Validation happens before any field is touched."""
    from ac_core import InvalidFieldError, update_issue

    make_issue("zz-0001", title="Original")

    with pytest.raises(InvalidFieldError):
        update_issue(index, "zz-0001", title="Changed", priority=9)

    assert index["zz-0001"].title == "Original"
    assert index["zz-0001"].priority == 2


def test_update_issue_not_found(index):
    """Updating a missing issue raises NotFoundError."""
    from ac_core import NotFoundError, update_issue

    with pytest.raises(NotFoundError):
        update_issue(index, "zz-nope", title="x")


def test_mine_lists_owned_issues(index, make_issue):
    """mine() returns only issues owned by the session."""
    from ac_core import mine

    make_issue("zz-0001", status="in_progress", owner="S1", priority=3)
    make_issue("zz-0002", status="in_progress", owner="S2")
    make_issue("zz-0003", status="in_progress", owner="S1", priority=1)
    make_issue("zz-0004")

    assert [i.id for i in mine(index, "S1")] == ["zz-0003", "zz-0001"]
    assert mine(index, "S3") == []


def test_mine_requires_session(index):
    """mine() without a session is an error."""
    from ac_core import SessionRequiredError, mine

    with pytest.raises(SessionRequiredError):
        mine(index, None)


def test_mine_rejects_blank_session(index, make_issue):
    """A whitespace-only session is treated as no session."""
    from ac_core import SessionRequiredError, mine

    make_issue("zz-0001", status="in_progress", owner="S1")

    with pytest.raises(SessionRequiredError):
        mine(index, "   ")
