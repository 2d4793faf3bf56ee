"""Shared pytest fixtures for ac tests."""

import pytest

# Fixed timestamps keep records reproducible across tests
TS = "2024-01-15T10:30:00.000000Z"
LATER = "2024-01-16T09:00:00.000000Z"


@pytest.fixture
def config():
    """Project config with a fixed prefix."""
    from ac_core import Config

    return Config(version=1, prefix="zz")


@pytest.fixture
def index():
    """An empty in-memory issue index."""
    return {}


@pytest.fixture
def make_issue(index):
    """Factory that inserts an issue with a fixed ID into the index.

    Keyword arguments are passed through to Issue; in_progress issues get a
    claimed_at and closed issues a closed_at unless given.
    """
    from ac_core import Issue

    def _make(issue_id, title=None, status="open", priority=2, **kwargs):
        if status == "in_progress":
            kwargs.setdefault("owner", "S1")
            kwargs.setdefault("claimed_at", TS)
        if status == "closed":
            kwargs.setdefault("closed_at", TS)
        issue = Issue(
            id=issue_id,
            title=title or f"Issue {issue_id}",
            created_at=kwargs.pop("created_at", TS),
            updated_at=kwargs.pop("updated_at", TS),
            status=status,
            priority=priority,
            **kwargs,
        )
        index[issue_id] = issue
        return issue

    return _make


@pytest.fixture
def project(tmp_path):
    """A project directory without a data directory."""
    project_path = tmp_path / "myapp"
    project_path.mkdir()
    return project_path


@pytest.fixture
def ac_dir(project):
    """An initialized data directory inside the project."""
    from ac_core import init_store

    ac_dir = project / ".ac"
    init_store(ac_dir, project)
    return ac_dir


@pytest.fixture
def no_session_env(monkeypatch):
    """Make sure AC_SESSION from the caller's shell does not leak into tests."""
    monkeypatch.delenv("AC_SESSION", raising=False)
    monkeypatch.delenv("AC_DIR", raising=False)
