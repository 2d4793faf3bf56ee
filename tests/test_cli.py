"""Tests for CLI commands."""

import json
import re

import pytest
from typer.testing import CliRunner

from ac_core.cli import app


@pytest.fixture
def run(ac_dir, no_session_env):
    """Invoke the CLI against the initialized data directory."""
    runner = CliRunner()

    def _run(*args, env=None):
        return runner.invoke(app, ["--dir", str(ac_dir), *args], env=env)

    return _run


def _create(run, title, *args):
    result = run("--json", "create", title, *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["id"]


def test_cli_init_creates_data_directory(project, no_session_env):
    """init writes config.json and issues.jsonl."""
    from ac_core import derive_prefix

    runner = CliRunner()
    ac_dir = project / ".ac"

    result = runner.invoke(app, ["--dir", str(ac_dir), "init"])

    assert result.exit_code == 0
    assert (ac_dir / "config.json").exists()
    assert (ac_dir / "issues.jsonl").exists()
    assert derive_prefix(project) in result.output


def test_cli_init_uses_working_directory(project, no_session_env, monkeypatch):
    """Without --dir the data directory is ./.ac."""
    runner = CliRunner()
    monkeypatch.chdir(project)

    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert (project / ".ac" / "config.json").exists()


def test_cli_init_twice_fails(run):
    """A second init reports an error."""
    result = run("init")

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_cli_not_initialized(tmp_path, no_session_env):
    """Commands against a missing directory ask for init."""
    runner = CliRunner()

    result = runner.invoke(app, ["--dir", str(tmp_path / ".ac"), "list"])

    assert result.exit_code == 1
    assert "ac init" in result.output


def test_cli_create_basic_issue(run):
    """create prints the new ID and title."""
    result = run("create", "Fix auth bug")

    assert result.exit_code == 0
    assert re.search(r"Created [0-9a-z]{2}-[0-9a-z]{4}: Fix auth bug", result.output)


def test_cli_create_with_options(run):
    """Type, priority, description, and labels are passed through."""
    result = run(
        "--json", "create", "Explore caching",
        "-t", "spike", "-p", "1", "-d", "Compare options", "-l", "perf", "-l", "infra",
    )

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["issue_type"] == "spike"
    assert data["priority"] == 1
    assert data["description"] == "Compare options"
    assert data["labels"] == ["infra", "perf"]
    assert data["status"] == "open"


def test_cli_create_invalid_priority(run):
    """Out-of-range priority is a generic error."""
    result = run("create", "Task", "-p", "7")

    assert result.exit_code == 1
    assert "Priority" in result.output


def test_cli_list_and_show(run):
    """list shows open issues; show prints the details."""
    issue_id = _create(run, "Listed issue", "-d", "Some details")

    result = run("list")
    assert result.exit_code == 0
    assert issue_id in result.output
    assert "Listed issue" in result.output

    result = run("show", issue_id)
    assert result.exit_code == 0
    assert "Some details" in result.output
    assert "Owner:       -" in result.output


def test_cli_list_empty(run):
    """An empty backlog says so."""
    result = run("list")

    assert result.exit_code == 0
    assert "No issues found." in result.output


def test_cli_list_json_hides_closed(run):
    """Closed issues only appear with --all."""
    keep = _create(run, "Keep")
    gone = _create(run, "Gone")
    assert run("close", gone).exit_code == 0

    visible = [i["id"] for i in json.loads(run("--json", "list").stdout)]
    everything = [i["id"] for i in json.loads(run("--json", "list", "--all").stdout)]

    assert visible == [keep]
    assert sorted(everything) == sorted([keep, gone])


def test_cli_show_not_found(run):
    """A missing ID exits with the not-found code."""
    result = run("show", "zz-nope")

    assert result.exit_code == 2
    assert "Issue not found: zz-nope" in result.output


def test_cli_update(run):
    """update edits metadata."""
    issue_id = _create(run, "Old title")

    result = run("--json", "update", issue_id, "--title", "New title", "--priority", "0", "--add-label", "x")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["title"] == "New title"
    assert data["priority"] == 0
    assert data["labels"] == ["x"]


def test_cli_comment_uses_session_as_author(run):
    """Comments default to the session when one is set."""
    issue_id = _create(run, "Task")

    result = run("comment", issue_id, "Looking into it", env={"AC_SESSION": "S1"})
    assert result.exit_code == 0

    data = json.loads(run("--json", "show", issue_id).stdout)
    assert data["comments"][0]["author"] == "S1"
    assert data["comments"][0]["message"] == "Looking into it"


def test_cli_claim_release_finish(run):
    """The ownership lifecycle works through the CLI."""
    issue_id = _create(run, "Task")

    result = run("claim", issue_id, "--session", "S1")
    assert result.exit_code == 0
    assert "Claimed" in result.output

    result = run("release", issue_id, "--session", "S1")
    assert result.exit_code == 0

    assert run("claim", issue_id, env={"AC_SESSION": "S2"}).exit_code == 0
    result = run("--json", "finish", issue_id, env={"AC_SESSION": "S2"})
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["status"] == "closed"
    assert data["owner"] is None


def test_cli_claim_without_session(run):
    """claim with no --session and no AC_SESSION exits with code 5."""
    issue_id = _create(run, "Task")

    result = run("claim", issue_id)

    assert result.exit_code == 5
    assert "session" in result.output.lower()


def test_cli_claim_with_blank_session(run):
    """A whitespace-only AC_SESSION is rejected and no blank owner is stored."""
    issue_id = _create(run, "Task")

    result = run("claim", issue_id, env={"AC_SESSION": "   "})

    assert result.exit_code == 5
    data = json.loads(run("--json", "show", issue_id).stdout)
    assert data["status"] == "open"
    assert data["owner"] is None


def test_cli_claim_twice(run):
    """Claiming an in-progress issue exits with code 3."""
    issue_id = _create(run, "Task")
    run("claim", issue_id, "--session", "S1")

    result = run("claim", issue_id, "--session", "S2")

    assert result.exit_code == 3


def test_cli_release_by_other_session(run):
    """Only the owner may release; others get code 4 and nothing changes."""
    issue_id = _create(run, "Task")
    run("claim", issue_id, "--session", "S1")

    result = run("release", issue_id, "--session", "S2")

    assert result.exit_code == 4
    data = json.loads(run("--json", "show", issue_id).stdout)
    assert data["owner"] == "S1"
    assert data["status"] == "in_progress"


def test_cli_close_multiple_with_reason(run):
    """close accepts several IDs and records the reason as a comment."""
    first = _create(run, "First")
    second = _create(run, "Second")

    result = run("close", first, second, "--reason", "duplicate")

    assert result.exit_code == 0
    for issue_id in [first, second]:
        data = json.loads(run("--json", "show", issue_id).stdout)
        assert data["status"] == "closed"
        assert data["comments"][0]["message"] == "Closed: duplicate"


def test_cli_close_claimed_issue_fails(run):
    """Claimed work must be finished, not closed."""
    issue_id = _create(run, "Task")
    run("claim", issue_id, "--session", "S1")

    result = run("close", issue_id)

    assert result.exit_code == 3


def test_cli_block_ready_unblock(run):
    """Blocking hides an issue from ready until the blocker closes."""
    blocked = _create(run, "Blocked")
    blocker = _create(run, "Blocker")

    assert run("block", blocked, blocker).exit_code == 0
    ready_ids = [i["id"] for i in json.loads(run("--json", "ready").stdout)]
    assert ready_ids == [blocker]

    assert run("unblock", blocked, blocker).exit_code == 0
    ready_ids = [i["id"] for i in json.loads(run("--json", "ready").stdout)]
    assert sorted(ready_ids) == sorted([blocked, blocker])


def test_cli_block_self(run):
    """Self-blocking exits with code 6."""
    issue_id = _create(run, "Task")

    result = run("block", issue_id, issue_id)

    assert result.exit_code == 6


def test_cli_ready_empty(run):
    """No ready work prints a message."""
    result = run("ready")

    assert result.exit_code == 0
    assert "No issues ready to work on." in result.output


def test_cli_cycles(run):
    """cycles reports a loop once."""
    a = _create(run, "A")
    b = _create(run, "B")

    result = run("cycles")
    assert result.exit_code == 0
    assert "No cycles detected." in result.output

    run("block", a, b)
    run("block", b, a)

    result = run("cycles")
    assert result.exit_code == 0
    assert "Found 1 cycle(s):" in result.output

    found = json.loads(run("--json", "cycles").stdout)
    assert found == [sorted([a, b])]


def test_cli_tree(run):
    """tree renders the blocking chain with markers."""
    a = _create(run, "Root task")
    b = _create(run, "Dependency")
    run("block", a, b)
    run("block", b, a)

    result = run("tree", a)

    assert result.exit_code == 0
    assert "Root task" in result.output
    assert "Dependency" in result.output
    assert "[CYCLE]" in result.output

    data = json.loads(run("--json", "tree", a).stdout)
    assert data["id"] == a
    assert data["blocked_by"][0]["id"] == b
    assert data["blocked_by"][0]["blocked_by"][0]["cycle"] is True


def test_cli_mine(run):
    """mine lists only the session's claimed issues."""
    mine_id = _create(run, "Mine")
    theirs = _create(run, "Theirs")
    run("claim", mine_id, "--session", "S1")
    run("claim", theirs, "--session", "S2")

    data = json.loads(run("--json", "mine", env={"AC_SESSION": "S1"}).stdout)

    assert [i["id"] for i in data] == [mine_id]


def test_cli_mine_without_session(run):
    """mine needs a session."""
    result = run("mine")

    assert result.exit_code == 5


def test_cli_malformed_file(run, ac_dir):
    """A corrupt issues file exits with code 7 and names the line."""
    (ac_dir / "issues.jsonl").write_text("<<<<<<< HEAD\n")

    result = run("list")

    assert result.exit_code == 7
    assert "line 1" in result.output


def test_cli_doctor(run, ac_dir):
    """doctor finds half-edges and --fix repairs them."""
    a = _create(run, "A")
    b = _create(run, "B")
    run("block", a, b)

    result = run("doctor")
    assert result.exit_code == 0
    assert "No problems found." in result.output

    # Drop the mirror edge by hand
    lines = (ac_dir / "issues.jsonl").read_text().splitlines()
    records = [json.loads(line) for line in lines]
    for record in records:
        if record["id"] == b:
            record["blocks"] = []
    (ac_dir / "issues.jsonl").write_text("".join(json.dumps(r) + "\n" for r in records))

    result = run("doctor")
    assert result.exit_code == 1
    assert "lacks" in result.output

    result = run("--json", "doctor", "--fix")
    assert result.exit_code == 0
    assert json.loads(result.stdout)["repaired"] == 1

    assert run("doctor").exit_code == 0


def test_cli_verbose_logs_to_stderr(run):
    """--verbose enables debug logging without breaking the command."""
    result = run("--verbose", "list")

    assert result.exit_code == 0
