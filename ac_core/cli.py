"""CLI module for ac - typer app and all commands."""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, List, Optional

import typer
from typing_extensions import Annotated

from ac_core.comments import add_comment as _add_comment
from ac_core.dependencies import (
    TreeNode,
    block as _block,
    cycles as _cycles,
    find_mirror_violations,
    get_blockers,
    ready as _ready,
    repair_mirror,
    tree as _tree,
    unblock as _unblock,
)
from ac_core.exceptions import (
    AcError,
    AllocationExhaustedError,
    DurableWriteError,
    InvalidTransitionError,
    MalformedRecordError,
    NotFoundError,
    NotOwnerError,
    SelfBlockError,
    SessionRequiredError,
)
from ac_core.issues import (
    create_issue as _create_issue,
    get_issue,
    list_issues,
    mine as _mine,
    update_issue as _update_issue,
)
from ac_core.log import setup_logging
from ac_core.models import Issue
from ac_core.store import Store, init_store, resolve_ac_dir, transaction
from ac_core.transitions import (
    claim_issue,
    close_issue,
    finish_issue,
    release_issue,
)

__all__ = ["app", "main", "EXIT_CODES"]

# Create Typer app
app = typer.Typer(help="ac - Simple task tracking for LLM sessions")

EXIT_CODES = {
    NotFoundError: 2,
    InvalidTransitionError: 3,
    NotOwnerError: 4,
    SessionRequiredError: 5,
    SelfBlockError: 6,
    MalformedRecordError: 7,
    DurableWriteError: 8,
    AllocationExhaustedError: 9,
}

SessionOption = Annotated[
    Optional[str],
    typer.Option("--session", envvar="AC_SESSION", help="Session identifier (or set AC_SESSION)"),
]

STATUS_TAGS = {
    "open": "[OPEN]",
    "in_progress": "[IN_PROGRESS]",
    "closed": "[CLOSED]",
}


def _exit_code(error: AcError) -> int:
    for cls in type(error).__mro__:
        if cls in EXIT_CODES:
            return EXIT_CODES[cls]
    return 1


@contextmanager
def _reporting_errors() -> Generator[None, None, None]:
    """Turn core errors into an error message and the kind's exit code."""
    try:
        yield
    except AcError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=_exit_code(e))


def _ac_dir(ctx: typer.Context) -> Path:
    return ctx.obj["ac_dir"]


def _wants_json(ctx: typer.Context) -> bool:
    return ctx.obj["json"]


def _print_json(data: Any) -> None:
    print(json.dumps(data))


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def _print_table(issues: List[Issue], with_status: bool = True) -> None:
    print()
    if with_status:
        print(f"  {'ID':<8} {'P':>2}  {'TYPE':<8} {'STATUS':<12} TITLE")
        print("  " + "-" * 70)
    else:
        print(f"  {'ID':<8} {'P':>2}  {'TYPE':<8} TITLE")
        print("  " + "-" * 60)
    for issue in issues:
        if with_status:
            print(
                f"  {issue.id:<8} {issue.priority:>2}  {issue.issue_type:<8} "
                f"{issue.status:<12} {_truncate(issue.title, 40)}"
            )
        else:
            print(f"  {issue.id:<8} {issue.priority:>2}  {issue.issue_type:<8} {_truncate(issue.title, 40)}")
    print()


def _render_tree(root: TreeNode) -> List[str]:
    lines = []
    stack = [(root, "", True, True)]
    while stack:
        node, prefix, is_last, is_root = stack.pop()
        connector = "" if is_root else ("└── " if is_last else "├── ")

        if node.missing:
            label = f"{node.id} [MISSING]"
        elif node.cycle:
            label = f"{node.id}: {_truncate(node.title or '', 30)} [CYCLE]"
        else:
            label = f"{node.id}: {_truncate(node.title or '', 30)} {STATUS_TAGS.get(node.status or '', '')}"
            if node.seen:
                label += " (see above)"

        lines.append(f"{prefix}{connector}{label}")

        child_prefix = "" if is_root else prefix + ("    " if is_last else "│   ")
        last = len(node.children) - 1
        for i in range(last, -1, -1):
            stack.append((node.children[i], child_prefix, i == last, False))
    return lines


@app.callback()
def callback(
    ctx: typer.Context,
    dir: Annotated[
        Optional[Path],
        typer.Option("--dir", envvar="AC_DIR", help="Data directory (default: ./.ac)"),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output in JSON format")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """ac - Simple task tracking for LLM sessions."""
    setup_logging(verbose)
    ctx.obj = {"ac_dir": resolve_ac_dir(dir), "json": json_output}


@app.command()
def init(ctx: typer.Context):
    """Initialize the data directory."""
    ac_dir = _ac_dir(ctx)
    with _reporting_errors():
        config = init_store(ac_dir, ac_dir.resolve().parent)

    if _wants_json(ctx):
        _print_json(config.to_dict())
    else:
        print(f"Initialized {ac_dir} with prefix '{config.prefix}'")


@app.command()
def create(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Issue title")],
    issue_type: Annotated[str, typer.Option("--type", "-t", help="Issue type (task, epic, refactor, spike)")] = "task",
    priority: Annotated[int, typer.Option("--priority", "-p", help="Priority level (0-4, 0 = highest)")] = 2,
    description: Annotated[Optional[str], typer.Option("--description", "-d", help="Detailed description")] = None,
    label: Annotated[Optional[List[str]], typer.Option("--label", "-l", help="Label (repeatable)")] = None,
):
    """Create a new issue."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        issue = _create_issue(
            store.issues,
            store.config,
            title,
            description=description,
            issue_type=issue_type,
            priority=priority,
            labels=label,
        )

    if _wants_json(ctx):
        _print_json(issue.to_dict())
    else:
        print(f"Created {issue.id}: {title}")


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    status: Annotated[Optional[List[str]], typer.Option(help="Filter by status (repeatable)")] = None,
    all_issues: Annotated[bool, typer.Option("--all", help="Include closed issues")] = False,
    issue_type: Annotated[Optional[str], typer.Option("--type", help="Filter by type")] = None,
    label: Annotated[Optional[str], typer.Option(help="Filter by label")] = None,
    owner: Annotated[Optional[str], typer.Option(help="Filter by owning session")] = None,
):
    """List issues (closed issues hidden unless --all or --status)."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        issues = list_issues(
            store.issues,
            status=status or None,
            issue_type=issue_type,
            label=label,
            owner=owner,
            include_closed=all_issues,
        )

    if _wants_json(ctx):
        _print_json([i.to_dict() for i in issues])
        return

    if not issues:
        print("No issues found.")
        return

    _print_table(issues)
    open_count = sum(1 for i in issues if i.status == "open")
    in_progress = sum(1 for i in issues if i.status == "in_progress")
    closed = sum(1 for i in issues if i.status == "closed")
    print(f"{len(issues)} issues ({open_count} open, {in_progress} in_progress, {closed} closed)")


@app.command()
def show(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
):
    """Show issue details."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        issue = get_issue(store.issues, issue_id)
        open_blockers = get_blockers(store.issues, issue_id)

    if _wants_json(ctx):
        _print_json(issue.to_dict())
        return

    print(f"ID:          {issue.id}")
    print(f"Title:       {issue.title}")
    print(f"Status:      {issue.status}")
    print(f"Priority:    P{issue.priority}")
    print(f"Type:        {issue.issue_type}")
    print(f"Owner:       {issue.owner or '-'}")
    if issue.labels:
        print(f"Labels:      {', '.join(sorted(issue.labels))}")
    print(f"Created:     {issue.created_at}")
    print(f"Updated:     {issue.updated_at}")
    if issue.claimed_at:
        print(f"Claimed:     {issue.claimed_at}")
    if issue.closed_at:
        print(f"Closed:      {issue.closed_at}")

    if issue.description:
        print(f"\nDescription:\n{issue.description}")

    if issue.blocked_by:
        print(f"\nBlocked by: {', '.join(sorted(issue.blocked_by))}")
        if open_blockers:
            print(f"  (still open: {', '.join(b.id for b in open_blockers)})")
    if issue.blocks:
        print(f"Blocks: {', '.join(sorted(issue.blocks))}")

    if issue.comments:
        print("\nComments:")
        for c in issue.comments:
            timestamp = c.timestamp[:19].replace("T", " ")
            print(f"  [{timestamp}] {c.author}: {c.message}")


@app.command()
def update(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
    title: Annotated[Optional[str], typer.Option(help="Set title")] = None,
    description: Annotated[Optional[str], typer.Option(help="Set description (empty string clears)")] = None,
    priority: Annotated[Optional[int], typer.Option(help="Set priority (0-4)")] = None,
    add_label: Annotated[Optional[List[str]], typer.Option(help="Add label (repeatable)")] = None,
    remove_label: Annotated[Optional[List[str]], typer.Option(help="Remove label (repeatable)")] = None,
):
    """Update issue metadata (use claim/release/finish/close for status)."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        issue = _update_issue(
            store.issues,
            issue_id,
            title=title,
            description=description,
            priority=priority,
            add_labels=add_label,
            remove_labels=remove_label,
        )

    if _wants_json(ctx):
        _print_json(issue.to_dict())
    else:
        print(f"Updated {issue_id}")


@app.command()
def comment(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
    text: Annotated[str, typer.Argument(help="Comment text")],
    author: Annotated[Optional[str], typer.Option(help="Who made the comment (defaults to the session, else 'user')")] = None,
    session: SessionOption = None,
):
    """Add a comment to an issue."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        added = _add_comment(store.issues, issue_id, text, author=author or session or "user")

    if _wants_json(ctx):
        _print_json(added.to_dict())
    else:
        print(f"Added comment to {issue_id}")


@app.command()
def claim(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
    session: SessionOption = None,
):
    """Claim an issue for a session."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        issue = claim_issue(store.issues, issue_id, session)

    if _wants_json(ctx):
        _print_json(issue.to_dict())
    else:
        print(f"Claimed {issue_id} for session {issue.owner}")


@app.command()
def release(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
    session: SessionOption = None,
):
    """Release a claimed issue back to open."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        issue = release_issue(store.issues, issue_id, session)

    if _wants_json(ctx):
        _print_json(issue.to_dict())
    else:
        print(f"Released {issue_id} (was claimed by {session})")


@app.command()
def finish(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID")],
    session: SessionOption = None,
):
    """Close an issue claimed by this session."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        issue = finish_issue(store.issues, issue_id, session)

    if _wants_json(ctx):
        _print_json(issue.to_dict())
    else:
        print(f"Finished {issue_id}: {issue.title}")


@app.command()
def close(
    ctx: typer.Context,
    issue_ids: Annotated[List[str], typer.Argument(help="Issue ID(s) to close")],
    reason: Annotated[Optional[str], typer.Option(help="Reason for closing (recorded as a comment)")] = None,
):
    """Close one or more unclaimed issues."""
    closed = []
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        for issue_id in issue_ids:
            issue = close_issue(store.issues, issue_id)
            if reason:
                _add_comment(store.issues, issue_id, f"Closed: {reason}", now=issue.closed_at)
            closed.append(issue)

    if _wants_json(ctx):
        _print_json([i.to_dict() for i in closed])
    else:
        for issue in closed:
            print(f"Closed {issue.id}: {issue.title}")


@app.command()
def block(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue that is blocked")],
    blocker_id: Annotated[str, typer.Argument(help="Issue that blocks it")],
):
    """Add a blocking dependency (blocker blocks issue)."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        _block(store.issues, issue_id, blocker_id)

    if _wants_json(ctx):
        _print_json({"blocked": issue_id, "blocker": blocker_id})
    else:
        print(f"{issue_id} now blocked by {blocker_id}")


@app.command()
def unblock(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue that was blocked")],
    blocker_id: Annotated[str, typer.Argument(help="Issue that was blocking it")],
):
    """Remove a blocking dependency."""
    with _reporting_errors(), transaction(_ac_dir(ctx)) as store:
        _unblock(store.issues, issue_id, blocker_id)

    if _wants_json(ctx):
        _print_json({"unblocked": issue_id, "was_blocker": blocker_id})
    else:
        print(f"{issue_id} no longer blocked by {blocker_id}")


@app.command()
def ready(ctx: typer.Context):
    """Show issues ready to work on (open, not blocked)."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        issues = _ready(store.issues)

    if _wants_json(ctx):
        _print_json([i.to_dict() for i in issues])
        return

    if not issues:
        print("No issues ready to work on.")
        return

    _print_table(issues, with_status=False)
    print(f"{len(issues)} issue(s) ready")


@app.command()
def cycles(ctx: typer.Context):
    """Detect circular dependencies."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        found = _cycles(store.issues)

    if _wants_json(ctx):
        _print_json(found)
        return

    if not found:
        print("No cycles detected.")
        return

    print(f"Found {len(found)} cycle(s):")
    for i, cycle in enumerate(found, 1):
        print(f"  {i}. {' -> '.join(cycle)} -> {cycle[0]}")


@app.command()
def tree(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Root issue ID")],
):
    """Show the dependency tree of what blocks an issue."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        root = _tree(store.issues, issue_id)

    if _wants_json(ctx):
        _print_json(root.to_dict())
        return

    print()
    for line in _render_tree(root):
        print(line)


@app.command()
def mine(
    ctx: typer.Context,
    session: SessionOption = None,
):
    """Show issues claimed by a session."""
    with _reporting_errors():
        store = Store.open(_ac_dir(ctx))
        issues = _mine(store.issues, session)

    if _wants_json(ctx):
        _print_json([i.to_dict() for i in issues])
        return

    if not issues:
        print(f"No issues claimed by session {session}")
        return

    _print_table(issues, with_status=False)
    print(f"{len(issues)} issue(s) claimed by session {session}")


@app.command()
def doctor(
    ctx: typer.Context,
    fix: Annotated[bool, typer.Option(help="Rebuild 'blocks' from 'blocked_by' and save")] = False,
):
    """Check that blocking edges are mirrored on both issues."""
    ac_dir = _ac_dir(ctx)
    with _reporting_errors():
        if fix:
            with transaction(ac_dir) as store:
                problems = find_mirror_violations(store.issues)
                repaired = repair_mirror(store.issues) if problems else 0
        else:
            store = Store.open(ac_dir)
            problems = find_mirror_violations(store.issues)
            repaired = 0

    if _wants_json(ctx):
        _print_json({"problems": problems, "repaired": repaired})
    elif not problems:
        print("No problems found.")
    else:
        for problem in problems:
            print(f"  - {problem}")
        if fix:
            print(f"Repaired {repaired} issue(s)")
        else:
            print("Run 'ac doctor --fix' to repair")

    if problems and not fix:
        raise typer.Exit(code=1)


def main():
    """Main CLI entry point."""
    app()
