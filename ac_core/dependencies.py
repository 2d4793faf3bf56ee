"""Dependency management for ac - blocking edges, readiness, cycles, trees.

Edges live on the issues themselves as ID sets: ``A.blocked_by`` holds the
IDs that must close before A is ready, and ``B.blocks`` mirrors it. All
traversals use explicit stacks so that deep or cyclic graphs cannot exhaust
the interpreter's recursion limit.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ac_core.constants import STATUS_CLOSED, STATUS_OPEN
from ac_core.exceptions import NotFoundError, SelfBlockError
from ac_core.models import Issue
from ac_core.utils import get_iso_timestamp

__all__ = [
    "TreeNode",
    "block",
    "unblock",
    "get_blockers",
    "is_blocked",
    "ready",
    "cycles",
    "tree",
    "find_mirror_violations",
    "repair_mirror",
]

logger = logging.getLogger(__name__)


def _get(index: Dict[str, Issue], issue_id: str) -> Issue:
    issue = index.get(issue_id)
    if issue is None:
        raise NotFoundError(issue_id)
    return issue


def block(
    index: Dict[str, Issue],
    issue_id: str,
    blocker_id: str,
    now: Optional[str] = None,
) -> Issue:
    """Record that blocker_id must close before issue_id is ready.

    Args:
        index: Loaded issue index
        issue_id: Issue that is blocked
        blocker_id: Issue that blocks it
        now: Timestamp override (defaults to the current time)

    Returns:
        The blocked issue

    Raises:
        SelfBlockError: If issue_id == blocker_id
        NotFoundError: If either issue is not in the index

    Notes:
        Adding an edge that already exists changes nothing. An edge that
        closes a cycle is accepted; cycles() reports it afterwards.
    """
    if issue_id == blocker_id:
        raise SelfBlockError(issue_id)

    issue = _get(index, issue_id)
    blocker = _get(index, blocker_id)

    if blocker_id in issue.blocked_by and issue_id in blocker.blocks:
        return issue

    now = now or get_iso_timestamp()
    issue.blocked_by.add(blocker_id)
    issue.updated_at = now
    blocker.blocks.add(issue_id)
    blocker.updated_at = now

    logger.debug("%s now blocked by %s", issue_id, blocker_id)
    return issue


def unblock(
    index: Dict[str, Issue],
    issue_id: str,
    blocker_id: str,
    now: Optional[str] = None,
) -> Issue:
    """Remove the edge "blocker_id blocks issue_id" in both directions.

    Removing an edge that does not exist changes nothing. A blocker ID that
    no longer resolves in the index is still dropped from ``blocked_by``.

    Raises:
        NotFoundError: If issue_id is not in the index
    """
    issue = _get(index, issue_id)
    blocker = index.get(blocker_id)

    changed = False
    now = now or get_iso_timestamp()

    if blocker_id in issue.blocked_by:
        issue.blocked_by.discard(blocker_id)
        issue.updated_at = now
        changed = True

    if blocker is not None and issue_id in blocker.blocks:
        blocker.blocks.discard(issue_id)
        blocker.updated_at = now
        changed = True

    if changed:
        logger.debug("%s no longer blocked by %s", issue_id, blocker_id)
    return issue


def get_blockers(index: Dict[str, Issue], issue_id: str) -> List[Issue]:
    """Get the unfinished issues blocking issue_id, sorted by ID.

    Dangling IDs are skipped: a reference to a missing issue cannot block.
    """
    issue = _get(index, issue_id)
    return [
        index[b]
        for b in sorted(issue.blocked_by)
        if b in index and index[b].status != STATUS_CLOSED
    ]


def is_blocked(index: Dict[str, Issue], issue_id: str) -> bool:
    """Check if issue is blocked by any issue that is not closed."""
    return bool(get_blockers(index, issue_id))


def ready(index: Dict[str, Issue]) -> List[Issue]:
    """Get open issues whose blockers are all closed.

    Returns:
        Ready issues ordered by priority, then ID
    """
    result = [
        issue
        for issue in index.values()
        if issue.status == STATUS_OPEN
        and all(
            index[b].status == STATUS_CLOSED
            for b in issue.blocked_by
            if b in index
        )
    ]
    result.sort(key=lambda i: (i.priority, i.id))
    return result


def _graph(index: Dict[str, Issue]) -> Dict[str, Set[str]]:
    return {
        issue_id: {b for b in issue.blocked_by if b in index and b != issue_id}
        for issue_id, issue in index.items()
    }


def _strongly_connected(graph: Dict[str, Set[str]], nodes: Set[str]) -> List[Set[str]]:
    """Tarjan's algorithm over the subgraph induced by nodes, with an explicit stack."""
    order: Dict[str, int] = {}
    low: Dict[str, int] = {}
    stack: List[str] = []
    on_stack: Set[str] = set()
    components: List[Set[str]] = []

    for root in sorted(nodes):
        if root in order:
            continue
        order[root] = low[root] = len(order)
        stack.append(root)
        on_stack.add(root)
        work: List[Tuple[str, Iterator[str]]] = [(root, iter(sorted(graph[root] & nodes)))]

        while work:
            node, children = work[-1]
            child = next(children, None)

            if child is not None:
                if child not in order:
                    order[child] = low[child] = len(order)
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(sorted(graph[child] & nodes))))
                elif child in on_stack:
                    low[node] = min(low[node], order[child])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])

            if low[node] == order[node]:
                component = set()
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.add(member)
                    if member == node:
                        break
                components.append(component)

    return components


def _unblock_node(node: str, blocked: Set[str], waiting: Dict[str, Set[str]]) -> None:
    pending = [node]
    while pending:
        current = pending.pop()
        if current in blocked:
            blocked.discard(current)
            pending.extend(waiting.pop(current, ()))


def _circuits(graph: Dict[str, Set[str]], nodes: Set[str], start: str) -> List[List[str]]:
    """Elementary cycles through start inside one strongly connected component.

    Johnson's circuit search: a node stays blocked until some path through it
    reaches start again, and ``waiting`` records which nodes to release when
    that happens.
    """
    found: List[List[str]] = []
    path = [start]
    blocked = {start}
    waiting: Dict[str, Set[str]] = {}
    closed = [False]
    stack: List[Iterator[str]] = [iter(sorted(graph[start] & nodes))]

    while stack:
        next_id = next(stack[-1], None)

        if next_id is not None:
            if next_id == start:
                found.append(list(path))
                closed[-1] = True
            elif next_id not in blocked:
                path.append(next_id)
                blocked.add(next_id)
                closed.append(False)
                stack.append(iter(sorted(graph[next_id] & nodes)))
            continue

        stack.pop()
        node = path.pop()
        reached_start = closed.pop()
        if reached_start:
            _unblock_node(node, blocked, waiting)
            if closed:
                closed[-1] = True
        else:
            for neighbor in graph[node] & nodes:
                waiting.setdefault(neighbor, set()).add(node)

    return found


def cycles(index: Dict[str, Issue]) -> List[List[str]]:
    """Find every elementary cycle in the blocked_by graph.

    Each non-trivial strongly connected component is searched from its
    smallest ID, which is then removed before the rest of the component is
    split again. Every cycle is therefore found exactly once, already rotated
    so its smallest ID comes first. Dangling IDs are ignored.

    Returns:
        Cycles as ordered ID lists, sorted; [A, B] means A is blocked by B
        and B is blocked by A
    """
    graph = _graph(index)
    found: List[List[str]] = []

    pending = [c for c in _strongly_connected(graph, set(graph)) if len(c) > 1]
    while pending:
        component = pending.pop()
        start = min(component)
        found.extend(_circuits(graph, component, start))
        component.discard(start)
        pending.extend(c for c in _strongly_connected(graph, component) if len(c) > 1)

    found.sort()
    if found:
        logger.debug("Detected %d dependency cycle(s)", len(found))
    return found


@dataclass
class TreeNode:
    """A node in a rendered blocking chain.

    ``cycle`` marks a node that is already on the path from the root,
    ``seen`` one that was expanded elsewhere in the same walk, and
    ``missing`` an ID with no issue behind it. Marked nodes have no children.
    """

    id: str
    title: Optional[str] = None
    status: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)
    cycle: bool = False
    seen: bool = False
    missing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        # Built bottom-up from a preorder list to stay iterative
        nodes = [node for _, node in self.walk()]
        built: Dict[int, Dict[str, Any]] = {}
        for node in reversed(nodes):
            data: Dict[str, Any] = {"id": node.id}
            if node.missing:
                data["missing"] = True
            else:
                data["title"] = node.title
                data["status"] = node.status
                if node.cycle:
                    data["cycle"] = True
                if node.seen:
                    data["seen"] = True
                data["blocked_by"] = [built.pop(id(child)) for child in node.children]
            built[id(node)] = data
        return built[id(self)]

    def walk(self) -> Iterator[Tuple[int, "TreeNode"]]:
        """Yield (depth, node) pairs in depth-first preorder."""
        stack: List[Tuple[int, TreeNode]] = [(0, self)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            for child in reversed(node.children):
                stack.append((depth + 1, child))


def _tree_node(issue: Issue) -> TreeNode:
    return TreeNode(id=issue.id, title=issue.title, status=issue.status)


def tree(index: Dict[str, Issue], issue_id: str) -> TreeNode:
    """Build the blocking chain rooted at issue_id.

    Children of a node are its blockers in ID order. A blocker already on
    the current path is emitted as a leaf marked ``cycle`` and one already
    expanded in another branch as a leaf marked ``seen``, so the walk always
    terminates and visits each issue at most once.

    Raises:
        NotFoundError: If issue_id is not in the index
    """
    root_issue = _get(index, issue_id)
    root = _tree_node(root_issue)

    expanded = {issue_id}
    path = [issue_id]
    on_path = {issue_id}
    stack: List[Tuple[TreeNode, Iterator[str]]] = [(root, iter(sorted(root_issue.blocked_by)))]

    while stack:
        parent, children = stack[-1]
        child_id = next(children, None)

        if child_id is None:
            stack.pop()
            on_path.discard(path.pop())
            continue

        child_issue = index.get(child_id)
        if child_issue is None:
            parent.children.append(TreeNode(id=child_id, missing=True))
            continue

        node = _tree_node(child_issue)
        parent.children.append(node)

        if child_id in on_path:
            node.cycle = True
            continue
        if child_id in expanded:
            node.seen = True
            continue

        expanded.add(child_id)
        path.append(child_id)
        on_path.add(child_id)
        stack.append((node, iter(sorted(child_issue.blocked_by))))

    return root


def find_mirror_violations(index: Dict[str, Issue]) -> List[str]:
    """Check that blocked_by and blocks mirror each other across the index.

    Returns:
        Human-readable descriptions of each broken edge, sorted
    """
    problems = []
    for issue_id in sorted(index):
        issue = index[issue_id]
        for blocker_id in sorted(issue.blocked_by):
            blocker = index.get(blocker_id)
            if blocker is not None and issue_id not in blocker.blocks:
                problems.append(f"{issue_id} is blocked by {blocker_id}, but {blocker_id}.blocks lacks {issue_id}")
        for blocked_id in sorted(issue.blocks):
            blocked = index.get(blocked_id)
            if blocked is None:
                problems.append(f"{issue_id} blocks missing issue {blocked_id}")
            elif issue_id not in blocked.blocked_by:
                problems.append(f"{issue_id} blocks {blocked_id}, but {blocked_id}.blocked_by lacks {issue_id}")
    return problems


def repair_mirror(index: Dict[str, Issue], now: Optional[str] = None) -> int:
    """Rebuild every ``blocks`` set from the ``blocked_by`` sets.

    ``blocked_by`` is treated as authoritative since it is what readiness is
    computed from.

    Returns:
        Number of issues whose ``blocks`` set changed
    """
    expected: Dict[str, Set[str]] = {issue_id: set() for issue_id in index}
    for issue_id, issue in index.items():
        for blocker_id in issue.blocked_by:
            if blocker_id in expected:
                expected[blocker_id].add(issue_id)

    now = now or get_iso_timestamp()
    repaired = 0
    for issue_id in sorted(index):
        issue = index[issue_id]
        if issue.blocks != expected[issue_id]:
            logger.info("Repairing blocks of %s: %s -> %s", issue_id, sorted(issue.blocks), sorted(expected[issue_id]))
            issue.blocks = expected[issue_id]
            issue.updated_at = now
            repaired += 1
    return repaired
