"""ac - Simple task tracking for LLM sessions.

This package provides the core functionality for the ac backlog: an
ownership-based lifecycle, blocking dependencies, and a JSONL store.
Import from here for the public API.
"""

from ac_core.exceptions import (
    AcError,
    NotFoundError,
    InvalidTransitionError,
    NotOwnerError,
    SessionRequiredError,
    SelfBlockError,
    MalformedRecordError,
    DurableWriteError,
    AllocationExhaustedError,
    InvalidFieldError,
    ConfigError,
    NotInitializedError,
    AlreadyInitializedError,
)
from ac_core.constants import (
    STATUS_OPEN,
    STATUS_IN_PROGRESS,
    STATUS_CLOSED,
    VALID_STATUSES,
    VALID_ISSUE_TYPES,
    LEGACY_TYPE_ALIASES,
    PRIORITY_RANGE,
    MAX_ID_RETRIES,
    PREFIX_LENGTH,
    SUFFIX_LENGTH,
    BASE36_CHARS,
    SCHEMA_VERSION,
)
from ac_core.utils import get_iso_timestamp
from ac_core.ids import derive_prefix, generate_id, allocate
from ac_core.models import Comment, Issue, Config, normalize_issue_type, check_issue
from ac_core.transitions import (
    Transition,
    apply_transition,
    claim_issue,
    release_issue,
    finish_issue,
    close_issue,
)
from ac_core.issues import (
    create_issue,
    get_issue,
    list_issues,
    update_issue,
    mine,
)
from ac_core.comments import (
    add_comment,
    get_comments,
)
from ac_core.dependencies import (
    TreeNode,
    block,
    unblock,
    get_blockers,
    is_blocked,
    ready,
    cycles,
    tree,
    find_mirror_violations,
    repair_mirror,
)
from ac_core.store import (
    Store,
    load,
    save,
    dump_issue,
    load_config,
    init_store,
    resolve_ac_dir,
    transaction,
)
from ac_core.cli import app, main

__all__ = [
    # Exceptions
    "AcError",
    "NotFoundError",
    "InvalidTransitionError",
    "NotOwnerError",
    "SessionRequiredError",
    "SelfBlockError",
    "MalformedRecordError",
    "DurableWriteError",
    "AllocationExhaustedError",
    "InvalidFieldError",
    "ConfigError",
    "NotInitializedError",
    "AlreadyInitializedError",
    # Constants
    "STATUS_OPEN",
    "STATUS_IN_PROGRESS",
    "STATUS_CLOSED",
    "VALID_STATUSES",
    "VALID_ISSUE_TYPES",
    "LEGACY_TYPE_ALIASES",
    "PRIORITY_RANGE",
    "MAX_ID_RETRIES",
    "PREFIX_LENGTH",
    "SUFFIX_LENGTH",
    "BASE36_CHARS",
    "SCHEMA_VERSION",
    # Utils
    "get_iso_timestamp",
    # IDs
    "derive_prefix",
    "generate_id",
    "allocate",
    # Models
    "Comment",
    "Issue",
    "Config",
    "normalize_issue_type",
    "check_issue",
    # Transitions
    "Transition",
    "apply_transition",
    "claim_issue",
    "release_issue",
    "finish_issue",
    "close_issue",
    # Issues
    "create_issue",
    "get_issue",
    "list_issues",
    "update_issue",
    "mine",
    # Comments
    "add_comment",
    "get_comments",
    # Dependencies
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
    # Store
    "Store",
    "load",
    "save",
    "dump_issue",
    "load_config",
    "init_store",
    "resolve_ac_dir",
    "transaction",
    # CLI
    "app",
    "main",
]
