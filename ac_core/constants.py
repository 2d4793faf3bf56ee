"""Constants for ac - magic strings, numbers, and file layout."""

__all__ = [
    "STATUS_OPEN",
    "STATUS_IN_PROGRESS",
    "STATUS_CLOSED",
    "VALID_STATUSES",
    "VALID_ISSUE_TYPES",
    "LEGACY_TYPE_ALIASES",
    "DEFAULT_ISSUE_TYPE",
    "PRIORITY_RANGE",
    "DEFAULT_PRIORITY",
    "MAX_ID_RETRIES",
    "PREFIX_LENGTH",
    "SUFFIX_LENGTH",
    "BASE36_CHARS",
    "SCHEMA_VERSION",
    "AC_DIR_NAME",
    "ISSUES_FILE",
    "CONFIG_FILE",
]

# Issue statuses
STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_CLOSED = "closed"
VALID_STATUSES = {STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_CLOSED}

# Issue types
VALID_ISSUE_TYPES = {"task", "epic", "refactor", "spike"}
DEFAULT_ISSUE_TYPE = "task"

# Types written by older versions, folded into "task" when a record is read
LEGACY_TYPE_ALIASES = {
    "bug": "task",
    "feature": "task",
    "chore": "task",
}

# Priority range (inclusive)
PRIORITY_RANGE = (0, 4)
DEFAULT_PRIORITY = 2

# ID generation
MAX_ID_RETRIES = 10
PREFIX_LENGTH = 2
SUFFIX_LENGTH = 4
BASE36_CHARS = "0123456789abcdefghijklmnopqrstuvwxyz"

# On-disk layout
SCHEMA_VERSION = 1
AC_DIR_NAME = ".ac"
ISSUES_FILE = "issues.jsonl"
CONFIG_FILE = "config.json"
