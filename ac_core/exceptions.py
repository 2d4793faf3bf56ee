"""Custom exceptions for ac."""

from typing import Optional

__all__ = [
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
]


class AcError(Exception):
    """Base class for every error the core reports to its caller."""

    pass


class NotFoundError(AcError):
    """Raised when an issue ID does not resolve in the index."""

    def __init__(self, issue_id: str) -> None:
        self.issue_id = issue_id
        super().__init__(f"Issue not found: {issue_id}")


class InvalidTransitionError(AcError):
    """Raised when a transition is not valid from the issue's current status."""

    def __init__(self, from_status: str, attempted: str) -> None:
        self.from_status = from_status
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} an issue that is {from_status}")


class NotOwnerError(AcError):
    """Raised when a session other than the owner tries to release or finish."""

    def __init__(self, actor: str, current_owner: Optional[str]) -> None:
        self.actor = actor
        self.current_owner = current_owner
        super().__init__(
            f"Session {actor} does not own this issue (owner: {current_owner or '-'})"
        )


class SessionRequiredError(AcError):
    """Raised when an ownership operation is attempted without a session ID."""

    def __init__(self) -> None:
        super().__init__("A session identifier is required for this operation")


class SelfBlockError(AcError):
    """Raised when an issue is asked to block itself."""

    def __init__(self, issue_id: str) -> None:
        self.issue_id = issue_id
        super().__init__(f"Issue cannot block itself: {issue_id}")


class MalformedRecordError(AcError):
    """Raised when a line of the issues file cannot be parsed."""

    def __init__(self, line_number: int, cause: str) -> None:
        self.line_number = line_number
        self.cause = cause
        super().__init__(f"Malformed record on line {line_number}: {cause}")


class DurableWriteError(AcError):
    """Raised when the index could not be written and atomically replaced."""

    def __init__(self, path: str, cause: str) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")


class AllocationExhaustedError(AcError):
    """Raised when unable to generate unique ID after max retries."""

    def __init__(self, prefix: str, attempts: int) -> None:
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"Unable to generate unique ID for prefix '{prefix}' after {attempts} attempts"
        )


class InvalidFieldError(AcError, ValueError):
    """Raised when a field value is out of range or of the wrong shape."""

    pass


class ConfigError(AcError):
    """Raised when config.json is unreadable or inconsistent."""

    pass


class NotInitializedError(AcError):
    """Raised when the data directory has not been initialized."""

    def __init__(self, ac_dir: str) -> None:
        self.ac_dir = ac_dir
        super().__init__(f"Not initialized: {ac_dir}. Run 'ac init' first.")


class AlreadyInitializedError(AcError):
    """Raised when init is run against an existing data directory."""

    def __init__(self, ac_dir: str) -> None:
        self.ac_dir = ac_dir
        super().__init__(f"{ac_dir} already exists")
