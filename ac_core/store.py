"""Store for ac - line-oriented JSONL persistence with atomic replace.

The whole index is read at the start of a command and written back at the
end. There is no file lock: two commands that overlap both write complete
files and the later rename wins.
"""

import json
import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generator, Optional, Union

from ac_core.constants import AC_DIR_NAME, CONFIG_FILE, ISSUES_FILE, SCHEMA_VERSION
from ac_core.exceptions import (
    AlreadyInitializedError,
    ConfigError,
    DurableWriteError,
    InvalidFieldError,
    MalformedRecordError,
    NotInitializedError,
)
from ac_core.ids import derive_prefix
from ac_core.models import Config, Issue

__all__ = [
    "Store",
    "load",
    "save",
    "dump_issue",
    "load_config",
    "init_store",
    "resolve_ac_dir",
    "transaction",
]

logger = logging.getLogger(__name__)

PathArg = Union[str, "os.PathLike[str]"]


def dump_issue(issue: Issue) -> str:
    """Serialize one issue to its canonical single-line form.

    Key order and set ordering are fixed, so an unchanged issue always
    serializes to the same bytes.
    """
    return json.dumps(issue.to_dict())


def load(path: PathArg) -> Dict[str, Issue]:
    """Load an issue index from a JSONL file.

    Args:
        path: Path to issues.jsonl

    Returns:
        Dict mapping issue ID to Issue; empty if the file does not exist

    Raises:
        MalformedRecordError: On the first line that is not a valid record,
            including a repeated ID. Blank lines are ignored.

    Notes:
        Nothing is skipped. Merge-conflict markers left by version control
        fail here rather than silently dropping records.
    """
    path = Path(path)
    index: Dict[str, Issue] = {}

    if not path.exists():
        logger.debug("No issues file at %s, starting empty", path)
        return index

    with path.open("rb") as f:
        for line_num, raw in enumerate(f, 1):
            try:
                line = raw.decode("utf-8").strip()
            except UnicodeDecodeError as e:
                raise MalformedRecordError(line_num, f"not valid UTF-8 ({e.reason})") from e
            if not line:
                continue

            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise MalformedRecordError(line_num, f"invalid JSON: {e.msg} at column {e.colno}") from e

            try:
                issue = Issue.from_dict(data)
            except InvalidFieldError as e:
                raise MalformedRecordError(line_num, str(e)) from e

            if issue.id in index:
                raise MalformedRecordError(line_num, f"duplicate issue ID {issue.id}")
            index[issue.id] = issue

    logger.debug("Loaded %d issue(s) from %s", len(index), path)
    return index


def _fsync_dir(directory: Path) -> None:
    if os.name != "posix":
        return
    fd = os.open(str(directory), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write data to a temporary sibling of path, then rename it over path.

    Raises:
        DurableWriteError: If any step fails; path is left as it was
    """
    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

        # NamedTemporaryFile creates 0600; keep the target's permissions
        mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644
        os.chmod(tmp_path, mode)

        os.replace(tmp_path, path)
        tmp_path = None
        _fsync_dir(path.parent)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise DurableWriteError(str(path), str(e)) from e


def save(index: Dict[str, Issue], path: PathArg) -> None:
    """Write the full index to a JSONL file atomically.

    Args:
        index: Issue index to persist
        path: Path to issues.jsonl

    Raises:
        DurableWriteError: If the file could not be written or replaced

    Format:
        One JSON object per line, sorted by ID. Readers see either the old
        file or the new one, never a partial write.
    """
    path = Path(path)
    lines = [dump_issue(index[issue_id]) + "\n" for issue_id in sorted(index)]
    _atomic_write(path, "".join(lines).encode("utf-8"))
    logger.debug("Saved %d issue(s) to %s", len(index), path)


def load_config(ac_dir: PathArg) -> Config:
    """Read config.json from a data directory.

    Raises:
        NotInitializedError: If config.json does not exist
        ConfigError: If it cannot be read or is invalid
    """
    config_path = Path(ac_dir) / CONFIG_FILE
    if not config_path.exists():
        raise NotInitializedError(str(ac_dir))

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    return Config.from_dict(data)


def init_store(ac_dir: PathArg, project_path: PathArg) -> Config:
    """Create a data directory with config.json and an empty issues.jsonl.

    Args:
        ac_dir: Data directory to create (e.g. "<project>/.ac")
        project_path: Project directory the prefix is derived from

    Returns:
        The written config

    Raises:
        AlreadyInitializedError: If ac_dir already holds a config.json
        DurableWriteError: If the files could not be written
    """
    ac_dir = Path(ac_dir)
    config_path = ac_dir / CONFIG_FILE
    if config_path.exists():
        raise AlreadyInitializedError(str(ac_dir))

    try:
        ac_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DurableWriteError(str(ac_dir), str(e)) from e

    config = Config(version=SCHEMA_VERSION, prefix=derive_prefix(project_path))
    _atomic_write(config_path, (json.dumps(config.to_dict(), indent=2) + "\n").encode("utf-8"))

    issues_path = ac_dir / ISSUES_FILE
    if not issues_path.exists():
        save({}, issues_path)

    logger.info("Initialized %s with prefix %r", ac_dir, config.prefix)
    return config


def resolve_ac_dir(path: Optional[PathArg] = None, cwd: Optional[PathArg] = None) -> Path:
    """Resolve the data directory.

    Args:
        path: Explicit directory (wins when given)
        cwd: Base directory for the default (defaults to os.getcwd())

    Returns:
        ``path``, or ``<cwd>/.ac``
    """
    if path is not None:
        return Path(path)
    base = Path(cwd) if cwd is not None else Path(os.getcwd())
    return base / AC_DIR_NAME


@dataclass
class Store:
    """A loaded data directory: its config and the full issue index."""

    ac_dir: Path
    config: Config
    issues: Dict[str, Issue]

    @property
    def issues_path(self) -> Path:
        return self.ac_dir / ISSUES_FILE

    @classmethod
    def open(cls, ac_dir: PathArg) -> "Store":
        """Load config and issues from ac_dir.

        Raises:
            NotInitializedError: If ac_dir has no config.json
            ConfigError: If config.json is invalid
            MalformedRecordError: If issues.jsonl has a bad line
        """
        ac_dir = Path(ac_dir)
        config = load_config(ac_dir)
        issues = load(ac_dir / ISSUES_FILE)
        return cls(ac_dir=ac_dir, config=config, issues=issues)

    def save(self) -> None:
        save(self.issues, self.issues_path)


@contextmanager
def transaction(ac_dir: PathArg) -> Generator[Store, None, None]:
    """Load a store, yield it, and save it if the block succeeds.

    An exception inside the block propagates and nothing is written.

    Usage:
        with transaction(".ac") as store:
            claim_issue(store.issues, "k3-a9x0", "session-1")
    """
    store = Store.open(ac_dir)
    yield store
    store.save()
