"""ID generation for ac - project prefixes and collision-resistant suffixes."""

import hashlib
import logging
import os
import time
from typing import Optional, Set, Union

from ac_core.exceptions import AllocationExhaustedError
from ac_core.constants import MAX_ID_RETRIES, PREFIX_LENGTH, SUFFIX_LENGTH, BASE36_CHARS
from ac_core.utils import canonical_path

__all__ = [
    "derive_prefix",
    "generate_id",
    "allocate",
]

logger = logging.getLogger(__name__)


def derive_prefix(project_path: Union[str, "os.PathLike[str]"]) -> str:
    """Derive the 2-character ID prefix for a project.

    The canonical project path is hashed with SHA256 and each of the first
    two digest bytes is reduced modulo 36. The same path always yields the
    same prefix, on any machine.

    Args:
        project_path: Path to the project directory

    Returns:
        Lowercase base36 prefix, e.g. "k3"
    """
    digest = hashlib.sha256(canonical_path(project_path).encode("utf-8")).digest()
    return "".join(BASE36_CHARS[b % 36] for b in digest[:PREFIX_LENGTH])


def generate_id(
    title: str,
    prefix: str,
    existing_ids: Optional[Set[str]] = None,
    max_retries: int = MAX_ID_RETRIES,
) -> str:
    """Generate a collision-resistant hash-based ID.

    Format: {prefix}-{4-char-base36-hash}

    Args:
        title: Issue title (used for entropy)
        prefix: Project prefix from config
        existing_ids: Set of existing IDs to check for collisions
        max_retries: Maximum attempts to generate unique ID

    Returns:
        Unique ID string in format "k3-a9x0"

    Raises:
        AllocationExhaustedError: If unable to generate unique ID after max_retries

    Implementation notes:
        - Uses SHA256 hash of: title + nanosecond timestamp + attempt counter
        - Reduces the hash to 36^4 values and encodes it in base36
        - The attempt counter changes the hash input even when the clock
          has not moved since the previous attempt
    """
    if existing_ids is None:
        existing_ids = set()

    timestamp_ns = time.time_ns()
    for attempt in range(max_retries):
        entropy = f"{title}|{timestamp_ns}|{attempt}".encode("utf-8")

        hash_digest = hashlib.sha256(entropy).digest()
        hash_int = int.from_bytes(hash_digest[:4], byteorder="big") % (36 ** SUFFIX_LENGTH)
        suffix = _to_base36(hash_int).zfill(SUFFIX_LENGTH)

        id = f"{prefix}-{suffix}"

        if id not in existing_ids:
            return id

        logger.debug("ID collision on %s (attempt %d), retrying", id, attempt + 1)

    raise AllocationExhaustedError(prefix, max_retries)


def allocate(
    project_path: Union[str, "os.PathLike[str]"],
    title: str,
    existing_ids: Optional[Set[str]] = None,
) -> str:
    """Allocate a new issue ID for a project.

    Convenience wrapper: derives the prefix from the project path, then
    generates a suffix. Callers holding a loaded Config should pass
    ``config.prefix`` to generate_id() instead of re-deriving it.
    """
    return generate_id(title, derive_prefix(project_path), existing_ids=existing_ids)


def _to_base36(num: int) -> str:
    """Encode a non-negative integer in base36, without padding."""
    digits = []
    while True:
        num, remainder = divmod(num, 36)
        digits.append(BASE36_CHARS[remainder])
        if num == 0:
            return "".join(reversed(digits))
