"""
Deterministic hashing for invocation identity.

A test run is identified by its working directory. The directory is
canonicalised (absolute, symlinks resolved, normalised case on
case-insensitive platforms) and hashed so that the mapping store never
depends on how a path happened to be spelled.

Examples:
    >>> context_id("/home/bob/project") == context_id("/home/bob/project/")
    True
    >>> len(context_id("/tmp"))
    32
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute a deterministic hash from values.

    Args:
        *values: Values to hash (converted to strings and joined with "|")
        length: Length of returned hex string (default 32)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def canonical_path(path: str | os.PathLike[str] | None = None) -> str:
    """Absolute, symlink-free, case-normalised form of ``path`` (default: cwd)."""
    resolved = Path(path if path is not None else os.getcwd()).resolve()
    return os.path.normcase(str(resolved))


def context_id(path: str | os.PathLike[str] | None = None) -> str:
    """Identity of the invoking test run, derived from its working directory."""
    return compute_hash(canonical_path(path))


__all__ = [
    "compute_hash",
    "canonical_path",
    "context_id",
]
