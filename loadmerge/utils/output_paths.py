"""Helpers for composing output file paths."""

from __future__ import annotations

import os
from pathlib import Path


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory exists for a file path."""
    path.parent.mkdir(parents=True, exist_ok=True)


def staging_path_for(path: Path) -> Path:
    """Return a sibling path used to stage a write before renaming.

    The name carries the current process id so concurrent writers targeting
    the same directory do not clobber each other's staging files.

    Args:
        path: Final destination path.

    Returns:
        Path in the same directory as ``path``.
    """
    return path.with_name(f".{path.name}.{os.getpid()}.tmp")
