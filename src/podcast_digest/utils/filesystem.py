"""Filesystem utilities for podcast_digest."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

WORK_DIR_PREFIX = "digest_"


def validate_blob_name(name: str) -> str:
    """Reject artifact names that could escape their container directory.

    Raises:
        ValueError: If the name is empty, absolute, or contains a path separator
            or a '..' segment.
    """
    if not name or not name.strip():
        raise ValueError("Artifact name cannot be empty")
    if ".." in name or "/" in name or "\\" in name or os.path.isabs(name):
        raise ValueError(
            f"Invalid artifact name: '{name}'. Names must be plain file names "
            "without path separators or '..'."
        )
    return name


def ensure_within(path: Union[str, Path], base_dir: Union[str, Path]) -> Path:
    """Resolve ``path`` and make sure it stays inside ``base_dir``.

    Raises:
        ValueError: If the resolved path is outside ``base_dir``
    """
    path_obj = Path(path).resolve()
    base_path = Path(base_dir).resolve()
    try:
        path_obj.relative_to(base_path)
    except ValueError:
        raise ValueError(f"Path '{path}' is outside base directory '{base_dir}'") from None
    return path_obj


def write_file_atomic(path: Union[str, Path], data: bytes) -> None:
    """Write bytes to ``path`` via a temp file and rename, creating parent dirs.

    Readers never observe a half-written file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    logger.debug("Wrote %s (%d bytes)", target, len(data))


def create_work_dir(key: str, parent: Optional[str] = None) -> str:
    """Create a per-run working directory for ``key``."""
    if parent:
        os.makedirs(parent, exist_ok=True)
    path = tempfile.mkdtemp(prefix=f"{WORK_DIR_PREFIX}{key}_", dir=parent)
    logger.debug("Created working directory %s", path)
    return path


def remove_work_dir(path: Optional[str]) -> None:
    """Remove a working directory and everything in it; missing paths are ignored."""
    if not path or not os.path.exists(path):
        return
    try:
        shutil.rmtree(path)
        logger.debug("Removed working directory %s", path)
    except OSError as exc:
        logger.warning("Failed to remove working directory %s: %s", path, exc)


def remove_file_quietly(path: Optional[str]) -> None:
    """Delete a file if it exists, logging rather than raising on failure."""
    if not path:
        return
    try:
        os.remove(path)
        logger.debug("Removed partial file %s", path)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Failed to remove %s: %s", path, exc)
