"""Filesystem helpers for copying the source folder onto a volume."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from sd_autocopy.logging import LoggerFactory
from sd_autocopy.storage.exceptions import CopyOperationError


log = LoggerFactory.for_copy(job_id="-")


def has_content(path: Path) -> bool:
    """Return True if path is an existing directory with at least one entry.

    Raises:
        OSError: If the directory exists but cannot be listed
    """
    if not path.exists():
        return False
    with os.scandir(path) as entries:
        return any(True for _ in entries)


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def count_files(path: Path) -> int:
    if not path.is_dir():
        return 0
    return sum(1 for item in path.rglob("*") if item.is_file())


def copy_tree(source: Path, destination: Path) -> int:
    """Recursively copy source into destination.

    Existing files are overwritten and existing directories are reused, so
    a second run over a partial copy simply completes it.

    Returns:
        Number of files copied

    Raises:
        CopyOperationError: If individual files failed to copy
        OSError: On any other I/O failure, including the volume disappearing
    """
    log.debug(f"Copying tree {source} -> {destination}")
    try:
        shutil.copytree(
            source,
            destination,
            copy_function=shutil.copy2,
            dirs_exist_ok=True,
        )
    except shutil.Error as error:
        failures = error.args[0] if error.args and isinstance(error.args[0], list) else []
        reason = f": {failures[0][2]}" if failures else ""
        raise CopyOperationError(
            f"{len(failures)} file(s) failed to copy to {destination}{reason}",
            destination=str(destination),
            failures=failures,
        ) from error
    return count_files(source)
