"""Durable counter of successful copy operations.

The counter lives in a plain text file holding nothing but the decimal
value. It is read once at startup and rewritten in full after every
successful copy.

Recovery Rules:
    - Missing file: start at 0 and create the file with "0"
    - Anything but plain ASCII digits: reset to 0 and log a warning
    - Write failure after a copy: log an error and keep the in-memory value;
      the next successful write brings the file back in line

Writes go through a temp file in the same directory followed by
os.replace(), so a crash mid-write leaves either the old or the new value.

Copies complete on worker threads, so increment() holds a lock across the
in-memory update and the file write.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from sd_autocopy.logging import LoggerFactory
from sd_autocopy.storage.exceptions import CounterStoreError


log = LoggerFactory.for_counter()


def read_counter(path: Path) -> int:
    """Read the persisted counter value.

    Raises:
        CounterStoreError: If the file is missing, unreadable or corrupt
    """
    try:
        payload = path.read_text(encoding="utf-8")
    except FileNotFoundError as error:
        raise CounterStoreError(path, "file not found") from error
    except OSError as error:
        raise CounterStoreError(path, f"unreadable: {error}") from error

    text = payload.strip()
    # int() would also take "+5", "1_000" and non-ASCII digits
    if not (text.isascii() and text.isdigit()):
        raise CounterStoreError(path, f"invalid content {text!r}")
    return int(text)


def write_counter(path: Path, value: int) -> None:
    """Overwrite the counter file with value.

    Raises:
        CounterStoreError: If the file cannot be written
    """
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(str(value), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as error:
        raise CounterStoreError(path, f"write failed: {error}") from error


class CounterStore:
    """In-memory copy counter backed by a single-integer text file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._value = 0
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def load(self) -> int:
        """Load the counter from disk, falling back to 0."""
        try:
            value = read_counter(self._path)
        except CounterStoreError as error:
            if not self._path.exists():
                log.info(f"Counter file not found, starting count at 0: {self._path}")
                self._initialize_file()
            else:
                log.warning(f"{error}. Resetting count to 0.")
            value = 0
        else:
            log.info(f"Found {value} previous successful copies")
        with self._lock:
            self._value = value
        return value

    def _initialize_file(self) -> None:
        try:
            write_counter(self._path, 0)
        except CounterStoreError as error:
            log.error(f"Could not create counter file: {error}")

    def increment(self) -> int:
        """Add one successful copy and persist the new total.

        A failed write is logged and does not undo the increment.
        """
        with self._lock:
            self._value += 1
            value = self._value
            try:
                write_counter(self._path, value)
            except CounterStoreError as error:
                log.error(f"Failed to persist copy count {value}: {error}")
            else:
                log.debug(f"Persisted copy count {value} to {self._path}")
        log.info(f"Total successful copies: {value}")
        return value
