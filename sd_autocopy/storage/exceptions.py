"""Custom exceptions for autocopy operations.

This module defines a hierarchy of exceptions so callers can tell a fatal
configuration problem apart from a per-tick enumeration hiccup or a
per-volume copy failure.

Exception Hierarchy:
    AutocopyError (base)
        ├── ConfigurationError
        │   └── SourceFolderMissingError
        ├── VolumeError
        │   └── VolumeEnumerationError
        ├── CopyError
        │   └── CopyOperationError
        └── CounterStoreError

Usage:
    from sd_autocopy.storage.exceptions import SourceFolderMissingError

    if not source.is_dir():
        raise SourceFolderMissingError(source)
"""

from __future__ import annotations

from pathlib import Path


class AutocopyError(Exception):
    """Base exception for all autocopy operations."""



class ConfigurationError(AutocopyError):
    """Configuration is invalid or incomplete."""



class SourceFolderMissingError(ConfigurationError):
    """The folder holding the files to copy does not exist."""

    def __init__(self, source: Path | str):
        self.source = str(source)
        super().__init__(f"Source folder not found: {self.source}")


class VolumeError(AutocopyError):
    """Base exception for volume-related errors."""



class VolumeEnumerationError(VolumeError):
    """The OS volume enumeration call itself failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to enumerate volumes: {reason}")


class CopyError(AutocopyError):
    """Base exception for copy operations."""



class CopyOperationError(CopyError):
    """One or more files in the tree could not be copied.

    failures holds (source, destination, reason) entries, one per file.
    """

    def __init__(self, message: str, destination: str = None, failures=()):
        self.destination = destination
        self.failures = list(failures)
        super().__init__(message)


class CounterStoreError(AutocopyError):
    """The copy counter file could not be read or written."""

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Counter store {self.path}: {reason}")
