"""
Pytest configuration and shared fixtures for sd-autocopy tests.

This module provides common fixtures and utilities used across all test modules.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import pytest
from loguru import logger

from sd_autocopy.services.copier import CopyOrchestrator
from sd_autocopy.services.notifications import Notifier
from sd_autocopy.storage.counter import CounterStore


# ==============================================================================
# Collaborator Fakes
# ==============================================================================


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification instead of showing it."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, bool]] = []

    def _deliver(self, title: str, message: str, urgent: bool) -> None:
        self.sent.append((title, message, urgent))

    @property
    def titles(self) -> List[str]:
        return [title for title, _message, _urgent in self.sent]


class SnapshotSequence:
    """Volume enumerator replaying a scripted list of mount point lists.

    An Exception instance in the script is raised instead of returned. The
    last entry repeats once the script is exhausted.
    """

    def __init__(self, snapshots: Iterable[Any]) -> None:
        self.snapshots = list(snapshots)
        self.calls = 0

    def __call__(self):
        index = min(self.calls, len(self.snapshots) - 1)
        self.calls += 1
        snapshot = self.snapshots[index]
        if isinstance(snapshot, Exception):
            raise snapshot
        return list(snapshot)


# ==============================================================================
# File System Fixtures
# ==============================================================================


@pytest.fixture
def source_folder(tmp_path) -> Path:
    """
    Fixture providing a source folder holding three files.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.

    Returns:
        Path to the populated source folder.
    """
    source = tmp_path / "files_to_copy"
    (source / "chapters").mkdir(parents=True)
    (source / "intro.mp3").write_bytes(b"ID3 intro")
    (source / "chapters" / "chapter1.mp3").write_bytes(b"ID3 chapter one")
    (source / "readme.txt").write_text("Play intro first.\n", encoding="utf-8")
    return source


@pytest.fixture
def volumes_dir(tmp_path) -> Path:
    """Fixture providing a directory that stands in for drive roots."""
    root = tmp_path / "volumes"
    root.mkdir()
    return root


@pytest.fixture
def volume_root(volumes_dir):
    """Fixture mapping a drive letter to a temporary root ("D:" -> volumes/D)."""

    def resolve(volume: str) -> Path:
        path = volumes_dir / volume.rstrip(":")
        path.mkdir(exist_ok=True)
        return path

    return resolve


@pytest.fixture
def counter_path(tmp_path) -> Path:
    return tmp_path / "state" / "autocopy_count.txt"


@pytest.fixture
def temp_settings_file(tmp_path) -> Path:
    """
    Fixture providing a temporary settings file path.

    Args:
        tmp_path: pytest's built-in temporary directory fixture.

    Returns:
        Path to a temporary settings file.
    """
    settings_dir = tmp_path / ".config" / "sd-autocopy"
    settings_dir.mkdir(parents=True, exist_ok=True)
    return settings_dir / "settings.json"


@pytest.fixture
def sample_settings_data() -> Dict[str, Any]:
    """
    Fixture providing sample settings data.

    Returns:
        Dict with typical settings values.
    """
    return {
        "source_folder": "/srv/autocopy/files_to_copy",
        "polling_interval_ms": 2500,
        "excluded_volumes": ["C:", "Z:"],
        "destination_folder_name": "AUDIOBOOK",
        "notifications_enabled": False,
    }


# ==============================================================================
# Component Fixtures
# ==============================================================================


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def counter(counter_path) -> CounterStore:
    store = CounterStore(counter_path)
    store.load()
    return store


@pytest.fixture
def orchestrator(source_folder, counter, notifier, volume_root) -> CopyOrchestrator:
    """Fixture providing a CopyOrchestrator writing under temporary roots."""
    return CopyOrchestrator(
        source=source_folder,
        destination_name="AUTOCOPY",
        counter=counter,
        notifier=notifier,
        volume_root=volume_root,
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """
    Auto-use fixture that restores the default loguru sink after each test.

    Tests that call setup_logging() replace every sink; this puts a plain
    stderr sink back so later tests start from a known state.
    """
    yield
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})
    logger.add(sys.stderr, level="DEBUG")


@pytest.fixture
def mock_popen(mocker):
    """
    Fixture providing a mock for subprocess.Popen.

    The mocked process exits 0 with no output as soon as it is reaped.

    Returns:
        Mock object for subprocess.Popen
    """
    mock = mocker.patch("subprocess.Popen")
    mock.return_value.communicate.return_value = ("", "")
    mock.return_value.returncode = 0
    return mock
