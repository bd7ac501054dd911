"""Domain model for removable-volume autocopy.

Volume identifiers stay plain normalized strings (e.g. "D:"); the types here
describe what happens to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


# ==============================================================================
# Volume Lifecycle Domain
# ==============================================================================


@dataclass(frozen=True)
class VolumeEvents:
    """Insertions and removals between two successive snapshots."""

    inserted: frozenset[str] = field(default_factory=frozenset)
    removed: frozenset[str] = field(default_factory=frozenset)

    @property
    def has_changes(self) -> bool:
        return bool(self.inserted or self.removed)


# ==============================================================================
# Copy Domain
# ==============================================================================


class CopyOutcome(Enum):
    """Result of a single copy attempt on one volume."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class CopyResult:
    """Outcome of handling one insertion event.

    copy_count is the counter value after a successful copy and None
    otherwise; files_copied is the number of source files written. error
    carries the failure message for FAILED results.
    """

    volume: str
    outcome: CopyOutcome
    destination: Path
    copy_count: int | None = None
    files_copied: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is CopyOutcome.SUCCEEDED
