"""Per-volume copy orchestration.

Every insertion event runs through CopyOrchestrator.handle(), which walks a
fixed decision sequence:

    1. Resolve the destination: <volume root>/<destination folder name>
    2. Destination exists and is non-empty -> SKIPPED
       (a listing failure is logged and the copy goes ahead)
    3. Ensure the destination folder and copy the source tree into it,
       overwriting anything a previous aborted attempt left behind
    4. Copy finished -> bump and persist the counter, SUCCEEDED
    5. Any I/O error, including the volume being pulled mid-copy -> FAILED

There is no retry. Re-inserting the volume produces a fresh insertion event,
which is the retry path. Partial output from a failed copy is left in place.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from sd_autocopy.domain.models import CopyOutcome, CopyResult
from sd_autocopy.logging import EventLogger, LoggerFactory, operation_context
from sd_autocopy.services.notifications import Notifier
from sd_autocopy.storage import transfer
from sd_autocopy.storage.counter import CounterStore
from sd_autocopy.storage.exceptions import CopyError


log = LoggerFactory.for_copy(job_id="-")


def default_volume_root(volume: str) -> Path:
    """Root directory of a drive-letter volume ("D:" -> "D:\\")."""
    return Path(f"{volume}{os.sep}")


class CopyOrchestrator:
    """Decides skip vs. copy for a volume and carries the copy out.

    Args:
        source: Folder whose contents are copied onto each volume
        destination_name: Folder created under the volume root
        counter: Persisted count of successful copies
        notifier: Operator notification channel
        copy_tree: Recursive copy callable (source, destination) returning the
            number of files copied
        volume_root: Maps a volume identifier to its root directory
    """

    def __init__(
        self,
        source: Path,
        destination_name: str,
        counter: CounterStore,
        notifier: Notifier,
        copy_tree: Callable[[Path, Path], Optional[int]] = transfer.copy_tree,
        volume_root: Callable[[str], Path] = default_volume_root,
    ) -> None:
        self.source = Path(source)
        self.destination_name = destination_name
        self.counter = counter
        self.notifier = notifier
        self._copy_tree = copy_tree
        self._volume_root = volume_root

    def destination_for(self, volume: str) -> Path:
        return self._volume_root(volume) / self.destination_name

    def _already_populated(self, destination: Path) -> bool:
        try:
            return transfer.has_content(destination)
        except OSError as error:
            log.warning(
                f"Could not read contents of {destination}: {error}. "
                "Proceeding with copy attempt."
            )
            return False

    def handle(self, volume: str) -> CopyResult:
        destination = self.destination_for(volume)

        if self._already_populated(destination):
            log.warning(f"Files already exist on {destination}. Copy skipped.")
            self.notifier.notify(
                "Copy Skipped",
                f"Files already found on {volume}. Eject to continue monitoring.",
            )
            result = CopyResult(volume, CopyOutcome.SKIPPED, destination)
            EventLogger.log_copy_outcome(log, volume, result.outcome.value, str(destination))
            return result

        try:
            with operation_context(
                "copy",
                volume=volume,
                source_folder=str(self.source),
                destination=str(destination),
            ) as op_log:
                transfer.ensure_directory(destination)
                op_log.debug(f"Created/ensured destination folder: {destination}")
                op_log.info(f"Copying files now. Do NOT eject {volume}")
                files_copied = self._copy_tree(self.source, destination)
        except (OSError, CopyError) as error:
            self.notifier.notify(
                "Copy Error",
                f"Failed to copy files to {volume}. Check drive permissions.",
                urgent=True,
            )
            result = CopyResult(
                volume, CopyOutcome.FAILED, destination, error=str(error)
            )
            EventLogger.log_copy_outcome(
                log, volume, result.outcome.value, str(destination), error=str(error)
            )
            return result

        copy_count = self.counter.increment()
        self.notifier.notify(
            "Copy Complete",
            f"Files copied to {destination}. You can safely eject the drive now.",
        )
        result = CopyResult(
            volume,
            CopyOutcome.SUCCEEDED,
            destination,
            copy_count=copy_count,
            files_copied=files_copied,
        )
        EventLogger.log_copy_outcome(
            log,
            volume,
            result.outcome.value,
            str(destination),
            copy_count=copy_count,
            files_copied=files_copied,
        )
        return result
