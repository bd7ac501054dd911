"""Volume lifecycle monitor.

DriveMonitor owns the attached-volume set and drives every other component:

    Initializing:
        - source folder must exist (fatal otherwise)
        - load the copy counter
        - take one snapshot as the attached set; volumes already present at
          startup never trigger a copy
        - send the ready notification

    Monitoring (every polling interval):
        - sample volumes and diff against the attached set
        - replace the attached set with the new snapshot
        - start one worker thread per inserted volume, then notify; a
          worker that cannot be started is recorded as a FAILED copy
        - log removed volumes

A failed sample leaves the attached set untouched and the loop carries on
with the next tick. Copy workers never block sampling; the counter they
share guards itself with a lock.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from sd_autocopy.app.state import MonitorState
from sd_autocopy.config.settings import AutocopyConfig
from sd_autocopy.domain.models import CopyOutcome, CopyResult, VolumeEvents
from sd_autocopy.logging import EventLogger, LoggerFactory
from sd_autocopy.services.copier import CopyOrchestrator
from sd_autocopy.services.lifecycle import diff_volumes
from sd_autocopy.services.notifications import Notifier
from sd_autocopy.storage.counter import CounterStore
from sd_autocopy.storage.exceptions import (
    SourceFolderMissingError,
    VolumeEnumerationError,
)
from sd_autocopy.storage.volumes import VolumeSampler


log = LoggerFactory.for_monitor()
poll_log = LoggerFactory.for_poll()


class DriveMonitor:
    """Polls for removable volumes and copies onto each new one.

    Args:
        config: Startup configuration
        sampler: Snapshot source for mounted volumes
        orchestrator: Handles a single insertion event
        counter: Persisted copy counter
        notifier: Operator notification channel
        dispatch: Starts a copy for one volume without blocking; defaults to
            a daemon thread per volume
    """

    def __init__(
        self,
        config: AutocopyConfig,
        sampler: VolumeSampler,
        orchestrator: CopyOrchestrator,
        counter: CounterStore,
        notifier: Notifier,
        dispatch: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.sampler = sampler
        self.orchestrator = orchestrator
        self.counter = counter
        self.notifier = notifier
        self.state = MonitorState()
        self._dispatch = dispatch or self._start_copy_thread
        self._workers: list[threading.Thread] = []
        self._workers_lock = threading.Lock()
        self._initialized = False

    @property
    def attached_volumes(self) -> frozenset[str]:
        return frozenset(self.state.attached_volumes)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Run the startup sequence.

        Raises:
            SourceFolderMissingError: If the source folder does not exist
        """
        source = self.config.source_folder
        if not source.is_dir():
            log.critical(f"FATAL ERROR: Source folder not found at: {source}")
            self.notifier.notify(
                "Initialization Error",
                f"The source folder {source} is missing. Monitoring cannot start.",
                urgent=True,
            )
            raise SourceFolderMissingError(source)
        log.info(f"Source folder found: {source}")

        self.counter.load()

        try:
            initial = self.sampler.sample()
        except VolumeEnumerationError as error:
            log.error(f"Failed to read initial drive list: {error}")
            self.notifier.notify(
                "Initialization Error",
                "Could not access drive information. See log for details.",
                urgent=True,
            )
            initial = set()
        for volume in sorted(initial):
            log.info(f"Existing volume added to tracking: {volume}")
        self.state.attached_volumes = set(initial)
        self.state.last_poll = time.time()

        excluded = ", ".join(sorted(self.sampler.excluded)) or "none"
        log.info(
            f"Monitoring for new volumes every "
            f"{self.config.polling_interval_seconds:g}s (ignoring {excluded})"
        )
        self.notifier.notify(
            "Script Initialized",
            f"Monitoring for new SD cards. (Ignoring {excluded}).",
        )
        self._initialized = True

    def poll_once(self) -> Optional[VolumeEvents]:
        """Run one monitoring tick.

        Returns:
            The events found this tick, or None if sampling failed
        """
        self.state.poll_count += 1
        self.state.last_poll = time.time()
        try:
            current = self.sampler.sample()
        except VolumeEnumerationError as error:
            log.error(f"Drive monitor error: {error}")
            self.notifier.notify(
                "Drive Monitor Error",
                "Failed to check for new drives. See log for details.",
                urgent=True,
            )
            return None

        events = diff_volumes(self.state.attached_volumes, current)
        self.state.attached_volumes = set(current)
        if not events.has_changes:
            poll_log.trace(f"No volume changes (tick {self.state.poll_count})")
            return events

        for volume in sorted(events.inserted):
            EventLogger.log_volume_hotplug(log, "inserted", volume)
            if self._start_copy(volume):
                self.notifier.notify("SD Card Detected", f"Starting copy to {volume}")

        for volume in sorted(events.removed):
            EventLogger.log_volume_hotplug(log, "removed", volume)

        return events

    def copy_volume(self, volume: str) -> CopyResult:
        """Handle one insertion and record its outcome."""
        result = self.orchestrator.handle(volume)
        self.state.record_result(result)
        return result

    def _start_copy(self, volume: str) -> bool:
        """Dispatch a copy for volume; a dispatch failure is a FAILED result."""
        try:
            self._dispatch(volume)
        except RuntimeError as error:
            log.error(f"Could not start copy for {volume}: {error}")
            result = CopyResult(
                volume,
                CopyOutcome.FAILED,
                self.orchestrator.destination_for(volume),
                error=str(error),
            )
            self.state.record_result(result)
            EventLogger.log_copy_outcome(
                log, volume, result.outcome.value, str(result.destination), error=str(error)
            )
            self.notifier.notify(
                "Copy Error",
                f"Failed to copy files to {volume}. See log for details.",
                urgent=True,
            )
            return False
        return True

    def _start_copy_thread(self, volume: str) -> None:
        def worker() -> None:
            try:
                self.copy_volume(volume)
            except Exception as error:
                log.exception(f"Unexpected error while copying to {volume}: {error}")

        thread = threading.Thread(
            target=worker, name=f"copy-{volume.rstrip(':')}", daemon=True
        )
        with self._workers_lock:
            self._workers = [t for t in self._workers if t.is_alive()]
            self._workers.append(thread)
        thread.start()

    def wait_for_copies(self, timeout: Optional[float] = None) -> None:
        """Block until every copy started so far has finished."""
        with self._workers_lock:
            workers = list(self._workers)
        for thread in workers:
            thread.join(timeout)

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_ticks: Optional[int] = None,
    ) -> None:
        """Poll until stop_event is set or max_ticks ticks have run."""
        if not self._initialized:
            self.initialize()
        stop_event = stop_event or threading.Event()
        interval = self.config.polling_interval_seconds
        ticks = 0
        while not stop_event.wait(interval):
            self.poll_once()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
