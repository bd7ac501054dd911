"""Removable volume sampling on top of psutil.

psutil.disk_partitions() is the OS volume enumeration collaborator. This
module reduces its output to a set of normalized drive-letter identifiers
(e.g. {"D:", "F:"}) that are candidates for an autocopy.

Filtering Logic:
    1. Only partitions carrying a filesystem count; an empty reader slot
       (fstype "") is not a volume
    2. Normalize: uppercase, trailing path separators stripped ("d:\\" -> "D:")
    3. Keep only the drive-letter shape: exactly two characters, a letter
       followed by a colon
    4. Drop anything on the exclusion list (system and data disks)

A benign absence of volumes yields an empty set. A failing enumeration call
raises VolumeEnumerationError so the caller can tell it apart from "nothing
plugged in".

Example:
    >>> sampler = VolumeSampler(excluded=["C:"])
    >>> sampler.sample()
    {'D:'}
"""

from __future__ import annotations

from typing import Callable, Iterable

import psutil

from sd_autocopy.logging import LoggerFactory
from sd_autocopy.storage.exceptions import VolumeEnumerationError


log = LoggerFactory.for_poll()

PATH_SEPARATORS = "\\/"


def normalize_volume_id(mountpoint: str) -> str:
    """Canonical form of a mount point: uppercase, no trailing separator."""
    return mountpoint.strip().upper().rstrip(PATH_SEPARATORS)


def is_drive_letter(volume_id: str) -> bool:
    return len(volume_id) == 2 and volume_id[0].isalpha() and volume_id[1] == ":"


def list_mountpoints() -> list[str]:
    """Return the mount point of every mounted filesystem.

    A card reader slot with no card is still listed by the OS, but with an
    empty fstype; it only becomes a volume once media is inserted.
    """
    return [
        partition.mountpoint
        for partition in psutil.disk_partitions(all=False)
        if partition.fstype and isinstance(partition.mountpoint, str)
    ]


def filter_volumes(mountpoints: Iterable[object], excluded: Iterable[str]) -> set[str]:
    """Reduce raw mount points to the candidate volume set."""
    excluded_ids = {normalize_volume_id(volume) for volume in excluded}
    volumes = set()
    for mountpoint in mountpoints:
        if not isinstance(mountpoint, str):
            continue
        volume_id = normalize_volume_id(mountpoint)
        if is_drive_letter(volume_id) and volume_id not in excluded_ids:
            volumes.add(volume_id)
    return volumes


class VolumeSampler:
    """Snapshot source for the monitor loop.

    Args:
        excluded: Volume identifiers never treated as removable targets
        enumerate_mounts: Callable returning raw mount point strings
    """

    def __init__(
        self,
        excluded: Iterable[str] = (),
        enumerate_mounts: Callable[[], Iterable[object]] = list_mountpoints,
    ) -> None:
        self.excluded = frozenset(normalize_volume_id(volume) for volume in excluded)
        self._enumerate_mounts = enumerate_mounts

    def sample(self) -> set[str]:
        """Return the current set of candidate volume identifiers.

        Raises:
            VolumeEnumerationError: If the enumeration call fails or returns
                something that is not a list of mount points
        """
        try:
            mountpoints = self._enumerate_mounts()
        except Exception as error:
            raise VolumeEnumerationError(f"{type(error).__name__}: {error}") from error
        if mountpoints is None or isinstance(mountpoints, (str, bytes)):
            raise VolumeEnumerationError(f"unexpected response {mountpoints!r}")
        try:
            volumes = filter_volumes(list(mountpoints), self.excluded)
        except TypeError as error:
            raise VolumeEnumerationError(f"unexpected response: {error}") from error
        log.trace(f"Volume snapshot: {sorted(volumes)}")
        return volumes
