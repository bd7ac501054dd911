from __future__ import annotations

from typing import AbstractSet

from sd_autocopy.domain.models import VolumeEvents


def diff_volumes(previous: AbstractSet[str], current: AbstractSet[str]) -> VolumeEvents:
    """Insertions and removals going from previous to current."""
    return VolumeEvents(
        inserted=frozenset(current - previous),
        removed=frozenset(previous - current),
    )
