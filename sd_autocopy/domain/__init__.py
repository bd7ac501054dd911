"""Domain models for removable-volume autocopy."""

from __future__ import annotations

from .models import CopyOutcome, CopyResult, VolumeEvents


__all__ = [
    "CopyOutcome",
    "CopyResult",
    "VolumeEvents",
]
