"""Settings storage for application configuration."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from sd_autocopy.storage.exceptions import ConfigurationError


SETTINGS_PATH = Path(
    os.environ.get(
        "SD_AUTOCOPY_SETTINGS_PATH",
        Path.home() / ".config" / "sd-autocopy" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_POLLING_INTERVAL_MS = 5000
DEFAULT_EXCLUDED_VOLUMES = ["C:", "E:"]
DEFAULT_DESTINATION_FOLDER_NAME = "AUTOCOPY"
DEFAULT_SOURCE_FOLDER = str(Path.home() / "files_to_copy")
COUNTER_FILENAME = "autocopy_count.txt"

DEFAULT_SETTINGS: dict[str, Any] = {
    "source_folder": DEFAULT_SOURCE_FOLDER,
    "polling_interval_ms": DEFAULT_POLLING_INTERVAL_MS,
    "excluded_volumes": list(DEFAULT_EXCLUDED_VOLUMES),
    "destination_folder_name": DEFAULT_DESTINATION_FOLDER_NAME,
    "counter_path": None,
    "notifications_enabled": True,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    if not SETTINGS_PATH.exists():
        return
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def default_counter_path() -> Path:
    """Counter file location next to the running entry point."""
    entry_point = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if not entry_point:
        return Path.cwd() / COUNTER_FILENAME
    return Path(entry_point).resolve().parent / COUNTER_FILENAME


@dataclass(frozen=True)
class AutocopyConfig:
    """Startup configuration, fixed for the lifetime of the process."""

    source_folder: Path
    polling_interval_ms: int
    excluded_volumes: tuple[str, ...]
    destination_folder_name: str
    counter_path: Path
    notifications_enabled: bool = True

    @property
    def polling_interval_seconds(self) -> float:
        return self.polling_interval_ms / 1000


def _coerce_interval(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid polling interval: {value!r}")
    try:
        interval = int(value)
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f"Invalid polling interval: {value!r}") from error
    if interval <= 0:
        raise ConfigurationError(f"Polling interval must be positive: {interval}")
    return interval


def _coerce_volumes(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        raise ConfigurationError(f"Invalid excluded volume list: {value!r}")
    return tuple(str(item) for item in value)


def load_config(overrides: Optional[dict[str, Any]] = None) -> AutocopyConfig:
    """Build an AutocopyConfig from stored settings plus CLI overrides.

    Overrides whose value is None are ignored so argparse defaults do not
    clobber the settings file.

    Raises:
        ConfigurationError: If a value cannot be used
    """
    values = dict(DEFAULT_SETTINGS)
    values.update(settings_store.values)
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    destination_name = str(values.get("destination_folder_name") or "").strip()
    if not destination_name:
        raise ConfigurationError("Destination folder name must not be empty")

    source_folder = values.get("source_folder")
    if not source_folder:
        raise ConfigurationError("Source folder is not configured")

    counter_path = values.get("counter_path")
    return AutocopyConfig(
        source_folder=Path(source_folder).expanduser(),
        polling_interval_ms=_coerce_interval(values.get("polling_interval_ms")),
        excluded_volumes=_coerce_volumes(values.get("excluded_volumes")),
        destination_folder_name=destination_name,
        counter_path=(
            Path(counter_path).expanduser() if counter_path else default_counter_path()
        ),
        notifications_enabled=bool(values.get("notifications_enabled", True)),
    )


load_settings()
