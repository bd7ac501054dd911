from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "SD_AUTOCOPY_LOG_DIR",
        Path.home() / ".local" / "state" / "sd-autocopy" / "logs",
    )
)


def _should_log_poll(record) -> bool:
    """Filter per-tick polling logs - only show in TRACE mode."""
    tags = record["extra"].get("tags", [])

    # Always log warnings and errors, even from the poll loop
    if record["level"].no >= logger.level("WARNING").no:
        return True

    if "poll" in tags:
        return record["level"].no <= logger.level("TRACE").no

    return True


def _combined_filter(record) -> bool:
    """Combined filter for all log suppression rules."""
    return _should_log_poll(record)


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup multi-tier logging with separate sinks for different log levels.

    Logging Tiers:
    - CRITICAL/ERROR: Startup failures, copy failures, persistence failures
    - SUCCESS/INFO: Insertions, removals, copy outcomes, counter updates
    - DEBUG: Snapshots, notification delivery, directory checks
    - TRACE: Every poll tick

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug is enabled (3 day retention)
    - structured.jsonl: Structured JSON logs for analysis (7 day retention)

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Custom log directory (defaults to ~/.local/state/sd-autocopy/logs)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr) - User-facing, filtered
    logger.add(
        sys.stderr,
        level=console_level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        filter=_combined_filter,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <10}</cyan> | "
            "<blue>{extra[job_id]: <15}</blue> | "
            "{message}"
        ),
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log - Important events only (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <15} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log - Detailed diagnostics (DEBUG+ when debug=True)
    if debug or trace:
        logger.add(
            log_dir / "debug.log",
            level="TRACE" if trace else "DEBUG",
            rotation="10 MB",
            retention="3 days",
            compression="zip",
            enqueue=True,
            backtrace=True,
            diagnose=True,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <10} | "
                "{extra[job_id]: <15} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    # SINK 4: Structured JSON Log - For analysis tools (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        serialize=True,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["copy", "volume"])
        source: Source component (e.g., "copy", "monitor")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking long-running operations with automatic timing.

    Logs operation start, completion, and failure with duration tracking.

    Args:
        operation: Operation name (e.g., "copy")
        **details: Operation-specific details to log

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("copy", volume="D:") as log:
            log.debug("Ensuring destination folder")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed", duration_seconds=round(duration, 2)
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source and tags for the component.
    """

    @staticmethod
    def for_monitor() -> Logger:
        """Logger for the volume polling loop."""
        return logger.bind(source="monitor", tags=["monitor", "volume"])

    @staticmethod
    def for_poll() -> Logger:
        """Logger for per-tick sampling chatter."""
        return logger.bind(source="monitor", tags=["monitor", "poll"])

    @staticmethod
    def for_copy(job_id: str | None = None) -> Logger:
        """Logger for copy operations."""
        if job_id is None:
            job_id = f"copy-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source="copy", tags=["copy", "storage"])

    @staticmethod
    def for_counter() -> Logger:
        """Logger for the persisted copy counter."""
        return logger.bind(source="counter", tags=["counter", "storage"])

    @staticmethod
    def for_notify() -> Logger:
        """Logger for operator notifications."""
        return logger.bind(source="notify", tags=["notify"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, shutdown, config)."""
        return logger.bind(source="system", tags=["system"])


class EventLogger:
    """
    Structured event logger using standardized schemas.

    Provides methods for logging common events with consistent structure
    and fields.
    """

    @staticmethod
    def log_volume_hotplug(log: Logger, action: str, volume: str, **extra) -> None:
        """Log volume insertion or removal."""
        log.info(
            f"Volume {action}: {volume}",
            event_type="volume_hotplug",
            action=action,  # "inserted" or "removed"
            volume=volume,
            **extra,
        )

    @staticmethod
    def log_copy_outcome(
        log: Logger, volume: str, outcome: str, destination: str, **extra
    ) -> None:
        """Log the final outcome of a copy attempt."""
        log.info(
            f"Copy {outcome} for {volume}",
            event_type="copy_outcome",
            volume=volume,
            outcome=outcome,
            destination=destination,
            **extra,
        )
