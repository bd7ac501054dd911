"""Operator notifications.

Notifications are fire-and-forget observers of the copy lifecycle. Nothing
here may raise into the caller: a failed delivery is logged and dropped.

Backends:
    - Linux: notify-send
    - macOS: osascript "display notification"
    - Windows: PowerShell balloon tip via System.Windows.Forms.NotifyIcon

Commands run with argument lists, never through a shell, and are never
waited on by the caller: the process is started and a daemon thread reaps it.
On Windows the title and message reach PowerShell through environment
variables rather than being spliced into the script text.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import threading
from typing import Optional

from sd_autocopy.logging import LoggerFactory


log = LoggerFactory.for_notify()

NOTIFY_TIMEOUT_SECONDS = 10
APP_NAME = "SD Autocopy"

_WINDOWS_BALLOON_SCRIPT = (
    "Add-Type -AssemblyName System.Windows.Forms;"
    "$n = New-Object System.Windows.Forms.NotifyIcon;"
    "$n.Icon = [System.Drawing.SystemIcons]::Information;"
    "$n.BalloonTipTitle = $env:SD_AUTOCOPY_TITLE;"
    "$n.BalloonTipText = $env:SD_AUTOCOPY_MESSAGE;"
    "$n.Visible = $true;"
    "$n.ShowBalloonTip(5000);"
    "Start-Sleep -Seconds 6;"
    "$n.Dispose()"
)


class Notifier:
    """Base notifier: logs every notification."""

    def notify(self, title: str, message: str, urgent: bool = False) -> None:
        level = "WARNING" if urgent else "INFO"
        log.log(level, f"[{title}] {message}")
        try:
            self._deliver(title, message, urgent)
        except Exception as error:
            log.warning(f"Notification delivery failed: {type(error).__name__}: {error}")

    def _deliver(self, title: str, message: str, urgent: bool) -> None:
        return None


class LogNotifier(Notifier):
    """Notifier that only writes to the log."""


class DesktopNotifier(Notifier):
    """Native desktop notifications for the current platform."""

    def __init__(self, platform: Optional[str] = None) -> None:
        self.platform = platform or sys.platform

    def build_command(
        self, title: str, message: str, urgent: bool
    ) -> Optional[list[str]]:
        if self.platform.startswith("linux"):
            exe = shutil.which("notify-send")
            if not exe:
                return None
            urgency = "critical" if urgent else "normal"
            return [exe, "-a", APP_NAME, "-u", urgency, title, message]
        if self.platform == "darwin":
            exe = shutil.which("osascript")
            if not exe:
                return None
            script = (
                f"display notification {_applescript_quote(message)} "
                f"with title {_applescript_quote(title)}"
            )
            if urgent:
                script += ' sound name "Basso"'
            return [exe, "-e", script]
        if self.platform.startswith("win"):
            exe = shutil.which("powershell")
            if not exe:
                return None
            return [exe, "-NoProfile", "-NonInteractive", "-Command", _WINDOWS_BALLOON_SCRIPT]
        return None

    def _deliver(self, title: str, message: str, urgent: bool) -> None:
        command = self.build_command(title, message, urgent)
        if command is None:
            log.debug(f"No desktop notification backend for {self.platform}")
            return
        env = None
        if self.platform.startswith("win"):
            env = dict(os.environ, SD_AUTOCOPY_TITLE=title, SD_AUTOCOPY_MESSAGE=message)
        process = subprocess.Popen(
            command,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
        )
        threading.Thread(
            target=self._reap, args=(process,), name="notify-reaper", daemon=True
        ).start()

    def _reap(self, process: subprocess.Popen) -> None:
        """Wait for a notification command and log a non-zero exit."""
        try:
            _stdout, stderr = process.communicate(timeout=NOTIFY_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            log.warning(
                f"Notification command killed after {NOTIFY_TIMEOUT_SECONDS}s"
            )
            return
        if process.returncode != 0:
            log.warning(
                f"Notification command exited with {process.returncode}: "
                f"{(stderr or '').strip()}"
            )


def _applescript_quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_notifier(enabled: bool) -> Notifier:
    return DesktopNotifier() if enabled else LogNotifier()
