"""Playback service control via systemd."""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path
from typing import Optional, Protocol

from .errors import ServiceControlError

logger = logging.getLogger(__name__)

_STOP_POLL_INTERVAL_SEC = 0.1


class PlaybackService(Protocol):
    def stop(self) -> None: ...

    def start(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class SystemdPlaybackService:
    """Drive the playback unit with systemctl.

    pause/resume freeze the unit's processes with SIGSTOP/SIGCONT ("soft-kill")
    so the output device can be swapped underneath without a full restart.
    """

    def __init__(
        self,
        unit: str,
        *,
        stop_timeout_sec: float = 5.0,
        pid_file: Optional[Path] = None,
        command_timeout_sec: float = 10.0,
    ) -> None:
        self.unit = unit
        self.stop_timeout_sec = stop_timeout_sec
        self.pid_file = pid_file
        self.command_timeout_sec = command_timeout_sec

    def _systemctl(self, action: str, *args: str) -> subprocess.CompletedProcess:
        cmd = ["systemctl", action, *args, self.unit]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.command_timeout_sec,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise ServiceControlError(
                f"systemctl {action} {self.unit} failed: {e}",
                action=action,
                unit=self.unit,
            ) from e
        if result.returncode != 0:
            error_msg = result.stderr.strip() or result.stdout.strip() or "unknown error"
            raise ServiceControlError(
                f"systemctl {action} {self.unit} failed: {error_msg}",
                action=action,
                unit=self.unit,
            )
        return result

    def is_active(self) -> bool:
        try:
            result = subprocess.run(
                ["systemctl", "is-active", "--quiet", self.unit],
                timeout=2,
            )
            return result.returncode == 0
        except (subprocess.SubprocessError, OSError):
            return False

    def _wait_inactive(self) -> bool:
        deadline = time.monotonic() + self.stop_timeout_sec
        while True:
            if not self.is_active():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(_STOP_POLL_INTERVAL_SEC)

    def stop(self) -> None:
        logger.info("Stopping %s", self.unit)
        stop_error: Optional[ServiceControlError] = None
        try:
            self._systemctl("stop", "--no-block")
        except ServiceControlError as e:
            stop_error = e
        try:
            if not self._wait_inactive():
                logger.warning(
                    "%s still active after %.1fs, sending SIGKILL",
                    self.unit,
                    self.stop_timeout_sec,
                )
                self._systemctl("kill", "--signal=SIGKILL")
        except ServiceControlError as e:
            if stop_error is None:
                raise
            logger.error("%s", e)
        finally:
            self._remove_stale_pid_file()
        if stop_error is not None:
            raise stop_error

    def start(self) -> None:
        logger.info("Starting %s", self.unit)
        self._systemctl("start")

    def pause(self) -> None:
        if not self.is_active():
            logger.debug("%s not active, nothing to pause", self.unit)
            return
        logger.info("Pausing %s", self.unit)
        self._systemctl("kill", "--signal=SIGSTOP")

    def resume(self) -> None:
        if not self.is_active():
            logger.debug("%s not active, nothing to resume", self.unit)
            return
        logger.info("Resuming %s", self.unit)
        self._systemctl("kill", "--signal=SIGCONT")

    def _remove_stale_pid_file(self) -> None:
        if self.pid_file is None:
            return
        try:
            self.pid_file.unlink()
            logger.debug("Removed stale pid file %s", self.pid_file)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Cannot remove pid file %s: %s", self.pid_file, e)
