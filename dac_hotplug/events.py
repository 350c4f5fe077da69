"""Hotplug event parsing, the FIFO transport and the serial event loop."""

from __future__ import annotations

import logging
import os
import select
import stat
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from .errors import MalformedEvent
from .registry import DeviceIdentity

logger = logging.getLogger(__name__)

DEFAULT_FIFO_PATH = Path("/run/dac-hotplug/events")
MIN_EVENT_LENGTH = len("remove")
_READ_CHUNK = 4096


@dataclass(frozen=True)
class DeviceRemoved:
    """The bound device went away (udev only reports removal of the bound identity)."""


@dataclass(frozen=True)
class DeviceAdded:
    identity: DeviceIdentity


HotplugEvent = Union[DeviceRemoved, DeviceAdded]


def parse_event(message: str) -> HotplugEvent:
    """``remove`` or ``add vvvv:pppp``."""
    text = message.strip()
    if len(text) < MIN_EVENT_LENGTH:
        raise MalformedEvent(f"message too short: {text!r}")
    verb, _, payload = text.partition(" ")
    if verb == "remove":
        return DeviceRemoved()
    if verb == "add":
        try:
            return DeviceAdded(DeviceIdentity.parse(payload))
        except ValueError as e:
            raise MalformedEvent(str(e)) from e
    raise MalformedEvent(f"unknown event: {text!r}")


class EventSource(Protocol):
    def receive(self, timeout: Optional[float] = None) -> Optional[str]: ...


class EventFifo:
    """Named pipe the udev rules write into.

    The daemon owns the pipe: ``open()`` replaces whatever is left at the path
    from a previous run. The pipe is opened read/write so the reader never
    sees EOF when the last writer (a udev helper) exits.
    """

    def __init__(self, path: Path = DEFAULT_FIFO_PATH, *, mode: int = 0o666) -> None:
        self.path = path
        self.mode = mode
        self._fd: Optional[int] = None
        self._buffer = b""

    def __enter__(self) -> "EventFifo":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists() or self.path.is_symlink():
            logger.info("Removing stale event channel %s", self.path)
            self.path.unlink()
        os.mkfifo(self.path, self.mode)
        # mkfifo honours umask
        os.chmod(self.path, self.mode)
        self._fd = os.open(self.path, os.O_RDWR | os.O_NONBLOCK)
        self._buffer = b""
        logger.info("Listening for hotplug events on %s", self.path)

    def close(self) -> None:
        if self._fd is not None:
            try:
                os.close(self._fd)
            finally:
                self._fd = None
        try:
            if stat.S_ISFIFO(os.lstat(self.path).st_mode):
                self.path.unlink()
        except OSError:
            pass

    def _pop_line(self) -> Optional[str]:
        if b"\n" not in self._buffer:
            return None
        line, self._buffer = self._buffer.split(b"\n", 1)
        return line.decode("utf-8", errors="replace").strip()

    def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Return the next message, or None when ``timeout`` expires first."""
        if self._fd is None:
            raise RuntimeError("event channel is not open")
        while True:
            line = self._pop_line()
            if line is not None:
                return line
            readable, _, _ = select.select([self._fd], [], [], timeout)
            if not readable:
                return None
            try:
                chunk = os.read(self._fd, _READ_CHUNK)
            except BlockingIOError:
                continue
            self._buffer += chunk


def run_event_loop(
    source: EventSource,
    arbiter,  # noqa: ANN001
    stop: threading.Event,
    *,
    poll_timeout: float = 1.0,
) -> None:
    """Feed messages to the arbiter one at a time until ``stop`` is set.

    A transition always runs to completion before the next receive.
    """
    while not stop.is_set():
        message = source.receive(timeout=poll_timeout)
        if message is None:
            continue
        try:
            arbiter.handle_message(message)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error while processing %r", message)
