"""Error kinds raised inside the hotplug daemon.

None of these are fatal to the process: the arbiter catches them, logs, and
goes back to waiting for the next event.
"""

from __future__ import annotations


class HotplugError(Exception):
    """Base class for daemon errors."""


class NoDeviceAvailable(HotplugError):
    """No non-excluded output device could be enumerated."""


class UnsupportedDevice(HotplugError):
    """An identity or output name does not resolve to a usable device."""


class MalformedEvent(HotplugError):
    """A transport message could not be parsed."""


class ServiceControlError(HotplugError):
    """A playback service control call failed."""

    def __init__(self, message: str, action: str = "", unit: str = "") -> None:
        super().__init__(message)
        self.action = action
        self.unit = unit
