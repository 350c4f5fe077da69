"""Output selection over a fresh registry snapshot."""

from __future__ import annotations

from .errors import NoDeviceAvailable, UnsupportedDevice
from .exclusion import ExclusionPolicy
from .registry import Device, DeviceIdentity, DeviceRegistry


class OutputSelector:
    """Pick the output device. Pure apart from the registry query.

    The registry is queried on every call, so a device attached between two
    calls can change the result.
    """

    def __init__(self, registry: DeviceRegistry, policy: ExclusionPolicy) -> None:
        self.registry = registry
        self.policy = policy

    def _candidates(self) -> list[Device]:
        return [d for d in self.registry.devices() if not self.policy.excludes(d)]

    def select_by_identity(self, identity: DeviceIdentity) -> Device:
        for device in self._candidates():
            if device.identity == identity:
                return device
        raise UnsupportedDevice(f"no usable device with identity {identity}")

    def select_failsafe(self) -> Device:
        """First non-excluded device in enumeration order (first found, not best)."""
        candidates = self._candidates()
        if not candidates:
            raise NoDeviceAvailable("no non-excluded output device is attached")
        return candidates[0]

    def resolve_output_name(self, output_name: str) -> Device:
        for device in self._candidates():
            if device.output_name == output_name:
                return device
        raise UnsupportedDevice(f"output {output_name!r} is not attached")
