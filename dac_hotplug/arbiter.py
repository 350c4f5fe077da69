"""Output arbitration state machine.

Owns the active output and the last confirmed-good (failsafe) output. Events
are handled one at a time; each rebind runs the full apply sequence

    service pre-step -> udev rules -> config file -> service post-step

or leaves the previous binding in place.

Restart policy:
- hard: stop ... start on every rebind
- soft (default): pause on every rebind; stop/start only when the output
  name changes, otherwise resume
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from .errors import (
    MalformedEvent,
    NoDeviceAvailable,
    ServiceControlError,
    UnsupportedDevice,
)
from .events import DeviceAdded, DeviceRemoved, HotplugEvent, parse_event
from .registry import Device, DeviceIdentity
from .selector import OutputSelector
from .service import PlaybackService

logger = logging.getLogger(__name__)


class ArbiterState(str, Enum):
    BOUND = "bound"
    UNBOUND = "unbound"


class RestartMode(str, Enum):
    SOFT = "soft"
    HARD = "hard"


class FilterInstaller(Protocol):
    def install(self, identity: Optional[DeviceIdentity]) -> None: ...


class ConfigWriter(Protocol):
    def write(self, output_name: str, sample_rates: frozenset[int]) -> None: ...


class Arbiter:
    def __init__(
        self,
        selector: OutputSelector,
        service: PlaybackService,
        filters: FilterInstaller,
        config: ConfigWriter,
        *,
        restart_mode: RestartMode = RestartMode.SOFT,
        on_change: Optional[Callable[[dict[str, Any]], None]] = None,
    ) -> None:
        self._selector = selector
        self._service = service
        self._filters = filters
        self._config = config
        self._restart_mode = RestartMode(restart_mode)
        self._on_change = on_change

        self._active: Optional[Device] = None
        self._failsafe: Optional[Device] = None
        self._rebinds = 0
        self._rejected = 0
        self._malformed = 0

    @property
    def state(self) -> ArbiterState:
        return ArbiterState.BOUND if self._active is not None else ArbiterState.UNBOUND

    @property
    def active(self) -> Optional[Device]:
        return self._active

    @property
    def failsafe(self) -> Optional[Device]:
        return self._failsafe

    @property
    def restart_mode(self) -> RestartMode:
        return self._restart_mode

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "restart_mode": self._restart_mode.value,
            "active": self._active.to_dict() if self._active else None,
            "failsafe": self._failsafe.to_dict() if self._failsafe else None,
            "rebinds": self._rebinds,
            "rejected_adds": self._rejected,
            "malformed_events": self._malformed,
        }

    def _publish(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:  # noqa: BLE001
            logger.warning("status publish failed", exc_info=True)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def start(self, recorded_output: Optional[str]) -> None:
        """Resolve the output recorded in the config file against the live registry."""
        if recorded_output:
            try:
                device = self._selector.resolve_output_name(recorded_output)
            except UnsupportedDevice:
                logger.info("Recorded output %s is not available", recorded_output)
            else:
                try:
                    self._filters.install(device.identity)
                except OSError as e:
                    logger.error("Cannot install udev rules for %s: %s", device.output_name, e)
                self._active = device
                self._failsafe = device
                logger.info("Bound to recorded output %s (%s)", device.output_name, device.identity)
                self._publish()
                return
        self.device_removed()

    def handle_message(self, message: str) -> None:
        try:
            event = parse_event(message)
        except MalformedEvent as e:
            self._malformed += 1
            logger.debug("Discarding event: %s", e)
            return
        self.handle(event)

    def handle(self, event: HotplugEvent) -> None:
        if isinstance(event, DeviceRemoved):
            self.device_removed()
        elif isinstance(event, DeviceAdded):
            self.device_added(event.identity)
        else:
            raise TypeError(f"unexpected event: {event!r}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def device_removed(self) -> None:
        logger.info("Output removed or unresolved; looking for a failsafe device")
        try:
            candidate = self._selector.select_failsafe()
        except NoDeviceAvailable:
            logger.warning("No device available")
            self._active = None
            self._publish()
            return
        if not self._rebind(candidate):
            # Nothing usable is bound any more; never keep pointing at a vanished device.
            self._active = None
        self._publish()

    def device_added(self, identity: DeviceIdentity) -> None:
        logger.info("Device added: %s", identity)
        try:
            candidate = self._selector.select_by_identity(identity)
        except UnsupportedDevice:
            self._rejected += 1
            logger.warning("Device not supported: %s", identity)
            self._publish()
            return
        self._rebind(candidate)
        self._publish()

    # ------------------------------------------------------------------
    # Apply sequence
    # ------------------------------------------------------------------

    def _service_call(self, action: str) -> None:
        try:
            getattr(self._service, action)()
        except ServiceControlError as e:
            logger.error("Playback service %s failed: %s", action, e)

    def _rebind(self, candidate: Device) -> bool:
        previous = self._active
        previous_name = previous.output_name if previous else None
        if self._restart_mode is RestartMode.HARD:
            restart = True
            pre = ["stop"]
        else:
            restart = candidate.output_name != previous_name
            pre = ["pause", "stop"] if restart else ["pause"]

        logger.info(
            "Rebinding %s -> %s (%s, %s)",
            previous_name or "<none>",
            candidate.output_name,
            self._restart_mode.value,
            "restart" if restart else "resume",
        )

        for action in pre:
            self._service_call(action)

        try:
            self._filters.install(candidate.identity)
            self._config.write(candidate.output_name, candidate.sample_rates)
        except (OSError, ValueError) as e:
            logger.error("Rebind to %s failed: %s", candidate.output_name, e)
            self._roll_back(previous, restarted=restart)
            return False

        self._service_call("start" if restart else "resume")
        self._active = candidate
        self._failsafe = candidate
        self._rebinds += 1
        logger.info("Bound to %s (%s)", candidate.output_name, candidate.identity)
        return True

    def _is_attached(self, device: Device) -> bool:
        try:
            self._selector.resolve_output_name(device.output_name)
        except UnsupportedDevice:
            return False
        return True

    def _roll_back(self, previous: Optional[Device], *, restarted: bool) -> None:
        if previous is not None and not self._is_attached(previous):
            logger.warning("Previous output %s is gone as well", previous.output_name)
            previous = None
            self._active = None
        try:
            self._filters.install(previous.identity if previous else None)
        except OSError as e:
            logger.error("Cannot restore udev rules: %s", e)
        if previous is None:
            return
        self._service_call("start" if restarted else "resume")
