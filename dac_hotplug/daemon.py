"""dac-hotplug entry point: wire the collaborators and run the event loop."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

import zmq
from pydantic import ValidationError

from .arbiter import Arbiter, RestartMode
from .config_file import EnvConfigFile
from .errors import UnsupportedDevice
from .events import EventFifo, run_event_loop
from .exclusion import ExclusionPolicy
from .registry import AlsaRegistry
from .selector import OutputSelector
from .service import SystemdPlaybackService
from .settings import DaemonSettings, load_settings
from .status_bridge import ArbiterStatusStore, StatusResponder
from .udev_rules import UdevRuleInstaller, render_rules

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="USB DAC hotplug arbitration daemon")
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="key=value config file of the playback service",
    )
    parser.add_argument("--output-key", default=None)
    parser.add_argument("--rates-key", default=None)
    parser.add_argument(
        "--exclusion-list",
        dest="exclusion_path",
        type=Path,
        default=None,
        help="file with device-name fragments that are never selected",
    )
    parser.add_argument(
        "--rules",
        dest="rules_path",
        type=Path,
        default=None,
        help="udev rules file managed by the daemon",
    )
    parser.add_argument(
        "--fifo",
        dest="fifo_path",
        type=Path,
        default=None,
        help="event FIFO written by the udev rules",
    )
    parser.add_argument(
        "--service",
        dest="service_unit",
        default=None,
        help="systemd unit of the playback service",
    )
    parser.add_argument(
        "--pid-file",
        type=Path,
        default=None,
        help="stale pid file to remove after stopping the service",
    )
    parser.add_argument("--restart-mode", choices=["soft", "hard"], default=None)
    parser.add_argument(
        "--stop-timeout", dest="stop_timeout_sec", type=float, default=None
    )
    parser.add_argument("--proc-root", type=Path, default=None)
    parser.add_argument(
        "--status-endpoint",
        default=None,
        help="ZeroMQ REP endpoint for STATUS queries (disabled when empty)",
    )
    parser.add_argument(
        "--print-rules",
        action="store_true",
        help="print the udev rules for the recorded output and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict:
    fields = DaemonSettings.model_fields.keys()
    return {key: value for key, value in vars(args).items() if key in fields}


def build_arbiter(
    settings: DaemonSettings, *, on_change=None  # noqa: ANN001
) -> tuple[Arbiter, EnvConfigFile]:
    policy = ExclusionPolicy.load(settings.exclusion_path)
    selector = OutputSelector(AlsaRegistry(settings.proc_root), policy)
    service = SystemdPlaybackService(
        settings.service_unit,
        stop_timeout_sec=settings.stop_timeout_sec,
        pid_file=settings.pid_file,
    )
    filters = UdevRuleInstaller(settings.rules_path, fifo_path=settings.fifo_path)
    config = EnvConfigFile(
        settings.config_path,
        output_key=settings.output_key,
        rates_key=settings.rates_key,
    )
    arbiter = Arbiter(
        selector,
        service,
        filters,
        config,
        restart_mode=RestartMode(settings.restart_mode),
        on_change=on_change,
    )
    return arbiter, config


def _print_rules(settings: DaemonSettings) -> int:
    policy = ExclusionPolicy.load(settings.exclusion_path)
    selector = OutputSelector(AlsaRegistry(settings.proc_root), policy)
    config = EnvConfigFile(
        settings.config_path,
        output_key=settings.output_key,
        rates_key=settings.rates_key,
    )
    identity = None
    recorded = config.read_output()
    if recorded:
        try:
            identity = selector.resolve_output_name(recorded).identity
        except UnsupportedDevice:
            logger.info("Recorded output %s is not attached", recorded)
    print(render_rules(identity, settings.fifo_path), end="")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    try:
        settings = load_settings(_overrides(args))
    except ValidationError as e:
        logger.error("Invalid settings: %s", e)
        return 2

    if args.print_rules:
        return _print_rules(settings)

    store = ArbiterStatusStore()
    arbiter, config = build_arbiter(settings, on_change=store.update)

    stop = threading.Event()

    def _handle_signal(signum, frame):  # noqa: ANN001
        _ = frame
        logger.info("Received signal %d, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    status_thread = None
    if settings.status_endpoint:
        responder = StatusResponder(
            store, settings.status_endpoint, poll_ms=settings.status_poll_ms
        )
        try:
            responder.bind()
        except zmq.ZMQError as e:
            logger.error(
                "Status endpoint %s unavailable: %s", settings.status_endpoint, e
            )
        else:
            status_thread = responder.serve_in_background(stop)

    logger.info(
        "dac-hotplug start service=%s mode=%s config=%s fifo=%s",
        settings.service_unit,
        settings.restart_mode,
        settings.config_path,
        settings.fifo_path,
    )

    fifo = EventFifo(settings.fifo_path)
    try:
        try:
            fifo.open()
        except OSError as e:
            logger.error("Cannot create event channel %s: %s", settings.fifo_path, e)
            return 1
        # FIFO first, so udev events raised during startup are not lost
        arbiter.start(config.read_output())
        run_event_loop(fifo, arbiter, stop)
    finally:
        stop.set()
        fifo.close()
        if status_thread is not None:
            status_thread.join(timeout=settings.status_poll_ms / 1000 + 1.0)
        logger.info("dac-hotplug stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
