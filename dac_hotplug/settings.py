"""Daemon settings: DAC_HOTPLUG_* environment variables, overridden by CLI flags."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .events import DEFAULT_FIFO_PATH
from .registry import DEFAULT_PROC_ROOT
from .udev_rules import DEFAULT_RULES_PATH

_DEFAULT_CONFIG_PATH = Path("/etc/default/audio-player")
_DEFAULT_OUTPUT_KEY = "AUDIO_OUTPUT_DEVICE"
_DEFAULT_RATES_KEY = "AUDIO_OUTPUT_RATES"
_DEFAULT_EXCLUSION_PATH = Path("/etc/dac-hotplug/blacklist")
_DEFAULT_SERVICE_UNIT = "audio-player.service"
_DEFAULT_RESTART_MODE = "soft"
_DEFAULT_STOP_TIMEOUT_SEC = 5.0
_DEFAULT_STATUS_POLL_MS = 500


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path | None) -> Path | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    if not raw:
        return None
    return Path(raw)


class DaemonSettings(BaseModel):
    config_path: Path
    output_key: str = Field(min_length=1)
    rates_key: str = Field(min_length=1)
    exclusion_path: Optional[Path] = None
    rules_path: Path
    fifo_path: Path
    service_unit: str = Field(min_length=1)
    pid_file: Optional[Path] = None
    restart_mode: Literal["soft", "hard"] = "soft"
    stop_timeout_sec: float = Field(gt=0)
    proc_root: Path
    status_endpoint: Optional[str] = None
    status_poll_ms: int = Field(ge=1)


def settings_from_env() -> dict:
    """Field values taken from the environment (or built-in defaults)."""
    return {
        "config_path": _env_path("DAC_HOTPLUG_CONFIG_PATH", _DEFAULT_CONFIG_PATH),
        "output_key": _env_str("DAC_HOTPLUG_OUTPUT_KEY", _DEFAULT_OUTPUT_KEY),
        "rates_key": _env_str("DAC_HOTPLUG_RATES_KEY", _DEFAULT_RATES_KEY),
        "exclusion_path": _env_path(
            "DAC_HOTPLUG_EXCLUSION_PATH", _DEFAULT_EXCLUSION_PATH
        ),
        "rules_path": _env_path("DAC_HOTPLUG_RULES_PATH", DEFAULT_RULES_PATH),
        "fifo_path": _env_path("DAC_HOTPLUG_FIFO_PATH", DEFAULT_FIFO_PATH),
        "service_unit": _env_str("DAC_HOTPLUG_SERVICE_UNIT", _DEFAULT_SERVICE_UNIT),
        "pid_file": _env_path("DAC_HOTPLUG_PID_FILE", None),
        "restart_mode": _env_str("DAC_HOTPLUG_RESTART_MODE", _DEFAULT_RESTART_MODE)
        .strip()
        .lower(),
        "stop_timeout_sec": _env_float(
            "DAC_HOTPLUG_STOP_TIMEOUT_SEC", _DEFAULT_STOP_TIMEOUT_SEC
        ),
        "proc_root": _env_path("DAC_HOTPLUG_PROC_ROOT", DEFAULT_PROC_ROOT),
        "status_endpoint": _env_str("DAC_HOTPLUG_STATUS_ENDPOINT", "").strip() or None,
        "status_poll_ms": _env_int(
            "DAC_HOTPLUG_STATUS_POLL_MS", _DEFAULT_STATUS_POLL_MS
        ),
    }


def load_settings(overrides: Optional[dict] = None) -> DaemonSettings:
    """Merge CLI overrides (None values ignored) over the environment.

    Raises pydantic.ValidationError on invalid values.
    """
    data = settings_from_env()
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    return DaemonSettings(**data)
