"""udev rules that feed hotplug notifications into the daemon's FIFO."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Optional

from .registry import DeviceIdentity

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path("/etc/udev/rules.d/99-dac-hotplug.rules")


def _echo_to_fifo(message: str, fifo_path: Path) -> str:
    return f"RUN+=\"/bin/sh -c 'echo {message} > {fifo_path}'\""


def render_rules(identity: Optional[DeviceIdentity], fifo_path: Path) -> str:
    """Build the rules file.

    - removal of the bound identity enqueues ``remove``
    - addition of any USB sound card enqueues ``add <vendor>:<product>``
    """
    lines = [
        "# Managed by dac-hotplug; rewritten on every rebind",
        f"# Updated at {time.strftime('%Y-%m-%d %H:%M:%S')}",
    ]
    if identity is not None:
        lines.append(
            'ACTION=="remove", SUBSYSTEM=="sound", KERNEL=="card*", '
            f'ENV{{ID_VENDOR_ID}}=="{identity.vendor_id}", '
            f'ENV{{ID_MODEL_ID}}=="{identity.product_id}", '
            + _echo_to_fifo("remove", fifo_path)
        )
    lines.append(
        'ACTION=="add", SUBSYSTEM=="sound", KERNEL=="card*", '
        'ENV{ID_BUS}=="usb", '
        + _echo_to_fifo("add $env{ID_VENDOR_ID}:$env{ID_MODEL_ID}", fifo_path)
    )
    return "\n".join(lines) + "\n"


class UdevRuleInstaller:
    """Write the rules file and ask udev to reload it."""

    def __init__(
        self,
        rules_path: Path = DEFAULT_RULES_PATH,
        *,
        fifo_path: Path,
        reload_timeout_sec: float = 10.0,
    ) -> None:
        self.rules_path = rules_path
        self.fifo_path = fifo_path
        self.reload_timeout_sec = reload_timeout_sec

    def install(self, identity: Optional[DeviceIdentity]) -> None:
        content = render_rules(identity, self.fifo_path)
        self.rules_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.rules_path.with_name(self.rules_path.name + ".tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, self.rules_path)
        logger.info("Installed udev rules %s (remove filter: %s)", self.rules_path, identity)
        self._reload()

    def _reload(self) -> None:
        try:
            result = subprocess.run(
                ["udevadm", "control", "--reload-rules"],
                capture_output=True,
                text=True,
                timeout=self.reload_timeout_sec,
            )
        except (subprocess.SubprocessError, FileNotFoundError) as e:
            raise OSError(f"udevadm reload failed: {e}") from e
        if result.returncode != 0:
            error_msg = result.stderr.strip() or result.stdout.strip() or "unknown error"
            raise OSError(f"udevadm reload failed: {error_msg}")
