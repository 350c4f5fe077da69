"""In-place editing of the playback service's key=value config file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


def format_rates(sample_rates: Iterable[int]) -> str:
    return ",".join(str(rate) for rate in sorted(set(sample_rates)))


def _split_assignment(line: str) -> tuple[str, str] | None:
    raw = line.strip()
    if not raw or raw.startswith("#") or "=" not in raw:
        return None
    key, value = raw.split("=", 1)
    return key.strip(), value.strip()


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def rewrite_keys(text: str, updates: dict[str, str]) -> str:
    """Replace the given keys, keeping every other line as it was.

    Keys that are not present yet are appended at the end.
    """
    pending = dict(updates)
    lines: list[str] = []
    for line in text.splitlines():
        parsed = _split_assignment(line)
        if parsed is not None and parsed[0] in updates:
            key = parsed[0]
            lines.append(f"{key}={updates[key]}")
            pending.pop(key, None)
            continue
        lines.append(line)
    for key, value in pending.items():
        lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


class EnvConfigFile:
    """Output device and sample rates as two keys of an env-style file."""

    def __init__(self, path: Path, *, output_key: str, rates_key: str) -> None:
        self.path = path
        self.output_key = output_key
        self.rates_key = rates_key

    def _read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8", errors="surrogateescape")

    def read_output(self) -> Optional[str]:
        try:
            text = self._read()
        except (OSError, ValueError) as e:
            logger.warning("Cannot read %s: %s", self.path, e)
            return None
        for line in text.splitlines():
            parsed = _split_assignment(line)
            if parsed is not None and parsed[0] == self.output_key:
                return _unquote(parsed[1]) or None
        return None

    def write(self, output_name: str, sample_rates: Iterable[int]) -> None:
        content = rewrite_keys(
            self._read(),
            {self.output_key: output_name, self.rates_key: format_rates(sample_rates)},
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(content, encoding="utf-8", errors="surrogateescape")
        os.replace(tmp, self.path)
        logger.info("Wrote %s=%s to %s", self.output_key, output_name, self.path)
