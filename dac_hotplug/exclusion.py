"""Device-name exclusion list (blacklist)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from .registry import Device

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\n,;]")


class ExclusionPolicy:
    """Static set of name fragments that must never be auto-selected.

    Matching is loose on purpose: a name is excluded when it contains a
    fragment or is itself contained in one. A short fragment such as "USB"
    therefore excludes every card whose name mentions USB.
    """

    def __init__(self, fragments: Iterable[str] = ()) -> None:
        cleaned = (fragment.strip() for fragment in fragments)
        self._fragments: tuple[str, ...] = tuple(
            dict.fromkeys(fragment for fragment in cleaned if fragment)
        )

    @property
    def fragments(self) -> tuple[str, ...]:
        return self._fragments

    @classmethod
    def parse(cls, text: str) -> "ExclusionPolicy":
        fragments = []
        for line in text.splitlines():
            line = line.split("#", 1)[0]
            fragments.extend(_SEPARATORS.split(line))
        return cls(fragments)

    @classmethod
    def load(cls, path: Path | None) -> "ExclusionPolicy":
        """Read the exclusion file once. A missing file means nothing is excluded."""
        if path is None or not path.exists():
            return cls()
        try:
            text = path.read_text(encoding="utf-8", errors="surrogateescape")
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read exclusion list %s: %s", path, exc)
            return cls()
        policy = cls.parse(text)
        logger.info("Loaded %d exclusion entries from %s", len(policy), path)
        return policy

    def is_excluded(self, name: str) -> bool:
        if not name:
            return False
        return any(
            fragment in name or name in fragment for fragment in self._fragments
        )

    def excludes(self, device: Device) -> bool:
        return self.is_excluded(device.short_name) or self.is_excluded(
            device.long_name
        )

    def __len__(self) -> int:
        return len(self._fragments)
