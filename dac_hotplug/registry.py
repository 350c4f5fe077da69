"""USB audio device registry backed by ALSA's /proc/asound tree."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = Path("/proc/asound")

# " 1 [DAC            ]: USB-Audio - Topping USB Audio DAC"
_CARD_LINE = re.compile(r"^\s*(?P<index>\d+)\s+\[(?P<id>[^\]\s]+)\s*\]:\s*(?P<rest>.*)$")
_IDENTITY = re.compile(r"^(?P<vendor>[0-9a-fA-F]{4}):(?P<product>[0-9a-fA-F]{4})$")


@dataclass(frozen=True)
class DeviceIdentity:
    """USB vendor/product pair, lowercase hex."""

    vendor_id: str
    product_id: str

    @classmethod
    def parse(cls, text: str) -> "DeviceIdentity":
        match = _IDENTITY.match(text.strip())
        if not match:
            raise ValueError(f"invalid device identity: {text!r}")
        return cls(match.group("vendor").lower(), match.group("product").lower())

    def __str__(self) -> str:
        return f"{self.vendor_id}:{self.product_id}"


@dataclass(frozen=True)
class Device:
    """One enumerated output device. Never mutated after a registry query."""

    short_name: str
    long_name: str
    identity: DeviceIdentity
    output_name: str
    sample_rates: frozenset[int]

    def to_dict(self) -> dict:
        return {
            "short_name": self.short_name,
            "long_name": self.long_name,
            "identity": str(self.identity),
            "output_name": self.output_name,
            "sample_rates": sorted(self.sample_rates),
        }


class DeviceRegistry(Protocol):
    def devices(self) -> list[Device]: ...


@dataclass(frozen=True)
class CardEntry:
    index: int
    card_id: str
    long_name: str


def parse_cards(text: str) -> list[CardEntry]:
    """Parse /proc/asound/cards, keeping card order.

    Continuation lines (indented descriptions) are ignored.
    """
    cards: list[CardEntry] = []
    for line in text.splitlines():
        match = _CARD_LINE.match(line)
        if not match:
            continue
        rest = match.group("rest")
        # "<driver> - <long name>"
        _, sep, long_name = rest.partition(" - ")
        cards.append(
            CardEntry(
                index=int(match.group("index")),
                card_id=match.group("id"),
                long_name=(long_name if sep else rest).strip(),
            )
        )
    return cards


def parse_playback_rates(text: str) -> set[int]:
    """Collect rates listed under the Playback section of a stream file.

    Format:
      Playback:
        Status: ...
        Interface N
          Altset M
          Rates: 44100, 48000, ...
      Capture:
        ...
    """
    rates: set[int] = set()
    in_playback = False
    for line in text.split("\n"):
        stripped = line.strip()
        # Section headers start at column 0
        if line and not line[0].isspace():
            if stripped.startswith("Playback:"):
                in_playback = True
                continue
            if stripped.startswith("Capture:"):
                in_playback = False
                continue
        if not in_playback:
            continue
        if stripped.startswith("Rates:"):
            for part in stripped[6:].split(","):
                part = part.strip()
                if part.isdigit():
                    rates.add(int(part))
    return rates


def output_name_for(card_id: str) -> str:
    return f"hw:CARD={card_id},DEV=0"


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return None


class AlsaRegistry:
    """Enumerate USB playback devices from /proc/asound.

    Every call re-reads the proc tree; nothing is cached.
    """

    def __init__(self, proc_root: Path = DEFAULT_PROC_ROOT) -> None:
        self.proc_root = Path(proc_root)

    def devices(self) -> list[Device]:
        text = _read_text(self.proc_root / "cards")
        if text is None:
            logger.warning("Cannot read %s", self.proc_root / "cards")
            return []
        return list(self._iter_devices(parse_cards(text)))

    def _iter_devices(self, cards: Iterable[CardEntry]) -> Iterable[Device]:
        for card in cards:
            device = self._probe_card(card)
            if device is not None:
                yield device

    def _probe_card(self, card: CardEntry) -> Device | None:
        card_dir = self.proc_root / f"card{card.index}"
        usbid = _read_text(card_dir / "usbid")
        if usbid is None:
            # Not a USB card (onboard codec, HDMI, I2S)
            return None
        try:
            identity = DeviceIdentity.parse(usbid)
        except ValueError:
            logger.debug("card%d: unparsable usbid %r", card.index, usbid)
            return None

        stream = _read_text(card_dir / "stream0")
        rates = parse_playback_rates(stream) if stream else set()
        if not rates:
            logger.debug("card%d (%s): no playback stream", card.index, card.card_id)
            return None

        return Device(
            short_name=card.card_id,
            long_name=card.long_name,
            identity=identity,
            output_name=output_name_for(card.card_id),
            sample_rates=frozenset(rates),
        )
