from __future__ import annotations

from pathlib import Path

from dac_hotplug.exclusion import ExclusionPolicy
from dac_hotplug.registry import Device, DeviceIdentity


def _device(short: str, long: str = "") -> Device:
    return Device(
        short_name=short,
        long_name=long,
        identity=DeviceIdentity("0001", "0002"),
        output_name=f"hw:CARD={short},DEV=0",
        sample_rates=frozenset({48000}),
    )


def test_fragment_contained_in_name_is_excluded() -> None:
    policy = ExclusionPolicy(["Dongle"])
    assert policy.is_excluded("AppleDongle2")


def test_name_contained_in_fragment_is_excluded() -> None:
    policy = ExclusionPolicy(["Headset-Pro"])
    assert policy.is_excluded("Headset")


def test_unrelated_name_is_not_excluded() -> None:
    policy = ExclusionPolicy(["Dongle"])
    assert not policy.is_excluded("DAC")
    assert not policy.is_excluded("")


def test_excludes_checks_long_name_too() -> None:
    policy = ExclusionPolicy(["Microphone"])
    assert policy.excludes(_device("Mic", "USB Microphone"))
    assert not policy.excludes(_device("DAC", "Topping D10"))


def test_parse_ignores_comments_and_blank_entries() -> None:
    policy = ExclusionPolicy.parse("# onboard\nPCH\n\nHDMI, vc4hdmi ;  \n")
    assert policy.fragments == ("PCH", "HDMI", "vc4hdmi")


def test_blank_fragment_never_matches_everything() -> None:
    policy = ExclusionPolicy(["", "   "])
    assert len(policy) == 0
    assert not policy.is_excluded("DAC")


def test_load_missing_file_is_empty(tmp_path: Path) -> None:
    assert len(ExclusionPolicy.load(tmp_path / "missing")) == 0
    assert len(ExclusionPolicy.load(None)) == 0


def test_load_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "blacklist"
    path.write_text("Dongle\nMic\n")
    policy = ExclusionPolicy.load(path)
    assert policy.fragments == ("Dongle", "Mic")


def test_load_non_utf8_file_keeps_readable_entries(tmp_path: Path) -> None:
    path = tmp_path / "blacklist"
    path.write_bytes(b"# Ger\xe4te\nDongle\nMic\n")
    policy = ExclusionPolicy.load(path)
    assert policy.fragments == ("Dongle", "Mic")


def test_load_decode_error_is_empty(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "blacklist"
    path.write_text("Dongle\n")

    def _undecodable(self, *args, **kwargs):  # noqa: ANN001
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(Path, "read_text", _undecodable)
    assert len(ExclusionPolicy.load(path)) == 0
