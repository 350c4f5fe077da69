"""Settings loading and CLI wiring."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from dac_hotplug import daemon
from dac_hotplug.arbiter import ArbiterState, RestartMode
from dac_hotplug.settings import load_settings

CARDS = " 1 [DAC            ]: USB-Audio - Topping USB Audio DAC\n"
STREAM = "Playback:\n  Interface 1\n    Rates: 44100, 48000\n"


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    root = tmp_path / "asound"
    (root / "card1").mkdir(parents=True)
    (root / "cards").write_text(CARDS)
    (root / "card1" / "usbid").write_text("152a:85dd\n")
    (root / "card1" / "stream0").write_text(STREAM)
    return root


def test_settings_defaults_from_env(monkeypatch) -> None:
    monkeypatch.setenv("DAC_HOTPLUG_SERVICE_UNIT", "mpd.service")
    monkeypatch.setenv("DAC_HOTPLUG_RESTART_MODE", "HARD")
    monkeypatch.setenv("DAC_HOTPLUG_STOP_TIMEOUT_SEC", "not-a-number")
    settings = load_settings()
    assert settings.service_unit == "mpd.service"
    assert settings.restart_mode == "hard"
    assert settings.stop_timeout_sec == 5.0
    assert settings.status_endpoint is None


def test_cli_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("DAC_HOTPLUG_SERVICE_UNIT", "mpd.service")
    args = daemon._parse_args(["--service", "shairport-sync.service", "--restart-mode", "soft"])
    settings = load_settings(daemon._overrides(args))
    assert settings.service_unit == "shairport-sync.service"
    assert settings.restart_mode == "soft"


def test_invalid_settings_rejected() -> None:
    with pytest.raises(ValidationError):
        load_settings({"stop_timeout_sec": 0})


def test_main_returns_2_on_invalid_settings(monkeypatch) -> None:
    monkeypatch.setenv("DAC_HOTPLUG_RESTART_MODE", "gentle")
    assert daemon.main([]) == 2


def test_print_rules_uses_recorded_output(tmp_path: Path, proc_root: Path, capsys) -> None:
    config = tmp_path / "player.env"
    config.write_text("AUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\n")
    rc = daemon.main(
        [
            "--print-rules",
            "--config",
            str(config),
            "--proc-root",
            str(proc_root),
            "--fifo",
            str(tmp_path / "events"),
            "--exclusion-list",
            str(tmp_path / "missing"),
        ]
    )
    out = capsys.readouterr().out
    assert rc == 0
    assert 'ENV{ID_VENDOR_ID}=="152a"' in out
    assert str(tmp_path / "events") in out


def test_build_arbiter_wires_collaborators(tmp_path: Path, proc_root: Path) -> None:
    blacklist = tmp_path / "blacklist"
    blacklist.write_text("DAC\n")
    settings = load_settings(
        {
            "config_path": tmp_path / "player.env",
            "exclusion_path": blacklist,
            "proc_root": proc_root,
            "restart_mode": "hard",
        }
    )
    arbiter, config = daemon.build_arbiter(settings)
    assert arbiter.restart_mode is RestartMode.HARD
    assert config.path == tmp_path / "player.env"

    # the only attached device is blacklisted
    arbiter.start(None)
    assert arbiter.state is ArbiterState.UNBOUND


def test_print_rules_with_non_utf8_files(tmp_path: Path, proc_root: Path, capsys) -> None:
    config = tmp_path / "player.env"
    config.write_bytes(b"# Wiedergabeger\xe4t\nAUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\n")
    blacklist = tmp_path / "blacklist"
    blacklist.write_bytes(b"# Ger\xe4te\nHDMI\n")
    rc = daemon.main(
        [
            "--print-rules",
            "--config",
            str(config),
            "--proc-root",
            str(proc_root),
            "--fifo",
            str(tmp_path / "events"),
            "--exclusion-list",
            str(blacklist),
        ]
    )
    assert rc == 0
    assert 'ENV{ID_VENDOR_ID}=="152a"' in capsys.readouterr().out


def test_status_poll_interval_from_env(monkeypatch) -> None:
    monkeypatch.setenv("DAC_HOTPLUG_STATUS_POLL_MS", "250")
    assert load_settings().status_poll_ms == 250
