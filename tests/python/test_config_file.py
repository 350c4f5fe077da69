from __future__ import annotations

from pathlib import Path

from dac_hotplug.config_file import EnvConfigFile, format_rates, rewrite_keys


def _config(path: Path) -> EnvConfigFile:
    return EnvConfigFile(
        path, output_key="AUDIO_OUTPUT_DEVICE", rates_key="AUDIO_OUTPUT_RATES"
    )


def test_format_rates_sorted_unique() -> None:
    assert format_rates({96000, 44100, 48000}) == "44100,48000,96000"


def test_rewrite_keeps_other_lines() -> None:
    text = "# player config\nVOLUME=80\nAUDIO_OUTPUT_DEVICE=hw:CARD=Old,DEV=0\nMIXER=soft\n"
    result = rewrite_keys(text, {"AUDIO_OUTPUT_DEVICE": "hw:CARD=DAC,DEV=0"})
    assert result == (
        "# player config\nVOLUME=80\nAUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\nMIXER=soft\n"
    )


def test_rewrite_appends_missing_keys() -> None:
    result = rewrite_keys("VOLUME=80\n", {"A": "1", "B": "2"})
    assert result == "VOLUME=80\nA=1\nB=2\n"


def test_write_updates_both_keys_in_place(tmp_path: Path) -> None:
    path = tmp_path / "player.env"
    path.write_text(
        "AUDIO_OUTPUT_RATES=44100\n# keep me\nAUDIO_OUTPUT_DEVICE=hw:CARD=Old,DEV=0\nBUFFER=4096\n"
    )
    _config(path).write("hw:CARD=DAC,DEV=0", frozenset({48000, 44100}))

    assert path.read_text() == (
        "AUDIO_OUTPUT_RATES=44100,48000\n"
        "# keep me\n"
        "AUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\n"
        "BUFFER=4096\n"
    )
    assert not (tmp_path / "player.env.tmp").exists()


def test_write_creates_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "etc" / "player.env"
    _config(path).write("hw:CARD=DAC,DEV=0", [48000])
    assert path.read_text() == (
        "AUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\nAUDIO_OUTPUT_RATES=48000\n"
    )


def test_read_output(tmp_path: Path) -> None:
    path = tmp_path / "player.env"
    cfg = _config(path)
    assert cfg.read_output() is None

    path.write_text('VOLUME=1\nAUDIO_OUTPUT_DEVICE="hw:CARD=DAC,DEV=0"\n')
    assert cfg.read_output() == "hw:CARD=DAC,DEV=0"

    path.write_text("AUDIO_OUTPUT_DEVICE=\n")
    assert cfg.read_output() is None


def test_read_output_from_non_utf8_file(tmp_path: Path) -> None:
    path = tmp_path / "player.env"
    path.write_bytes(b"# Lautst\xe4rke\nAUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\n")
    assert _config(path).read_output() == "hw:CARD=DAC,DEV=0"


def test_write_keeps_undecodable_bytes(tmp_path: Path) -> None:
    path = tmp_path / "player.env"
    path.write_bytes(b"NAME=caf\xe9\nAUDIO_OUTPUT_DEVICE=hw:CARD=OLD,DEV=0\n")

    _config(path).write("hw:CARD=DAC,DEV=0", [48000])

    assert path.read_bytes() == (
        b"NAME=caf\xe9\n"
        b"AUDIO_OUTPUT_DEVICE=hw:CARD=DAC,DEV=0\n"
        b"AUDIO_OUTPUT_RATES=48000\n"
    )


def test_read_output_decode_error_is_unrecorded(tmp_path: Path, monkeypatch) -> None:
    cfg = _config(tmp_path / "player.env")

    def _undecodable():
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(cfg, "_read", _undecodable)
    assert cfg.read_output() is None
