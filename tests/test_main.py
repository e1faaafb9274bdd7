"""Tests for service wiring and the command line."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
from loguru import logger

import main
from retrolaunch.config import Config, reset_config


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("retrolaunch.config._DEFAULT_CONFIG_DIR", tmp_path / "config")
    reset_config()
    yield
    reset_config()
    logger.remove()


class TestCreateContext:
    def test_without_catalog(self, tmp_path: Path) -> None:
        ctx = main.create_context(config=Config(config_dir=tmp_path))
        assert ctx.retroarch is not None
        assert ctx.library is None
        assert ctx.game_launcher is None
        assert ctx.sync is None

    def test_with_catalog(self, tmp_path: Path, catalog, sink) -> None:
        ctx = main.create_context(catalog, Config(config_dir=tmp_path), sink)
        assert ctx.library is not None
        assert ctx.game_launcher is not None
        assert ctx.sync is not None
        assert ctx.events is sink


class TestCli:
    def test_cores_for_extension(self, capsys) -> None:
        assert main.main(["cores", ".sfc"]) == 0
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "snes9x_libretro  (default)"

    def test_cores_for_platform(self, capsys) -> None:
        assert main.main(["cores", "Nintendo - Game Boy"]) == 0
        out = capsys.readouterr().out
        assert "Platform: gb" in out
        assert "gambatte_libretro  (default)" in out

    def test_cores_unknown(self, capsys) -> None:
        assert main.main(["cores", "roms"]) == 1

    def test_inspect(self, tmp_path: Path, capsys) -> None:
        archive = tmp_path / "game.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("game.sfc", b"rom")
        assert main.main(["inspect", str(archive)]) == 0
        out = capsys.readouterr().out
        assert f"{archive}#game.sfc" in out
        assert "snes9x_libretro" in out

    def test_inspect_bad_archive_returns_error(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"nope")
        assert main.main(["inspect", str(bad)]) == 1

    def test_launch_without_retroarch(self, tmp_path: Path) -> None:
        assert main.main(["launch", str(tmp_path / "game.sfc")]) == 1

    def test_configure(self, tmp_path: Path, capsys) -> None:
        assert main.main(["configure", "--library", str(tmp_path / "roms")]) == 0
        assert "library_path" in capsys.readouterr().out
        assert Config(config_dir=tmp_path / "config").library_path == tmp_path / "roms"

    def test_settings_warning_reaches_log_file(self, tmp_path: Path) -> None:
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.json").write_text("{broken", encoding="utf-8")

        assert main.main(["cores", ".sfc"]) == 0

        log_text = (config_dir / "logs" / "retrolaunch.log").read_text(encoding="utf-8")
        assert "Ignoring unreadable config" in log_text
