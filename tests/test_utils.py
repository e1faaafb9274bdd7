"""Tests for shared helpers and models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from retrolaunch.errors import PathTraversalError
from retrolaunch.models.asset import ServerAsset, strip_timestamp_suffix
from retrolaunch.models.game import Game
from retrolaunch.utils import format_size, parse_timestamp, sanitize_relative_path


class TestSanitizeRelativePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("snes/Chrono Trigger", "snes/Chrono Trigger"),
            ("../../etc/passwd", "etc/passwd"),
            ("/abs/path", "abs/path"),
            ("C:\\Users\\test", "Users/test"),
            ("a/b/../../..", "."),
            ("", "."),
            ("..", "."),
            ("a/./b", "a/b"),
        ],
    )
    def test_sanitize(self, raw: str, expected: str) -> None:
        assert sanitize_relative_path(raw) == expected


class TestParseTimestamp:
    def test_rfc3339_z(self) -> None:
        assert parse_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_nanoseconds_trimmed(self) -> None:
        ts = parse_timestamp("2024-05-01T12:00:00.123456789+00:00")
        assert ts.microsecond == 123456

    def test_naive_db_format_is_utc(self) -> None:
        ts = parse_timestamp("2024-05-01 12:00:00")
        assert ts.tzinfo is not None
        assert ts.utcoffset().total_seconds() == 0

    def test_offset_kept(self) -> None:
        ts = parse_timestamp("2024-05-01T14:00:00+02:00")
        assert ts == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestModels:
    @pytest.mark.parametrize(
        ("name", "clean"),
        [
            ("game [2024-01-01_12-00-00].srm", "game.srm"),
            ("game.srm [2024-01-01_12-00-00-1]", "game.srm"),
            ("game [draft].srm", "game [draft].srm"),
        ],
    )
    def test_strip_timestamp_suffix(self, name: str, clean: str) -> None:
        assert strip_timestamp_suffix(name) == clean

    def test_server_asset_from_api(self) -> None:
        asset = ServerAsset.from_api(
            {
                "id": 3,
                "file_name": "game [2024-01-01_12-00-00].srm",
                "full_path": "saves/3/game.srm",
                "emulator": None,
                "updated_at": "2024-01-01T12:00:05Z",
                "file_size_bytes": 8192,
            }
        )
        assert asset.clean_name == "game.srm"
        assert asset.emulator == ""
        assert asset.updated_at == datetime(2024, 1, 1, 12, 0, 5, tzinfo=timezone.utc)

    def test_server_asset_bad_timestamp(self) -> None:
        assert ServerAsset.from_api({"file_name": "x", "updated_at": "??"}).updated_at is None

    def test_game_from_api_nested_platform(self) -> None:
        game = Game.from_api(
            {
                "id": 42,
                "name": "Chrono Trigger",
                "full_path": "snes/Chrono Trigger.sfc",
                "fs_size_bytes": 4194304,
                "platform": {"id": 3, "name": "SNES", "slug": "snes", "rom_count": 12},
            }
        )
        assert game.platform.slug == "snes"
        assert game.platform.rom_count == 12
        assert game.file_size == 4194304

    def test_game_from_api_flat_platform(self) -> None:
        game = Game.from_api({"id": 1, "platform_id": 9, "platform_display_name": "Game Boy", "platform_slug": "gb"})
        assert game.platform.name == "Game Boy"
        assert game.platform.slug == "gb"


class TestErrors:
    def test_str_includes_details(self) -> None:
        err = PathTraversalError("Invalid core", {"core": ".."})
        assert str(err) == "Invalid core (core=..)"
        assert err.message == "Invalid core"

    def test_str_without_details(self) -> None:
        assert str(PathTraversalError("bad")) == "bad"


class TestFormatSize:
    @pytest.mark.parametrize(
        ("size", "text"),
        [(512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB"), (3 * 1024 ** 3, "3.00 GB")],
    )
    def test_format_size(self, size: int, text: str) -> None:
        assert format_size(size) == text
