"""Tests for the core/platform resolver."""

from __future__ import annotations

import pytest

from retrolaunch.core.cores import (
    CORE_MAP,
    PLATFORM_CORES,
    core_library_suffix,
    cores_for_extension,
    cores_for_platform,
    default_core,
    identify_platform,
    is_platform_supported,
)
from retrolaunch.models.game import Platform


class TestCoresForExtension:
    def test_sfc_default_is_snes9x(self) -> None:
        cores = cores_for_extension(".sfc")
        assert cores[0] == "snes9x_libretro"
        assert len(cores) >= 2

    def test_case_and_dot_insensitive(self) -> None:
        assert cores_for_extension("SFC") == cores_for_extension(".sfc")
        assert cores_for_extension(".GBA") == cores_for_extension("gba")

    def test_game_boy_candidates(self) -> None:
        cores = cores_for_extension(".gb")
        assert cores[0] == "gambatte_libretro"
        assert {"mgba_libretro", "sameboy_libretro"} <= set(cores)

    def test_unknown_extension_is_empty(self) -> None:
        assert cores_for_extension(".xyz") == []
        assert cores_for_extension("") == []

    def test_returns_a_copy(self) -> None:
        cores = cores_for_extension(".nes")
        cores.clear()
        assert cores_for_extension(".nes")

    def test_tables_are_immutable(self) -> None:
        with pytest.raises(TypeError):
            CORE_MAP[".new"] = ("x",)  # type: ignore[index]
        with pytest.raises(TypeError):
            PLATFORM_CORES["new"] = ("x",)  # type: ignore[index]


class TestIdentifyPlatform:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("gb", "gb"),
            ("GB", "gb"),
            ("Nintendo - Game Boy", "gb"),
            ("Game Boy Color", "gb"),
            ("GBC", "gb"),
            ("GBA", "gba"),
            ("Nintendo - Game Boy Advance", "gba"),
            ("3DS", "3ds"),
            ("Nintendo 3DS", "3ds"),
            ("DSi", "dsi"),
            ("Nintendo - DS", "nds"),
            ("GameCube", "gamecube"),
            ("GCN", "gamecube"),
            ("Wii", "wii"),
            ("Sega - Genesis", "genesis"),
            ("Mega Drive", "genesis"),
            ("genesis-slash-megadrive", "genesis"),
            ("WonderSwan Color", "wsc"),
            ("WSC", "wsc"),
            ("Neo Geo Pocket Color", "ngp"),
            ("Lynx", "lynx"),
            ("Virtual Boy", "vb"),
            ("PlayStation Portable", "psp"),
            ("Sony PlayStation", "psx"),
            ("PICO-8", "pico8"),
        ],
    )
    def test_known_labels(self, label: str, expected: str) -> None:
        assert identify_platform(label) == expected

    @pytest.mark.parametrize("label", ["roms", "unknown", "", "Sony PlayStation 2", "Wii U"])
    def test_unknown_labels(self, label: str) -> None:
        assert identify_platform(label) == ""


class TestCoresForPlatform:
    def test_game_boy_first_core(self) -> None:
        assert cores_for_platform("gb")[0] == "gambatte_libretro"

    def test_case_insensitive(self) -> None:
        assert cores_for_platform("GB") == cores_for_platform("gb")

    def test_free_text_label(self) -> None:
        assert cores_for_platform("Nintendo - Game Boy Advance") == cores_for_platform("gba")

    def test_unknown_platform_is_empty(self) -> None:
        assert cores_for_platform("roms") == []


class TestDefaultCore:
    def test_documented_disc_defaults(self) -> None:
        assert default_core(".cue") == "genesis_plus_gx_libretro"
        assert default_core(".iso") == "pcsx_rearmed_libretro"
        assert default_core(".bin") == "pcsx_rearmed_libretro"
        assert default_core(".chd") == "pcsx_rearmed_libretro"

    def test_platform_hint_disambiguates(self) -> None:
        assert default_core(".iso", "psp") == "ppsspp_libretro"
        assert default_core(".cue", "psx") == "pcsx_rearmed_libretro"
        assert default_core(".iso", "gamecube") == "dolphin_libretro"

    def test_unrelated_hint_keeps_default(self) -> None:
        assert default_core(".sfc", "gba") == "snes9x_libretro"

    def test_unknown_extension(self) -> None:
        assert default_core(".xyz") is None


class TestMisc:
    @pytest.mark.parametrize(
        ("system", "suffix"),
        [("Windows", ".dll"), ("Darwin", ".dylib"), ("Linux", ".so"), ("FreeBSD", ".so")],
    )
    def test_library_suffix(self, system: str, suffix: str) -> None:
        assert core_library_suffix(system) == suffix

    def test_platform_supported(self) -> None:
        assert is_platform_supported(Platform(name="Nintendo 64", slug="n64", rom_count=3))

    def test_platform_without_roms_unsupported(self) -> None:
        assert not is_platform_supported(Platform(name="Nintendo 64", slug="n64", rom_count=0))

    def test_unknown_platform_unsupported(self) -> None:
        assert not is_platform_supported(Platform(name="Arcade", slug="arcade", rom_count=5))
