"""Core/platform resolver — which libretro cores can run a ROM.

Two immutable lookup tables drive everything:

    CORE_MAP        extension → ordered core names (first = default)
    PLATFORM_CORES  canonical platform id → ordered core names

Free-text platform labels from RomM ("Nintendo - Game Boy Advance",
"genesis-slash-megadrive", "GCN") are normalized to the canonical ids by
:func:`identify_platform`.

Shared disc extensions are resolved to one documented default when no
platform is known: ``.cue`` → Genesis Plus GX (Sega CD), ``.iso`` / ``.bin``
/ ``.chd`` → PCSX ReARMed (PlayStation).  :func:`default_core` prefers a
core of the hinted platform when one is given.
"""

from __future__ import annotations

import platform as _platform
import re
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retrolaunch.models.game import Platform

ARCHIVE_EXTENSION = ".zip"

# Pico-8 carts are PNG images; RetroArch must not open them with its image viewer
PICO8_CORE = "retro8_libretro"
PICO8_CART_EXTENSION = ".png"

_NES = ("nestopia_libretro", "fceumm_libretro", "mesen_libretro")
_SNES = ("snes9x_libretro", "bsnes_libretro", "mesen-s_libretro")
_N64 = ("mupen64plus_next_libretro", "parallel_n64_libretro")
_GB = ("gambatte_libretro", "mgba_libretro", "sameboy_libretro")
_GBA = ("mgba_libretro", "vba_next_libretro")
_NDS = ("melonds_libretro", "desmume_libretro")
_DOLPHIN = ("dolphin_libretro",)
_MD = ("genesis_plus_gx_libretro", "picodrive_libretro")
_PSX = ("pcsx_rearmed_libretro", "swanstation_libretro", "mednafen_psx_libretro")
_C64 = ("vice_x64sc_libretro", "vice_x64_libretro")
_PCE = ("mednafen_pce_fast_libretro", "mednafen_pce_libretro", "mednafen_supergrafx_libretro")
_NGP = ("mednafen_ngp_libretro", "race_libretro")

CORE_MAP: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
    # Nintendo
    ".nes": _NES,
    ".fds": _NES,
    ".sfc": _SNES,
    ".smc": _SNES,
    ".z64": _N64,
    ".n64": _N64,
    ".v64": _N64,
    ".gb": _GB,
    ".gbc": _GB,
    ".gba": _GBA,
    ".nds": _NDS,
    ".3ds": ("citra_libretro",),
    ".cci": ("citra_libretro",),
    ".rvz": _DOLPHIN,
    ".gcz": _DOLPHIN,
    ".wbfs": _DOLPHIN,
    ".vb": ("beetle_vb_libretro",),
    # Sega
    ".md": _MD,
    ".smd": _MD,
    ".gen": _MD,
    ".sms": ("genesis_plus_gx_libretro", "picodrive_libretro", "gearsystem_libretro"),
    ".gg": ("genesis_plus_gx_libretro", "gearsystem_libretro"),
    ".32x": ("picodrive_libretro",),
    # Shared disc images
    ".cue": ("genesis_plus_gx_libretro", "pcsx_rearmed_libretro", "swanstation_libretro",
             "mednafen_saturn_libretro"),
    ".iso": ("pcsx_rearmed_libretro", "ppsspp_libretro", "dolphin_libretro",
             "genesis_plus_gx_libretro"),
    ".bin": ("pcsx_rearmed_libretro", "swanstation_libretro", "genesis_plus_gx_libretro",
             "picodrive_libretro"),
    ".chd": ("pcsx_rearmed_libretro", "swanstation_libretro", "genesis_plus_gx_libretro",
             "mednafen_saturn_libretro"),
    # Sony
    ".pbp": ("pcsx_rearmed_libretro", "swanstation_libretro"),
    ".cso": ("ppsspp_libretro",),
    # Atari
    ".a26": ("stella_libretro",),
    ".a52": ("a5200_libretro",),
    ".a78": ("prosystem_libretro",),
    ".lnx": ("handy_libretro", "mednafen_lynx_libretro"),
    ".jag": ("virtualjaguar_libretro",),
    # Computers
    ".d64": _C64,
    ".prg": _C64,
    ".t64": _C64,
    ".adf": ("puae_libretro",),
    ".uae": ("puae_libretro",),
    # Others
    ".pce": _PCE,
    ".sgx": ("mednafen_supergrafx_libretro", "mednafen_pce_fast_libretro"),
    ".ws": ("mednafen_wswan_libretro",),
    ".wsc": ("mednafen_wswan_libretro",),
    ".ngp": _NGP,
    ".ngc": _NGP,
    ".p8": (PICO8_CORE, "fake08_libretro"),
    PICO8_CART_EXTENSION: (PICO8_CORE,),
})

PLATFORM_CORES: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
    "nes": _NES,
    "fds": _NES,
    "snes": _SNES,
    "n64": _N64,
    "gb": _GB,
    "gba": _GBA,
    "nds": _NDS,
    "dsi": ("melondsds_libretro", "melonds_libretro"),
    "3ds": ("citra_libretro",),
    "vb": ("beetle_vb_libretro",),
    "gamecube": _DOLPHIN,
    "wii": _DOLPHIN,
    "genesis": _MD,
    "sms": ("genesis_plus_gx_libretro", "picodrive_libretro", "gearsystem_libretro"),
    "gamegear": ("genesis_plus_gx_libretro", "gearsystem_libretro"),
    "segacd": _MD,
    "32x": ("picodrive_libretro",),
    "saturn": ("mednafen_saturn_libretro", "yabause_libretro"),
    "psx": _PSX,
    "psp": ("ppsspp_libretro",),
    "atari2600": ("stella_libretro",),
    "atari5200": ("a5200_libretro",),
    "atari7800": ("prosystem_libretro",),
    "lynx": ("handy_libretro", "mednafen_lynx_libretro"),
    "jaguar": ("virtualjaguar_libretro",),
    "c64": _C64,
    "amiga": ("puae_libretro",),
    "pce": _PCE,
    "ws": ("mednafen_wswan_libretro",),
    "wsc": ("mednafen_wswan_libretro",),
    "ngp": _NGP,
    "pico8": (PICO8_CORE, "fake08_libretro"),
})

# Alias phrases are lowercase words separated by single spaces
_PLATFORM_ALIASES: dict[str, tuple[str, ...]] = {
    "nes": ("nes", "famicom", "nintendo entertainment system"),
    "fds": ("fds", "famicom disk system"),
    "snes": ("snes", "sfc", "super nintendo", "super famicom",
             "super nintendo entertainment system"),
    "n64": ("n64", "nintendo 64"),
    # Game Boy Color shares the Game Boy cores
    "gb": ("gb", "gbc", "game boy", "gameboy", "game boy color", "gameboy color"),
    "gba": ("gba", "game boy advance", "gameboy advance"),
    "nds": ("nds", "ds", "nintendo ds"),
    "dsi": ("dsi", "nintendo dsi"),
    "3ds": ("3ds", "n3ds", "nintendo 3ds"),
    "vb": ("vb", "virtual boy", "virtualboy"),
    "gamecube": ("gamecube", "gc", "gcn", "ngc", "nintendo gamecube"),
    "wii": ("wii",),
    "genesis": ("genesis", "megadrive", "mega drive", "md"),
    "sms": ("sms", "master system", "mastersystem"),
    "gamegear": ("gamegear", "game gear", "gg"),
    "segacd": ("segacd", "sega cd", "mega cd", "megacd"),
    "32x": ("32x", "sega32", "sega 32x"),
    "saturn": ("saturn", "sega saturn"),
    "psx": ("psx", "ps1", "ps", "playstation"),
    "psp": ("psp", "playstation portable"),
    "atari2600": ("atari2600", "atari 2600"),
    "atari5200": ("atari5200", "atari 5200"),
    "atari7800": ("atari7800", "atari 7800"),
    "lynx": ("lynx", "atari lynx"),
    "jaguar": ("jaguar", "atari jaguar"),
    "c64": ("c64", "commodore 64", "commodore64"),
    "amiga": ("amiga", "commodore amiga"),
    "pce": ("pce", "pc engine", "pcengine", "turbografx 16", "turbografx16", "tg16",
            "supergrafx"),
    "ws": ("ws", "wonderswan"),
    "wsc": ("wsc", "wonderswan color"),
    "ngp": ("ngp", "ngpc", "neo geo pocket", "neogeo pocket", "neo geo pocket color"),
    "pico8": ("pico8", "pico 8"),
}

# Labels containing one of these name a platform we cannot run, even though a
# shorter alias ("playstation", "wii") would otherwise match
_UNSUPPORTED_PHRASES = (
    "playstation 2", "playstation 3", "playstation 4", "playstation 5",
    "playstation vita", "wii u",
)

# Longest phrase first, so "game boy advance" beats "game boy"
_ALIAS_ORDER: tuple[tuple[str, str], ...] = tuple(
    sorted(
        ((alias, pid) for pid, aliases in _PLATFORM_ALIASES.items() for alias in aliases),
        key=lambda item: (-len(item[0].split()), -len(item[0])),
    )
)

_WORD_RE = re.compile(r"[a-z0-9]+")


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def cores_for_extension(ext: str) -> list[str]:
    """Candidate cores for a file extension (``".sfc"`` or ``"sfc"``); ``[]`` if unknown."""
    return list(CORE_MAP.get(_normalize_extension(ext), ()))


def is_known_extension(ext: str) -> bool:
    return _normalize_extension(ext) in CORE_MAP


def identify_platform(label: str) -> str:
    """
    Normalize a platform name or slug to a canonical platform id.

    Exact aliases match first; otherwise the longest alias phrase found on
    word boundaries wins.  Returns ``""`` when the label names no platform
    we have cores for.
    """
    words = _WORD_RE.findall(label.lower())
    if not words:
        return ""
    text = f" {' '.join(words)} "

    for phrase in _UNSUPPORTED_PHRASES:
        if f" {phrase} " in text:
            return ""

    for alias, pid in _ALIAS_ORDER:
        if f" {alias} " in text:
            return pid
    return ""


def cores_for_platform(identifier: str) -> list[str]:
    """Candidate cores for a platform id, slug or label; ``[]`` if unknown."""
    key = identifier.strip().lower()
    if key not in PLATFORM_CORES:
        key = identify_platform(identifier)
    return list(PLATFORM_CORES.get(key, ()))


def default_core(ext: str, platform: str = "") -> str | None:
    """
    Default core for an extension.

    With a platform hint, the first extension candidate that also serves the
    platform is chosen, so a PSP ``.iso`` gets PPSSPP instead of the
    PlayStation default.
    """
    candidates = cores_for_extension(ext)
    if not candidates:
        return None
    if platform:
        platform_cores = set(cores_for_platform(platform))
        for core in candidates:
            if core in platform_cores:
                return core
    return candidates[0]


def core_library_suffix(system: str | None = None) -> str:
    """Shared-library extension for cores on the given (or current) OS."""
    system = system or _platform.system()
    if system == "Windows":
        return ".dll"
    if system == "Darwin":
        return ".dylib"
    return ".so"


def is_platform_supported(platform: Platform) -> bool:
    """Whether a catalog platform has games and a core we can launch them with."""
    if platform.rom_count <= 0:
        return False
    return bool(identify_platform(platform.name) or identify_platform(platform.slug))
