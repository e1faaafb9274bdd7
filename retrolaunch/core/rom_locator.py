"""ROM locator — find the playable file inside a game's library folder."""

from __future__ import annotations

import zipfile
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from loguru import logger

from retrolaunch.core.cores import (
    ARCHIVE_EXTENSION,
    cores_for_extension,
    cores_for_platform,
    is_known_extension,
)
from retrolaunch.errors import ArchiveError

if TYPE_CHECKING:
    from retrolaunch.models.game import Game


def _is_candidate(path: Path) -> bool:
    return not path.name.startswith(".") and path.is_file()


def _platform_cores(game: Game) -> set[str]:
    platform = game.platform
    return set(cores_for_platform(platform.slug) or cores_for_platform(platform.name))


def locate_rom(directory: Path, game: Game) -> Path | None:
    """
    Find the ROM file for ``game`` in ``directory``.

    Strategies, first hit wins:

    1. the file named by the catalog path (``basename(game.full_path)``);
    2. a file whose extension maps to one of the platform's cores;
    3. any file with a known ROM extension, or a ``.zip``.

    Hidden files and directories (``saves/``, ``states/``) are ignored.
    """
    if not directory.is_dir():
        return None

    expected = PurePosixPath(game.full_path.replace("\\", "/")).name
    if expected:
        candidate = directory / expected
        if _is_candidate(candidate):
            return candidate

    entries = sorted((p for p in directory.iterdir() if _is_candidate(p)), key=lambda p: p.name)

    platform_cores = _platform_cores(game)
    if platform_cores:
        for entry in entries:
            if platform_cores.intersection(cores_for_extension(entry.suffix)):
                logger.debug(f"Matched ROM by platform cores: {entry.name}")
                return entry

    for entry in entries:
        if entry.suffix.lower() == ARCHIVE_EXTENSION or is_known_extension(entry.suffix):
            logger.debug(f"Matched ROM by extension: {entry.name}")
            return entry

    return None


def cores_in_archive(path: Path) -> list[str]:
    """Cores able to run any ROM inside a zip, in member order, without extracting.

    Unreadable archives yield ``[]``.
    """
    cores: list[str] = []
    try:
        with zipfile.ZipFile(path) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                for core in cores_for_extension(PurePosixPath(info.filename).suffix):
                    if core not in cores:
                        cores.append(core)
    except (zipfile.BadZipFile, OSError) as e:
        logger.warning(f"Cannot read archive {path}: {e}")
        return []
    return cores


def archive_rom_member(path: Path) -> str:
    """Name of the first member of a zip with a recognized ROM extension.

    Raises :class:`ArchiveError` if the archive is unreadable or holds no ROM.
    """
    try:
        with zipfile.ZipFile(path) as zf:
            for info in zf.infolist():
                if not info.is_dir() and is_known_extension(PurePosixPath(info.filename).suffix):
                    return info.filename
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveError("Failed to open archive", {"path": str(path), "error": str(e)}) from e
    raise ArchiveError("No supported ROM found in archive", {"path": str(path)})
