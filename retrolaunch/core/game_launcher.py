"""Game launcher — play a catalog game by id from the local library."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol

from loguru import logger

from retrolaunch.core.cores import ARCHIVE_EXTENSION, cores_for_extension, cores_for_platform
from retrolaunch.core.library import LibraryService
from retrolaunch.core.retroarch import RetroArchLauncher
from retrolaunch.core.rom_locator import cores_in_archive
from retrolaunch.errors import ConfigurationError, NotFoundError
from retrolaunch.models.game import Game
from retrolaunch.models.launch import LaunchSession

# Asks the user for the RetroArch executable; returns None/"" when cancelled
ExecutablePicker = Callable[[], "Path | str | None"]


class ConfigProvider(Protocol):
    """Configuration needed to launch games."""

    @property
    def library_path(self) -> Path | None: ...

    @property
    def retroarch_executable(self) -> Path | None: ...

    @property
    def cheevos_credentials(self) -> tuple[str, str]: ...


def _platform_hint(game: Game) -> str:
    return game.platform.slug or game.platform.name


class GameLauncher:
    """Finds a downloaded game's ROM and hands it to :class:`RetroArchLauncher`."""

    def __init__(
        self,
        config: ConfigProvider,
        library: LibraryService,
        launcher: RetroArchLauncher,
        picker: ExecutablePicker | None = None,
    ) -> None:
        self._config = config
        self._library = library
        self._launcher = launcher
        self._picker = picker

    def _locate(self, game_id: int) -> tuple[Game, Path | None]:
        game = self._library.get_game(game_id)
        logger.info(f"Game {game.id}: {game.title} ({game.full_path})")
        return game, self._library.find_rom(game)

    def play_rom(self, game_id: int, core_override: str = "") -> LaunchSession:
        """Launch a downloaded game, optionally with a specific core (e.g. ``"snes9x_libretro"``)."""
        if self._config.library_path is None:
            raise ConfigurationError("Library path is not configured")

        game, rom = self._locate(game_id)
        if rom is None:
            raise NotFoundError(
                "No valid ROM file found, please download it first",
                {"dir": str(self._library.get_rom_dir(game))},
            )
        logger.info(f"Found ROM: {rom}")

        exe = self._resolve_executable()
        cheevos_user, cheevos_pass = self._config.cheevos_credentials
        return self._launcher.launch(
            exe,
            rom,
            cheevos_user=cheevos_user,
            cheevos_pass=cheevos_pass,
            core_override=core_override,
            platform_hint=_platform_hint(game),
        )

    def _resolve_executable(self) -> Path:
        exe = self._config.retroarch_executable
        if exe is not None:
            if not exe.exists():
                raise ConfigurationError(
                    "RetroArch executable not found at configured path", {"path": str(exe)}
                )
            return exe

        if self._picker is None:
            raise ConfigurationError("RetroArch is not configured")
        picked = self._picker()
        if not picked:
            raise ConfigurationError("Launch cancelled: RetroArch executable not selected")
        return Path(picked)

    def available_cores(self, game_id: int) -> list[str]:
        """Cores the user can choose from for a game, first one being the default."""
        game, rom = self._locate(game_id)
        cores: list[str] = []
        if rom is not None:
            if rom.suffix.lower() == ARCHIVE_EXTENSION:
                cores = cores_in_archive(rom)
            else:
                cores = cores_for_extension(rom.suffix)
        return cores or cores_for_platform(_platform_hint(game))
