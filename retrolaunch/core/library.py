"""Local ROM library — where games live on disk, downloading and removing them."""

from __future__ import annotations

import posixpath
import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from loguru import logger

from retrolaunch.core.rom_locator import locate_rom
from retrolaunch.errors import (
    ConfigurationError,
    NetworkError,
    PathTraversalError,
    RetroLaunchError,
)
from retrolaunch.events import EVENT_DOWNLOAD_PROGRESS, EventSink, LoggingEventSink
from retrolaunch.models.game import Game
from retrolaunch.utils import format_size, sanitize_relative_path


class ConfigProvider(Protocol):
    """Configuration needed to manage the library."""

    @property
    def library_path(self) -> Path | None: ...


class CatalogProvider(Protocol):
    """Catalog calls needed to manage the library."""

    def get_game(self, game_id: int) -> Game: ...

    def download_rom(self, game: Game) -> tuple[Iterable[bytes], str]: ...


def fetch_game(catalog: CatalogProvider, game_id: int) -> Game:
    """Fetch game metadata, turning transport failures into :class:`NetworkError`."""
    try:
        return catalog.get_game(game_id)
    except RetroLaunchError:
        raise
    except Exception as e:
        raise NetworkError("Failed to get ROM info", {"game_id": game_id, "error": str(e)}) from e


class LibraryService:
    """
    Manages the local ROM library.

    Layout: ``<library>/<dirname(full_path)>/<game id>/<rom file>`` with the
    per-game ``saves/`` and ``states/`` folders next to the ROM.
    """

    def __init__(
        self,
        config: ConfigProvider,
        catalog: CatalogProvider,
        events: EventSink | None = None,
    ) -> None:
        self._config = config
        self._catalog = catalog
        self._events = events or LoggingEventSink()

    def _library_path(self) -> Path:
        path = self._config.library_path
        if path is None:
            raise ConfigurationError("Library path is not configured")
        return path

    def get_game(self, game_id: int) -> Game:
        return fetch_game(self._catalog, game_id)

    def get_rom_dir(self, game: Game) -> Path:
        """Folder holding ``game``'s ROM; the catalog path cannot climb out of the library."""
        rel_dir = sanitize_relative_path(posixpath.dirname(game.full_path.replace("\\", "/")))
        return self._library_path() / rel_dir / str(game.id)

    def find_rom(self, game: Game) -> Path | None:
        return locate_rom(self.get_rom_dir(game), game)

    def is_downloaded(self, game_id: int) -> bool:
        """Whether a playable file for ``game_id`` exists locally.  Never raises."""
        if self._config.library_path is None:
            return False
        try:
            game = self.get_game(game_id)
        except RetroLaunchError as e:
            logger.warning(f"Cannot check download status of game {game_id}: {e}")
            return False
        return self.find_rom(game) is not None

    def download_rom_to_library(self, game_id: int) -> Path:
        """
        Stream a ROM from the catalog into its library folder.

        Emits ``download-progress`` events with ``game_id`` and ``percentage``
        when the game's size is known.  The file is written under a ``.part``
        name and renamed once complete.
        """
        self._library_path()
        game = self.get_game(game_id)

        try:
            stream, server_name = self._catalog.download_rom(game)
        except RetroLaunchError:
            raise
        except Exception as e:
            raise NetworkError("ROM download failed", {"game_id": game_id, "error": str(e)}) from e

        dest_dir = self.get_rom_dir(game)
        filename = posixpath.basename(game.full_path.replace("\\", "/"))
        if filename in ("", ".", ".."):
            filename = posixpath.basename(sanitize_relative_path(server_name))
        if filename in ("", ".", ".."):
            raise PathTraversalError("Invalid ROM file name", {"game_id": game_id})
        dest = dest_dir / filename
        part = dest.with_name(dest.name + ".part")

        total = game.file_size
        downloaded = 0
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            with open(part, "wb") as f:
                for chunk in stream:
                    f.write(chunk)
                    downloaded += len(chunk)
                    if total > 0:
                        self._events.emit(
                            EVENT_DOWNLOAD_PROGRESS,
                            {"game_id": game.id, "percentage": downloaded / total * 100},
                        )
            part.replace(dest)
        except OSError as e:
            part.unlink(missing_ok=True)
            raise RetroLaunchError("Failed to save ROM", {"path": str(dest), "error": str(e)}) from e
        except Exception as e:
            part.unlink(missing_ok=True)
            raise NetworkError("ROM download failed", {"game_id": game_id, "error": str(e)}) from e
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()

        logger.info(f"Downloaded {game.title or filename} to {dest} ({format_size(downloaded)})")
        return dest

    def delete_rom(self, game_id: int) -> None:
        """Remove the game's whole library folder, saves and states included."""
        self._library_path()
        game = self.get_game(game_id)
        rom_dir = self.get_rom_dir(game)
        if not rom_dir.exists():
            return
        try:
            shutil.rmtree(rom_dir)
        except OSError as e:
            logger.error(f"Failed to delete ROM {game_id}: {e}")
            raise RetroLaunchError(
                "Failed to delete ROM directory", {"path": str(rom_dir), "error": str(e)}
            ) from e
        logger.info(f"Deleted ROM {game_id} from library")
