"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retrolaunch.config import Config
    from retrolaunch.core.game_launcher import GameLauncher
    from retrolaunch.core.library import LibraryService
    from retrolaunch.core.retroarch import RetroArchLauncher
    from retrolaunch.core.sync import SyncService
    from retrolaunch.events import EventSink


@dataclass
class AppContext:
    """
    Central service container.

    Catalog-backed services are ``None`` until a catalog client is supplied;
    launching a ROM file directly only needs the RetroArch launcher.
    """

    config: Config
    events: EventSink
    retroarch: RetroArchLauncher

    # Catalog-backed services
    library: LibraryService | None = None
    game_launcher: GameLauncher | None = None
    sync: SyncService | None = None
