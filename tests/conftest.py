"""Shared test fakes: an in-memory catalog and a recording event sink."""

from __future__ import annotations

import posixpath
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from retrolaunch.core.library import LibraryService
from retrolaunch.models.asset import AssetKind, ServerAsset
from retrolaunch.models.game import Game, Platform


class RecordingSink:
    """Event sink that remembers everything it was given."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def emit(self, event: str, payload: Any = None) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class FakeCatalog:
    """In-memory stand-in for the RomM API client."""

    def __init__(self) -> None:
        self.games: dict[int, Game] = {}
        self.assets: dict[tuple[AssetKind, int], list[ServerAsset]] = {}
        self.blobs: dict[str, bytes] = {}
        self.roms: dict[int, bytes] = {}
        self.uploads: list[tuple[AssetKind, int, str, str, bytes]] = []
        self.fail_listing = False
        self.fail_uploads: set[str] = set()

    def add_game(self, game: Game) -> Game:
        self.games[game.id] = game
        return game

    def add_server_asset(
        self,
        kind: AssetKind,
        game_id: int,
        file_name: str,
        content: bytes,
        updated_at: datetime | None,
        emulator: str = "snes9x",
    ) -> ServerAsset:
        full_path = f"{kind}/{game_id}/{emulator}/{file_name}"
        asset = ServerAsset(
            file_name=file_name,
            full_path=full_path,
            emulator=emulator,
            updated_at=updated_at,
            id=len(self.blobs) + 1,
            file_size=len(content),
        )
        self.assets.setdefault((kind, game_id), []).append(asset)
        self.blobs[full_path] = content
        return asset

    # ── CatalogProvider ──

    def get_game(self, game_id: int) -> Game:
        try:
            return self.games[game_id]
        except KeyError:
            raise LookupError(f"game {game_id} not found") from None

    def list_server_assets(self, kind: AssetKind, game_id: int) -> list[ServerAsset]:
        if self.fail_listing:
            raise ConnectionError("server unreachable")
        return list(self.assets.get((kind, game_id), []))

    def upload_asset(
        self, kind: AssetKind, game_id: int, core: str, filename: str, content: bytes
    ) -> None:
        if filename in self.fail_uploads:
            raise ConnectionError(f"upload of {filename} rejected")
        self.uploads.append((kind, game_id, core, filename, content))
        now = datetime.now(timezone.utc)
        stem, ext = posixpath.splitext(filename)
        stamped = f"{stem} [{now:%Y-%m-%d_%H-%M-%S}]{ext}"
        self.add_server_asset(kind, game_id, stamped, content, now, emulator=core)

    def download_asset(self, kind: AssetKind, remote_path: str):
        return iter([self.blobs[remote_path]]), posixpath.basename(remote_path)

    def download_rom(self, game: Game):
        data = self.roms[game.id]
        chunks = [data[i:i + 4] for i in range(0, len(data), 4)]
        return iter(chunks), posixpath.basename(game.full_path)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def snes_game(catalog: FakeCatalog) -> Game:
    return catalog.add_game(
        Game(
            id=42,
            title="Chrono Trigger",
            full_path="snes/Chrono Trigger.sfc",
            platform=Platform(id=3, name="Super Nintendo Entertainment System", slug="snes", rom_count=10),
            file_size=12,
        )
    )


@pytest.fixture
def library_config(tmp_path: Path):
    """Mock config pointing at a temp library."""
    config = MagicMock()
    config.library_path = tmp_path / "library"
    config.retroarch_executable = None
    config.cheevos_credentials = ("", "")
    return config


@pytest.fixture
def library(library_config, catalog: FakeCatalog, sink: RecordingSink) -> LibraryService:
    return LibraryService(library_config, catalog, sink)
