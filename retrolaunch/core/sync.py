"""Save/state sync — reconcile a game's local saves and states with the RomM server."""

from __future__ import annotations

import os
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from loguru import logger

from retrolaunch.core.asset_paths import resolve_asset_path
from retrolaunch.core.library import fetch_game
from retrolaunch.errors import NetworkError, NotFoundError, RetroLaunchError
from retrolaunch.models.asset import (
    AssetKind,
    LocalAsset,
    ServerAsset,
    SyncAction,
    SyncResult,
    strip_timestamp_suffix,
)
from retrolaunch.models.game import Game
from retrolaunch.utils import sanitize_relative_path

DEFAULT_TOLERANCE_SECONDS = 5.0

# The Dolphin core keeps GameCube memory cards in a nested per-region tree
DOLPHIN_CORE_DIR = "dolphin-emu"
_DOLPHIN_REGIONS = ("USA", "EUR", "JPN")
_DOLPHIN_CARDS = ("Card A", "Card B")
_DOLPHIN_CARD_REMAP = {
    "Card A": f"{DOLPHIN_CORE_DIR}/User/GC/USA/Card A",
    "Card B": f"{DOLPHIN_CORE_DIR}/User/GC/USA/Card B",
}


class RomDirProvider(Protocol):
    def get_rom_dir(self, game: Game) -> Path: ...


class CatalogProvider(Protocol):
    """Catalog calls needed for save/state sync."""

    def get_game(self, game_id: int) -> Game: ...

    def list_server_assets(self, kind: AssetKind, game_id: int) -> list[ServerAsset]: ...

    def upload_asset(
        self, kind: AssetKind, game_id: int, core: str, filename: str, content: bytes
    ) -> None: ...

    def download_asset(self, kind: AssetKind, remote_path: str) -> tuple[Iterable[bytes], str]: ...


def _local_core(emulator: str) -> str:
    """Local core folder for a server-side emulator name."""
    return _DOLPHIN_CARD_REMAP.get(emulator, emulator)


def _set_mtime(path: Path, when: datetime | None = None) -> None:
    """Set ``path``'s access and modification time (to now when ``when`` is None)."""
    try:
        if when is None:
            os.utime(path, None)
        else:
            ts = when.timestamp()
            os.utime(path, (ts, ts))
    except OSError as e:
        logger.error(f"Failed to update file time for {path}: {e}")


def _newest(assets: Iterable[ServerAsset]) -> dict[str, ServerAsset]:
    """Index server assets by clean name; the most recent entry wins."""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    by_name: dict[str, ServerAsset] = {}
    for asset in assets:
        current = by_name.get(asset.clean_name)
        if current is None or (asset.updated_at or floor) > (current.updated_at or floor):
            by_name[asset.clean_name] = asset
    return by_name


class SyncService:
    """
    Moves saves and states between a game's library folder and the server.

    Local layout: ``<rom dir>/{saves|states}/<core>/<file>``.  Every read or
    write goes through :func:`resolve_asset_path`.

    ``reconcile_*`` compares both sides by name and modification time and
    transfers whichever copy is newer; timestamps within ``tolerance_seconds``
    of each other count as equal.  Running it twice in a row transfers
    nothing the second time.
    """

    def __init__(
        self,
        library: RomDirProvider,
        catalog: CatalogProvider,
        tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._library = library
        self._catalog = catalog
        self._tolerance = tolerance_seconds

    def _base_dir(self, game: Game, kind: AssetKind) -> Path:
        return self._library.get_rom_dir(game) / kind.value

    # ── Local scan ──

    def list_local_assets(self, kind: AssetKind, game_id: int) -> list[LocalAsset]:
        game = fetch_game(self._catalog, game_id)
        return self._scan_local(self._base_dir(game, kind))

    def _scan_local(self, base: Path) -> list[LocalAsset]:
        if not base.is_dir():
            return []
        assets: list[LocalAsset] = []
        for core_dir in sorted(base.iterdir(), key=lambda p: p.name):
            if core_dir.name.startswith(".") or not core_dir.is_dir():
                continue
            if core_dir.name == DOLPHIN_CORE_DIR:
                for region in _DOLPHIN_REGIONS:
                    for card in _DOLPHIN_CARDS:
                        rel_core = f"{DOLPHIN_CORE_DIR}/User/GC/{region}/{card}"
                        assets += self._scan_core_dir(rel_core, core_dir / "User" / "GC" / region / card)
            else:
                assets += self._scan_core_dir(core_dir.name, core_dir)
        return assets

    @staticmethod
    def _scan_core_dir(core: str, directory: Path) -> list[LocalAsset]:
        if not directory.is_dir():
            return []
        assets: list[LocalAsset] = []
        for f in sorted(directory.iterdir(), key=lambda p: p.name):
            if f.name.startswith(".") or not f.is_file():
                continue
            try:
                updated_at = datetime.fromtimestamp(f.stat().st_mtime, tz=timezone.utc)
            except OSError:
                updated_at = None
            assets.append(LocalAsset(core=core, name=f.name, updated_at=updated_at))
        return assets

    # ── Server ──

    def list_server_assets(self, kind: AssetKind, game_id: int) -> list[ServerAsset]:
        try:
            return list(self._catalog.list_server_assets(kind, game_id))
        except RetroLaunchError:
            raise
        except Exception as e:
            raise NetworkError(
                f"Failed to list server {kind}", {"game_id": game_id, "error": str(e)}
            ) from e

    # ── Single-asset operations ──

    def upload_asset(self, kind: AssetKind, game_id: int, core: str, filename: str) -> None:
        """Upload one local file; its mtime is then set to now to match the server copy."""
        game = fetch_game(self._catalog, game_id)
        self._upload(kind, game, core, filename)

    def _upload(self, kind: AssetKind, game: Game, core: str, filename: str) -> None:
        path = resolve_asset_path(self._base_dir(game, kind), core, filename)
        try:
            content = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Local {kind} file not found", {"path": str(path)}) from e
        except OSError as e:
            raise RetroLaunchError(
                f"Failed to read local {kind} file", {"path": str(path), "error": str(e)}
            ) from e

        try:
            self._catalog.upload_asset(kind, game.id, sanitize_relative_path(core), path.name, content)
        except RetroLaunchError:
            raise
        except Exception as e:
            raise NetworkError(
                f"Failed to upload {kind} file", {"file": path.name, "error": str(e)}
            ) from e

        _set_mtime(path)
        logger.info(f"Uploaded {kind} {core}/{path.name} for game {game.id}")

    def download_asset(
        self,
        kind: AssetKind,
        game_id: int,
        remote_path: str,
        core: str,
        filename: str = "",
        updated_at: datetime | None = None,
    ) -> Path:
        """
        Download one server file into ``<core>/<filename>``.

        ``filename`` defaults to the server's name without its timestamp suffix.
        With ``updated_at`` the local mtime is set to the server timestamp.
        """
        game = fetch_game(self._catalog, game_id)
        return self._download(kind, game, remote_path, core, filename, updated_at)

    def _download(
        self,
        kind: AssetKind,
        game: Game,
        remote_path: str,
        core: str,
        filename: str,
        updated_at: datetime | None,
    ) -> Path:
        try:
            stream, server_name = self._catalog.download_asset(kind, remote_path)
        except RetroLaunchError:
            raise
        except Exception as e:
            raise NetworkError(
                f"Failed to download {kind} from server", {"path": remote_path, "error": str(e)}
            ) from e

        try:
            name = filename or strip_timestamp_suffix(server_name)
            dest = resolve_asset_path(self._base_dir(game, kind), _local_core(core), name)
            part = dest.with_name(dest.name + ".part")
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(part, "wb") as f:
                    for chunk in stream:
                        f.write(chunk)
                part.replace(dest)
            except OSError as e:
                part.unlink(missing_ok=True)
                raise RetroLaunchError(
                    f"Failed to write local {kind} file", {"path": str(dest), "error": str(e)}
                ) from e
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()

        if updated_at is not None:
            _set_mtime(dest, updated_at)
        logger.info(f"Downloaded {kind} {dest.name} for game {game.id}")
        return dest

    def delete_asset(self, kind: AssetKind, game_id: int, core: str, filename: str) -> bool:
        """Delete one local file.  Returns False if it did not exist."""
        game = fetch_game(self._catalog, game_id)
        path = resolve_asset_path(self._base_dir(game, kind), core, filename)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise RetroLaunchError(
                f"Failed to delete {kind} file", {"path": str(path), "error": str(e)}
            ) from e
        logger.info(f"Deleted {kind} {core}/{path.name} for game {game_id}")
        return True

    # ── Reconciliation ──

    def reconcile_saves(self, game_id: int) -> SyncResult:
        return self.reconcile(AssetKind.SAVES, game_id)

    def reconcile_states(self, game_id: int) -> SyncResult:
        return self.reconcile(AssetKind.STATES, game_id)

    def reconcile(self, kind: AssetKind, game_id: int) -> SyncResult:
        """Bring local and server copies of one asset kind in line.

        Failures of a single file are logged and collected in
        ``SyncResult.errors``; the remaining files are still processed.
        """
        game = fetch_game(self._catalog, game_id)
        local_assets = self._scan_local(self._base_dir(game, kind))
        server_assets = self.list_server_assets(kind, game_id)

        local_by_name: dict[str, LocalAsset] = {}
        for asset in local_assets:
            if asset.name in local_by_name:
                logger.warning(
                    f"{kind} {asset.name} exists under several cores, "
                    f"syncing {local_by_name[asset.name].core}"
                )
                continue
            local_by_name[asset.name] = asset
        server_by_name = _newest(server_assets)

        result = SyncResult()
        for name in dict.fromkeys([*local_by_name, *server_by_name]):
            try:
                action = self._reconcile_one(kind, game, local_by_name.get(name), server_by_name.get(name))
            except Exception as e:
                logger.error(f"Failed to sync {kind} {name} for game {game_id}: {e}")
                result.errors.append(f"{name}: {e}")
                continue
            if action is None:
                continue
            result.actions[name] = action
            if action is SyncAction.UPLOAD:
                result.pushed += 1
            elif action is SyncAction.DOWNLOAD:
                result.pulled += 1
            else:
                result.in_sync += 1

        logger.info(
            f"Reconciled {kind} for game {game_id}: {result.pushed} pushed, "
            f"{result.pulled} pulled, {result.in_sync} in sync, {len(result.errors)} failed"
        )
        return result

    def _reconcile_one(
        self,
        kind: AssetKind,
        game: Game,
        local: LocalAsset | None,
        remote: ServerAsset | None,
    ) -> SyncAction | None:
        if remote is None and local is not None:
            self._upload(kind, game, local.core, local.name)
            return SyncAction.UPLOAD

        if remote is None:
            return None

        if local is None:
            self._download(
                kind, game, remote.full_path, remote.emulator, remote.clean_name, remote.updated_at
            )
            return SyncAction.DOWNLOAD

        if local.updated_at is None and remote.updated_at is None:
            logger.warning(f"No timestamps for {kind} {local.name}, skipping")
            return None

        if remote.updated_at is None:
            push = True
        elif local.updated_at is None:
            push = False
        else:
            delta = (local.updated_at - remote.updated_at).total_seconds()
            if abs(delta) <= self._tolerance:
                return SyncAction.IN_SYNC
            push = delta > 0

        if push:
            self._upload(kind, game, local.core, local.name)
            return SyncAction.UPLOAD
        # Overwrite the local copy where it already lives
        self._download(kind, game, remote.full_path, local.core, local.name, remote.updated_at)
        return SyncAction.DOWNLOAD
