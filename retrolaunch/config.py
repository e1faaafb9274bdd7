"""Persistent settings for the RomM connection, the library and RetroArch."""

from __future__ import annotations

import copy
import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_instance: "Config | None" = None

# Default config directory
_DEFAULT_CONFIG_DIR = Path.home() / "Documents" / "RetroLaunch"

# Names RetroArch binaries go by; a path ending in one is an executable, not a folder
_EXECUTABLE_SUFFIXES = (".exe", ".app")
_EXECUTABLE_NAMES = ("retroarch", "RetroArch")


def default_config_dir() -> Path:
    """Directory holding ``config.json`` and ``logs/`` unless one is passed in."""
    return _DEFAULT_CONFIG_DIR


def get_config() -> Config:
    """Return the process-wide Config, creating it on first use."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Forget the process-wide Config so the next get_config() reloads it."""
    global _instance
    _instance = None


def _merge_into(base: dict, override: dict) -> None:
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            _merge_into(base[key], value)
        else:
            base[key] = value


class Config:
    """Settings stored as ``config.json`` in the config directory."""

    _DEFAULTS: dict[str, Any] = {
        # RomM server
        "romm_host": "",
        "username": "",
        "password": "",
        # Local library
        "library_path": "",
        # RetroArch
        "retroarch_path": "",
        "retroarch_executable": "",
        "cheevos_username": "",
        "cheevos_password": "",
        # Sync
        "sync": {
            "tolerance_seconds": 5,
        },
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._dir = config_dir or default_config_dir()
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._batch_depth = 0
        self._data: dict[str, Any] = self._read()

    def _read(self) -> dict[str, Any]:
        """Defaults overlaid with whatever ``config.json`` holds."""
        data = copy.deepcopy(self._DEFAULTS)
        if not self._path.exists():
            return data
        try:
            stored = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable config {self._path}: {e}")
            return data
        if isinstance(stored, dict):
            _merge_into(data, stored)
        else:
            logger.warning(f"Ignoring config {self._path}: top level is not an object")
        return data

    def _save(self) -> None:
        """Write through a temp file so a crash never leaves half a config."""
        if self._batch_depth:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            staging = self._path.with_suffix(".tmp")
            try:
                staging.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
                staging.replace(self._path)
            except OSError as e:
                logger.error(f"Could not write {self._path}: {e}")
                staging.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Group several changes into one write; nested batches write once at the outermost exit."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``sync.tolerance_seconds``."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Store a dotted key, creating intermediate sections as needed."""
        *sections, leaf = key.split(".")
        node = self._data
        for section in sections:
            child = node.get(section)
            if not isinstance(child, dict):
                child = node[section] = {}
            node = child
        node[leaf] = value
        self._save()

    def update_settings(self, **values: str) -> set[str]:
        """
        Merge user-supplied settings, ignoring empty values.

        A RetroArch path that names the executable itself (``retroarch.exe``,
        ``RetroArch.app``, ``retroarch``) also updates ``retroarch_path`` to its
        folder.  Returns the keys whose value actually changed.
        """
        changed: set[str] = set()

        def _apply(key: str, value: str) -> None:
            if value and self._data.get(key) != value:
                self._data[key] = value
                changed.add(key)

        with self.batch_update():
            for key in ("romm_host", "username", "password", "library_path",
                        "cheevos_username", "cheevos_password"):
                _apply(key, values.get(key, ""))

            exe = values.get("retroarch_executable", "")
            folder = values.get("retroarch_path", "")
            if not exe and folder and self._looks_like_executable(folder):
                exe = folder
            if exe:
                _apply("retroarch_executable", exe)
                _apply("retroarch_path", str(Path(exe).parent))
            elif folder:
                _apply("retroarch_path", folder)

        return changed

    @staticmethod
    def _looks_like_executable(path: str) -> bool:
        p = Path(path)
        return p.suffix.lower() in _EXECUTABLE_SUFFIXES or p.name in _EXECUTABLE_NAMES

    # ── Typed properties ──

    @property
    def config_dir(self) -> Path:
        return self._dir

    @property
    def romm_host(self) -> str:
        return self._data.get("romm_host", "")

    @property
    def username(self) -> str:
        return self._data.get("username", "")

    @property
    def password(self) -> str:
        return self._data.get("password", "")

    @property
    def library_path(self) -> Path | None:
        raw = self._data.get("library_path", "")
        return Path(raw) if raw else None

    @library_path.setter
    def library_path(self, value: Path | None) -> None:
        self.set("library_path", str(value) if value else "")

    @property
    def retroarch_executable(self) -> Path | None:
        """Configured executable, falling back to the RetroArch folder."""
        raw = self._data.get("retroarch_executable", "") or self._data.get("retroarch_path", "")
        return Path(raw) if raw else None

    @retroarch_executable.setter
    def retroarch_executable(self, value: Path | None) -> None:
        with self.batch_update():
            self.set("retroarch_executable", str(value) if value else "")
            self.set("retroarch_path", str(value.parent) if value else "")

    @property
    def retroarch_path(self) -> Path | None:
        raw = self._data.get("retroarch_path", "")
        return Path(raw) if raw else None

    @property
    def cheevos_credentials(self) -> tuple[str, str]:
        return (
            self._data.get("cheevos_username", ""),
            self._data.get("cheevos_password", ""),
        )

    @property
    def sync_tolerance_seconds(self) -> float:
        return float(self.get("sync.tolerance_seconds", 5))
