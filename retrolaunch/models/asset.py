"""Save / save-state asset models and sync results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from retrolaunch.utils import parse_timestamp

# RomM appends " [2024-01-01_12-00-00]" (or "...-00-1]") to uploaded file names
TIMESTAMP_SUFFIX_RE = re.compile(r" \[\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}(?:-\d+)?\]")


def strip_timestamp_suffix(filename: str) -> str:
    """Remove RomM's embedded upload timestamp from a file name."""
    return TIMESTAMP_SUFFIX_RE.sub("", filename)


class AssetKind(StrEnum):
    """Asset category — also the subdirectory name under the game folder."""

    SAVES = "saves"
    STATES = "states"


@dataclass
class LocalAsset:
    """Save or state file on disk under ``{saves|states}/<core>/<name>``."""

    core: str
    name: str
    updated_at: datetime | None = None


@dataclass
class ServerAsset:
    """Save or state file stored on the RomM server."""

    file_name: str
    full_path: str  # Remote handle used for downloading
    emulator: str = ""
    updated_at: datetime | None = None
    id: int = 0
    file_size: int = 0

    @property
    def clean_name(self) -> str:
        return strip_timestamp_suffix(self.file_name)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ServerAsset:
        """Build a ServerAsset from a RomM save/state payload."""
        raw_time = data.get("updated_at") or ""
        try:
            updated_at = parse_timestamp(raw_time) if raw_time else None
        except ValueError:
            updated_at = None
        return cls(
            file_name=data.get("file_name", ""),
            full_path=data.get("full_path", ""),
            emulator=data.get("emulator") or "",
            updated_at=updated_at,
            id=int(data.get("id", 0)),
            file_size=int(data.get("file_size_bytes", 0)),
        )


class SyncAction(StrEnum):
    """Decision taken for one logical asset name."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    IN_SYNC = "in_sync"


@dataclass
class SyncResult:
    """Result of a reconciliation run."""

    pushed: int = 0
    pulled: int = 0
    in_sync: int = 0
    actions: dict[str, SyncAction] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def transfers(self) -> int:
        return self.pushed + self.pulled
