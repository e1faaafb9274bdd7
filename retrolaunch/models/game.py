"""Catalog game and platform models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Platform:
    """Gaming platform as reported by RomM."""

    id: int = 0
    name: str = ""
    slug: str = ""
    rom_count: int = 0


@dataclass
class Game:
    """A ROM from the RomM library.  Read-only input for launching and syncing."""

    id: int
    title: str = ""
    full_path: str = ""  # Relative to the library root, e.g. "snes/Chrono Trigger.sfc"
    platform: Platform = field(default_factory=Platform)
    file_size: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Game:
        """Build a Game from a RomM ``/api/roms/{id}`` payload.

        Platform info is read from a nested ``platform`` object when present,
        otherwise from the flat ``platform_*`` fields.
        """
        nested = data.get("platform")
        if isinstance(nested, dict):
            platform = Platform(
                id=int(nested.get("id", 0)),
                name=nested.get("name", ""),
                slug=nested.get("slug", ""),
                rom_count=int(nested.get("rom_count", 0)),
            )
        else:
            platform = Platform(
                id=int(data.get("platform_id", 0)),
                name=data.get("platform_name") or data.get("platform_display_name", ""),
                slug=data.get("platform_slug", ""),
            )
        return cls(
            id=int(data.get("id", 0)),
            title=data.get("name", ""),
            full_path=data.get("full_path", ""),
            platform=platform,
            file_size=int(data.get("fs_size_bytes", 0)),
        )
