"""Exception hierarchy for launch orchestration and save synchronization."""

from __future__ import annotations

from typing import Any


class RetroLaunchError(Exception):
    """Base class for all retrolaunch errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(RetroLaunchError):
    """Library path or RetroArch executable is not configured."""


class NotFoundError(RetroLaunchError):
    """No playable ROM file was found."""


class ArchiveError(RetroLaunchError):
    """Archive could not be read or holds no recognizable ROM."""


class CoreResolutionError(RetroLaunchError):
    """No core is mapped to the ROM and none was requested."""


class CoreDownloadError(RetroLaunchError):
    """Fetching or unpacking a core from the buildbot failed."""


class LaunchError(RetroLaunchError):
    """RetroArch executable is missing or could not be started."""


class PathTraversalError(RetroLaunchError):
    """A core or filename would escape its save/state directory."""


class NetworkError(RetroLaunchError):
    """A catalog API call failed."""
