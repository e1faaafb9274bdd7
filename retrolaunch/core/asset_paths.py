"""Save/state path sanitizer — every asset read or write resolves through here."""

from __future__ import annotations

import posixpath
from pathlib import Path

from retrolaunch.errors import PathTraversalError
from retrolaunch.utils import sanitize_relative_path

_REJECTED_NAMES = ("", ".", "..")


def _component(value: str, label: str) -> str:
    """Reduce a server-supplied value to a single safe path component."""
    name = posixpath.basename(sanitize_relative_path(value))
    if name in _REJECTED_NAMES:
        raise PathTraversalError(f"Invalid {label}", {label: value})
    return name


def validate_asset_path(core: str, filename: str) -> tuple[str, str]:
    """
    Reduce a core name and a file name to their base names.

    Both Windows and POSIX separators, drive prefixes and ``..`` segments are
    dropped first.  Raises :class:`PathTraversalError` if either part ends up
    empty, ``.`` or ``..``.

    ``("../../etc", "passwd")`` → ``("etc", "passwd")``
    """
    return _component(core, "core"), _component(filename, "filename")


def resolve_asset_path(base_dir: Path, core: str, filename: str) -> Path:
    """
    Absolute path of ``<base_dir>/<core>/<filename>``, guaranteed inside ``base_dir``.

    ``core`` may span several directories (Dolphin memory cards live under
    ``dolphin-emu/User/GC/USA/Card A``); every segment is validated on its own.
    """
    rel_core = sanitize_relative_path(core)
    if rel_core == ".":
        raise PathTraversalError("Invalid core", {"core": core})

    segments = [_component(part, "core") for part in rel_core.split("/")]
    name = _component(filename, "filename")

    base = base_dir.resolve()
    target = base.joinpath(*segments, name).resolve()
    try:
        target.relative_to(base)
    except ValueError as e:
        raise PathTraversalError(
            "Asset path escapes its directory",
            {"base": str(base), "core": core, "filename": filename},
        ) from e
    return target
