"""Shared utility functions."""

from __future__ import annotations

import posixpath
import re
from datetime import datetime, timezone

_DRIVE_RE = re.compile(r"^[A-Za-z]:")

# Formats tried after datetime.fromisoformat()
_TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

# Nanosecond fractions are trimmed to microseconds before parsing
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def sanitize_relative_path(path: str) -> str:
    """Turn a server-supplied path into a relative, traversal-free path.

    Drive prefixes and leading slashes are dropped, inner ``..`` segments are
    collapsed and leading ``..`` segments removed.  Returns ``"."`` when
    nothing is left.  The result always uses forward slashes.

    "../../etc/passwd" → "etc/passwd", "C:/Users/test" → "Users/test"
    """
    p = path.replace("\\", "/")
    p = _DRIVE_RE.sub("", p)
    p = posixpath.normpath(p) if p else "."

    while p == ".." or p.startswith("../"):
        p = p[3:] if p.startswith("../") else "."

    p = p.lstrip("/")
    if not p or p == ".":
        return "."
    return p


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 / ISO 8601 / DB-style timestamp.

    Naive values are taken as UTC.  Raises ``ValueError`` if no format fits.
    """
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    raw = _FRACTION_RE.sub(r".\1", raw)

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        raise ValueError(f"Failed to parse timestamp {value!r} with any supported format")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
