"""Loguru sinks for the console and the rotating retrolaunch.log file."""

from __future__ import annotations

import re
import sys
from pathlib import Path

from loguru import logger

# RetroAchievements passwords must never reach a log sink
_SECRET_RE = re.compile(r'(cheevos_password\s*=\s*)"[^"]*"')


def _redact_secrets(record: dict) -> None:
    record["message"] = _SECRET_RE.sub(r'\1"********"', record["message"])


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> None:
    """Replace loguru's default handler with the app sinks; ``verbose`` lowers the console to DEBUG."""
    logger.remove()
    logger.configure(patcher=_redact_secrets)

    # Console
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}",
        colorize=True,
    )

    # File
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "retrolaunch.log"),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {name}:{line} | {message}",
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
        )
