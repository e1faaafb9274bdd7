"""Event sink interface — fire-and-forget lifecycle signals for the UI."""

from __future__ import annotations

from typing import Any, Protocol

from loguru import logger

EVENT_PLAY_STATUS = "play-status"
EVENT_GAME_STARTED = "game-started"
EVENT_GAME_EXITED = "game-exited"
EVENT_DOWNLOAD_PROGRESS = "download-progress"


class EventSink(Protocol):
    """Receives UI events.  Implementations must not block and must be thread-safe."""

    def emit(self, event: str, payload: Any = None) -> None: ...


class LoggingEventSink:
    """Default sink when no UI is attached — events only go to the log."""

    def emit(self, event: str, payload: Any = None) -> None:
        if payload is None:
            logger.debug(f"Event: {event}")
        else:
            logger.debug(f"Event: {event} {payload}")
