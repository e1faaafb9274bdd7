"""Qt bridge for engine events — lets a PySide6 front-end connect slots to launches and downloads."""

from __future__ import annotations

from typing import Any

from loguru import logger
from PySide6.QtCore import QObject, Signal

from retrolaunch.events import (
    EVENT_DOWNLOAD_PROGRESS,
    EVENT_GAME_EXITED,
    EVENT_GAME_STARTED,
    EVENT_PLAY_STATUS,
)


class QtEventSink(QObject):
    """
    :class:`~retrolaunch.events.EventSink` that re-emits events as Qt signals.

    ``game-exited`` is emitted from the launch thread; Qt queues it to
    receivers living in the GUI thread.
    """

    game_started = Signal()
    game_exited = Signal()
    play_status = Signal(str)
    download_progress = Signal(int, float)  # game id, percentage

    def emit(self, event: str, payload: Any = None) -> None:
        if event == EVENT_GAME_STARTED:
            self.game_started.emit()
        elif event == EVENT_GAME_EXITED:
            self.game_exited.emit()
        elif event == EVENT_PLAY_STATUS:
            self.play_status.emit(str(payload or ""))
        elif event == EVENT_DOWNLOAD_PROGRESS:
            data = payload or {}
            self.download_progress.emit(int(data.get("game_id", 0)), float(data.get("percentage", 0.0)))
        else:
            logger.debug(f"Unhandled event: {event}")
