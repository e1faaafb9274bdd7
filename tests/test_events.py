"""Tests for event sinks and logging setup."""

from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from retrolaunch.events import (
    EVENT_DOWNLOAD_PROGRESS,
    EVENT_GAME_EXITED,
    EVENT_GAME_STARTED,
    EVENT_PLAY_STATUS,
    LoggingEventSink,
)
from retrolaunch.logger import setup_logger
from retrolaunch.ui.qt_events import QtEventSink


@pytest.fixture
def log_dir(tmp_path: Path):
    setup_logger(tmp_path, verbose=True)
    yield tmp_path
    logger.remove()


class TestLogger:
    def test_file_sink_written(self, log_dir: Path) -> None:
        logger.debug("core download started")
        assert "core download started" in (log_dir / "retrolaunch.log").read_text(encoding="utf-8")

    def test_cheevos_password_redacted(self, log_dir: Path) -> None:
        logger.debug('Temporary config:\ncheevos_username = "alice"\ncheevos_password = "hunter2"')
        text = (log_dir / "retrolaunch.log").read_text(encoding="utf-8")
        assert "hunter2" not in text
        assert 'cheevos_password = "********"' in text
        assert 'cheevos_username = "alice"' in text

    def test_logging_sink(self, log_dir: Path) -> None:
        LoggingEventSink().emit(EVENT_PLAY_STATUS, "Downloading core")
        assert "play-status Downloading core" in (log_dir / "retrolaunch.log").read_text(encoding="utf-8")


class TestQtEventSink:
    def test_signals_emitted(self) -> None:
        sink = QtEventSink()
        received: list[tuple] = []
        sink.game_started.connect(lambda: received.append(("started",)))
        sink.game_exited.connect(lambda: received.append(("exited",)))
        sink.play_status.connect(lambda text: received.append(("status", text)))
        sink.download_progress.connect(lambda gid, pct: received.append(("progress", gid, pct)))

        sink.emit(EVENT_GAME_STARTED)
        sink.emit(EVENT_PLAY_STATUS, "Attempting to download...")
        sink.emit(EVENT_DOWNLOAD_PROGRESS, {"game_id": 42, "percentage": 50.0})
        sink.emit(EVENT_GAME_EXITED)
        sink.emit("unknown-event")

        assert received == [
            ("started",),
            ("status", "Attempting to download..."),
            ("progress", 42, 50.0),
            ("exited",),
        ]
