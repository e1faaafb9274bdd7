"""Launch session model — one spawned RetroArch process and its temp files."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger


@dataclass
class LaunchSession:
    """
    State of a single emulator run.

    ``temp_config`` and ``temp_rom`` are owned by this session alone and are
    removed by :meth:`cleanup`, which is safe to call more than once.
    """

    executable: Path
    base_dir: Path
    rom_path: Path  # ROM as found on disk, before any archive rewriting
    rom_ref: str = ""  # What RetroArch receives: path, "archive.zip#member" or temp file
    core_name: str = ""
    core_path: Path | None = None
    saves_dir: Path | None = None
    states_dir: Path | None = None
    temp_config: Path | None = None
    temp_rom: Path | None = None
    return_code: int | None = None
    _cleaned: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)

    @property
    def command(self) -> list[str]:
        """Argument vector passed to RetroArch."""
        args = [str(self.executable), "-L", str(self.core_path), "-f", "-v"]
        if self.temp_config is not None:
            args += ["--appendconfig", str(self.temp_config)]
        args.append(self.rom_ref)
        return args

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def attach(self, thread: threading.Thread) -> None:
        self._thread = thread

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the emulator has exited.  Returns False on timeout."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def cleanup(self) -> None:
        """Remove the throwaway config and any temp ROM copy (once)."""
        with self._lock:
            if self._cleaned:
                return
            self._cleaned = True

        for path in (self.temp_config, self.temp_rom):
            if path is None:
                continue
            try:
                path.unlink(missing_ok=True)
                logger.debug(f"Removed temp file: {path}")
            except OSError as e:
                logger.error(f"Failed to remove temp file {path}: {e}")
