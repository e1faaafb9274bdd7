"""RetroArch launch orchestrator — pre-flight checks, throwaway config, background run."""

from __future__ import annotations

import os
import platform
import posixpath
import re
import shutil
import subprocess
import tempfile
import threading
import zipfile
from pathlib import Path, PurePosixPath

from loguru import logger

from retrolaunch.core.core_downloader import CoreDownloader, detect_executable_arch
from retrolaunch.core.cores import (
    ARCHIVE_EXTENSION,
    PICO8_CART_EXTENSION,
    PICO8_CORE,
    core_library_suffix,
    default_core,
)
from retrolaunch.core.rom_locator import archive_rom_member
from retrolaunch.errors import (
    ArchiveError,
    ConfigurationError,
    CoreDownloadError,
    CoreResolutionError,
    LaunchError,
    NotFoundError,
)
from retrolaunch.events import (
    EVENT_GAME_EXITED,
    EVENT_GAME_STARTED,
    EVENT_PLAY_STATUS,
    EventSink,
    LoggingEventSink,
)
from retrolaunch.models.launch import LaunchSession
from retrolaunch.utils import sanitize_relative_path

# Executable names searched for when a directory is configured, per OS
_EXECUTABLE_NAMES = {
    "Windows": ("retroarch.exe",),
    "Darwin": ("RetroArch.app", "RetroArch", "retroarch"),
}
_DEFAULT_EXECUTABLE_NAMES = ("retroarch", "RetroArch")

_BUNDLE_BINARY = Path("Contents") / "MacOS" / "RetroArch"

_CORE_SUFFIXES = (".dll", ".dylib", ".so")

_CHEEVOS_TOKEN_RE = re.compile(r"^[ \t]*cheevos_token[ \t]*=[^\r\n]*", re.IGNORECASE | re.MULTILINE)

# Characters that would end a quoted cfg value and start a new key
_CFG_UNSAFE_CHARS = frozenset("\"\r\n")


def _mac_support_dir(home: Path) -> Path:
    return home / "Library" / "Application Support" / "RetroArch"


class RetroArchLauncher:
    """
    Launches RetroArch for a single ROM.

    :meth:`launch` runs every pre-flight step synchronously and raises on the
    first failure; once RetroArch has been spawned it returns a
    :class:`LaunchSession` while a daemon thread waits for the process, logs
    its output, removes the session's temp files and emits ``game-exited``.
    """

    def __init__(
        self,
        events: EventSink | None = None,
        downloader: CoreDownloader | None = None,
        system: str | None = None,
        home: Path | None = None,
    ) -> None:
        self._events = events or LoggingEventSink()
        self._downloader = downloader or CoreDownloader()
        self._system = system or platform.system()
        self._home = home

    @property
    def home(self) -> Path:
        return self._home or Path.home()

    # ── Executable & core locations ──

    def resolve_executable(self, path: Path) -> tuple[Path, Path]:
        """
        Resolve a configured RetroArch path to ``(executable, base_dir)``.

        Accepts the binary itself, the folder containing it, or a macOS
        ``RetroArch.app`` bundle (whose folder becomes the base dir).
        """
        if path.is_dir():
            if path.suffix.lower() == ".app":
                return self._check_executable(path / _BUNDLE_BINARY), path

            names = _EXECUTABLE_NAMES.get(self._system, _DEFAULT_EXECUTABLE_NAMES)
            for name in names:
                candidate = path / name
                if name.endswith(".app") and candidate.is_dir():
                    return self._check_executable(candidate / _BUNDLE_BINARY), candidate
                if candidate.is_file():
                    return candidate, path
            raise LaunchError("RetroArch executable not found in directory", {"path": str(path)})

        exe = self._check_executable(path)
        if ".app/Contents/MacOS" in exe.as_posix():
            return exe, exe.parents[2]
        return exe, exe.parent

    @staticmethod
    def _check_executable(path: Path) -> Path:
        if not path.is_file():
            raise LaunchError("RetroArch executable not found", {"path": str(path)})
        return path

    def cores_dir(self, base_dir: Path) -> Path:
        if self._system == "Darwin":
            return _mac_support_dir(self.home) / "cores"
        return base_dir / "cores"

    # ── Launch ──

    def launch(
        self,
        executable: Path | str,
        rom_path: Path | str,
        cheevos_user: str = "",
        cheevos_pass: str = "",
        core_override: str = "",
        platform_hint: str = "",
    ) -> LaunchSession:
        """
        Launch ``rom_path`` with RetroArch.

        Raises :class:`LaunchError`, :class:`ArchiveError`,
        :class:`CoreResolutionError`, :class:`CoreDownloadError` or
        :class:`NotFoundError` before anything is spawned.  Temp files created
        up to the failing step are removed.
        """
        exe, base_dir = self.resolve_executable(Path(executable))
        rom = Path(rom_path)
        if not rom.is_file():
            raise NotFoundError("ROM file not found", {"path": str(rom)})

        session = LaunchSession(executable=exe, base_dir=base_dir, rom_path=rom, rom_ref=str(rom))
        try:
            self._prepare(session, cheevos_user, cheevos_pass, core_override, platform_hint)
        except BaseException:
            session.cleanup()
            raise

        self._spawn(session)
        return session

    def _prepare(
        self,
        session: LaunchSession,
        cheevos_user: str,
        cheevos_pass: str,
        core_override: str,
        platform_hint: str,
    ) -> None:
        rom = session.rom_path
        ext = rom.suffix.lower()
        override = self._sanitize_core(core_override)

        member = ""
        if ext == ARCHIVE_EXTENSION:
            member = archive_rom_member(rom)
            ext = PurePosixPath(member).suffix.lower()
            logger.info(f"Found {member} inside {rom.name}")

        core_name = override or default_core(ext, platform_hint)
        if not core_name:
            raise CoreResolutionError("No default core mapping found for extension", {"extension": ext})
        session.core_name = core_name

        # RetroArch opens .png as an image unless the cart is handed over as .p8
        is_pico8_cart = ext == PICO8_CART_EXTENSION and core_name == PICO8_CORE
        if member:
            if is_pico8_cart:
                self._extract_pico8(session, member)
            else:
                session.rom_ref = f"{rom}#{member}"
        elif is_pico8_cart:
            self._link_pico8(session)

        session.core_path = self._ensure_core(session)

        session.saves_dir = rom.parent / "saves"
        session.states_dir = rom.parent / "states"
        session.saves_dir.mkdir(parents=True, exist_ok=True)
        session.states_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saves dir: {session.saves_dir}, States dir: {session.states_dir}")

        self._write_temp_config(session, cheevos_user, cheevos_pass)

    @staticmethod
    def _sanitize_core(core_override: str) -> str:
        """Reduce a user-chosen core to a bare name (``"../../evil"`` → ``"evil"``)."""
        if not core_override.strip():
            return ""
        name = posixpath.basename(sanitize_relative_path(core_override.strip()))
        for suffix in _CORE_SUFFIXES:
            name = name.removesuffix(suffix)
        if name in ("", ".", ".."):
            raise CoreResolutionError("Invalid core name", {"core": core_override})
        return name

    @staticmethod
    def _extract_pico8(session: LaunchSession, member: str) -> None:
        fd, name = tempfile.mkstemp(prefix="pico8_", suffix=".p8")
        session.temp_rom = Path(name)
        try:
            with os.fdopen(fd, "wb") as out, zipfile.ZipFile(session.rom_path) as zf:
                with zf.open(member) as src:
                    shutil.copyfileobj(src, out)
        except (zipfile.BadZipFile, KeyError, OSError) as e:
            raise ArchiveError(
                "Failed to extract Pico-8 cart", {"archive": str(session.rom_path), "error": str(e)}
            ) from e
        session.rom_ref = str(session.temp_rom)
        logger.info(f"Extracted Pico-8 cart to {session.temp_rom}")

    @staticmethod
    def _link_pico8(session: LaunchSession) -> None:
        rom = session.rom_path
        link = rom.with_name(rom.name + ".p8")
        try:
            link.unlink(missing_ok=True)
            try:
                os.link(rom, link)
            except OSError:
                shutil.copy2(rom, link)
        except OSError as e:
            logger.error(f"Failed to create .p8 alias for {rom.name}, using original path: {e}")
            return
        session.temp_rom = link
        session.rom_ref = str(link)
        logger.info(f"Created temporary {link.name} for Pico-8 cart")

    def _ensure_core(self, session: LaunchSession) -> Path:
        core_file = session.core_name + core_library_suffix(self._system)
        cores_dir = self.cores_dir(session.base_dir)
        core_path = cores_dir / core_file
        if core_path.is_file():
            return core_path

        self._events.emit(
            EVENT_PLAY_STATUS,
            f"Emulator core {core_file} not found locally. Attempting to download...",
        )
        machine = None
        if self._system == "Darwin":
            machine = detect_executable_arch(session.executable)
        self._downloader.download(core_file, cores_dir, machine=machine, system=self._system)

        if not core_path.is_file():
            raise CoreDownloadError("Core missing after download", {"core": str(core_path)})
        return core_path

    @staticmethod
    def _write_temp_config(session: LaunchSession, cheevos_user: str, cheevos_pass: str) -> None:
        for key, value in (("cheevos_username", cheevos_user), ("cheevos_password", cheevos_pass)):
            if _CFG_UNSAFE_CHARS.intersection(value):
                raise ConfigurationError(
                    "RetroAchievements credentials may not contain quotes or line breaks", {"key": key}
                )
        lines = [
            f'savefile_directory = "{session.saves_dir}"',
            f'savestate_directory = "{session.states_dir}"',
        ]
        if cheevos_user and cheevos_pass:
            lines += [
                'cheevos_enable = "true"',
                f'cheevos_username = "{cheevos_user}"',
                f'cheevos_password = "{cheevos_pass}"',
            ]
        # Keep RetroArch from persisting these paths into the user's main config
        lines.append('config_save_on_exit = "false"')
        content = "\n".join(lines) + "\n"

        try:
            fd, name = tempfile.mkstemp(prefix="retroarch_config_", suffix=".cfg")
        except OSError as e:
            raise LaunchError("Failed to create temporary config", {"error": str(e)}) from e
        session.temp_config = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise LaunchError(
                "Failed to write temporary config", {"path": name, "error": str(e)}
            ) from e
        logger.debug(f"Temporary config {name}:\n{content}")

    # ── Process lifecycle ──

    def _spawn(self, session: LaunchSession) -> None:
        self._events.emit(EVENT_GAME_STARTED)
        logger.info(
            f"Launching RetroArch: exe={session.executable} core={session.core_path} "
            f"rom={session.rom_ref} cwd={session.base_dir}"
        )
        try:
            proc = subprocess.Popen(
                session.command,
                cwd=session.base_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            session.cleanup()
            self._events.emit(EVENT_GAME_EXITED)
            raise LaunchError(
                "Failed to start RetroArch", {"exe": str(session.executable), "error": str(e)}
            ) from e

        thread = threading.Thread(
            target=self._wait, args=(session, proc), name=f"retroarch-{proc.pid}", daemon=True
        )
        session.attach(thread)
        thread.start()

    def _wait(self, session: LaunchSession, proc: subprocess.Popen) -> None:
        try:
            out, _ = proc.communicate()
            session.return_code = proc.returncode
            output = out.decode("utf-8", errors="replace") if out else ""
            if proc.returncode:
                logger.error(f"RetroArch exited with code {proc.returncode}\n{output}")
            else:
                logger.info("RetroArch exited")
                logger.debug(f"RetroArch output:\n{output}")
        except Exception as e:
            logger.error(f"Error while waiting for RetroArch: {e}")
        finally:
            session.cleanup()
            self._events.emit(EVENT_GAME_EXITED)


def clear_cheevos_token(
    executable: Path | str | None,
    system: str | None = None,
    home: Path | None = None,
) -> list[Path]:
    """
    Blank ``cheevos_token`` in every RetroArch config we can find.

    Forces RetroArch to log in again with new RetroAchievements credentials.
    Looks next to the executable, then in the OS-specific config locations.
    Returns the files that were rewritten.
    """
    system = system or platform.system()
    home = home or Path.home()

    candidates: list[Path] = []
    if executable:
        exe = Path(executable)
        if exe.is_dir():
            candidates.append(exe / "retroarch.cfg")
        elif exe.exists():
            candidates.append(exe.parent / "retroarch.cfg")

    if system == "Linux":
        candidates.append(home / ".config" / "retroarch" / "retroarch.cfg")
    elif system == "Darwin":
        candidates.append(_mac_support_dir(home) / "config" / "retroarch.cfg")
    elif system == "Windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            candidates.append(Path(appdata) / "RetroArch" / "retroarch.cfg")

    rewritten: list[Path] = []
    for path in dict.fromkeys(candidates):
        if not path.is_file():
            continue
        try:
            with open(path, encoding="utf-8", newline="") as f:
                content = f.read()
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            continue

        updated = _CHEEVOS_TOKEN_RE.sub('cheevos_token = ""', content)
        if updated == content:
            continue
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(updated)
        except OSError as e:
            raise ConfigurationError(
                "Failed to write updated retroarch.cfg", {"path": str(path), "error": str(e)}
            ) from e
        logger.info(f"Cleared cheevos_token in {path}")
        rewritten.append(path)
    return rewritten
