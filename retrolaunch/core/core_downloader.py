"""Core downloader — fetch missing libretro cores from the libretro buildbot."""

from __future__ import annotations

import platform
import shutil
import subprocess
import zipfile
from pathlib import Path

import httpx
from loguru import logger

from retrolaunch.errors import CoreDownloadError
from retrolaunch.utils import format_size

BUILDBOT_URL = "https://buildbot.libretro.com/nightly/{os}/{arch}/latest/{core_file}.zip"

_BUILDBOT_OS = {
    "Windows": "windows",
    "Darwin": "apple/osx",
    "Linux": "linux",
}

# platform.machine() spellings → architecture family
_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
}


def buildbot_os(system: str | None = None) -> str:
    system = system or platform.system()
    try:
        return _BUILDBOT_OS[system]
    except KeyError:
        raise CoreDownloadError("Unsupported OS for core downloads", {"os": system}) from None


def buildbot_arch(machine: str | None = None, system: str | None = None) -> str:
    """Buildbot directory name for a CPU architecture.

    64-bit ARM is ``arm64`` on macOS and ``aarch64`` everywhere else.
    """
    machine = machine or platform.machine()
    system = system or platform.system()
    family = _ARCH_ALIASES.get(machine.lower())
    if family is None:
        raise CoreDownloadError("Unsupported arch for core downloads", {"arch": machine})
    if family == "arm64" and system != "Darwin":
        return "aarch64"
    return family


def detect_executable_arch(executable: Path) -> str | None:
    """
    Architecture of a macOS RetroArch binary according to ``file``.

    An Intel build running under Rosetta on Apple Silicon needs x86_64 cores.
    Returns ``None`` for universal binaries or when ``file`` is unavailable.
    """
    try:
        result = subprocess.run(
            ["file", str(executable)], capture_output=True, text=True, timeout=10, check=False
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not inspect {executable} with file: {e}")
        return None

    output = result.stdout
    has_x86 = "x86_64" in output
    has_arm = "arm64" in output
    if has_x86 and not has_arm:
        return "x86_64"
    if has_arm and not has_x86:
        return "arm64"
    return None


class CoreDownloader:
    """Downloads ``<core><libsuffix>.zip`` from the buildbot and unpacks it into the cores dir."""

    def __init__(self, transport: httpx.BaseTransport | None = None, timeout: float = 120) -> None:
        self._transport = transport
        self._timeout = timeout

    def _http_client(self) -> httpx.Client:
        kwargs: dict = {"timeout": self._timeout, "follow_redirects": True}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    @staticmethod
    def build_url(core_file: str, system: str | None = None, machine: str | None = None) -> str:
        return BUILDBOT_URL.format(
            os=buildbot_os(system),
            arch=buildbot_arch(machine, system),
            core_file=core_file,
        )

    def download(
        self,
        core_file: str,
        cores_dir: Path,
        machine: str | None = None,
        system: str | None = None,
    ) -> Path:
        """
        Fetch ``core_file`` (e.g. ``snes9x_libretro.so``) into ``cores_dir``.

        ``machine`` overrides the host architecture (used for Rosetta builds).
        Returns the path of the unpacked core.
        """
        url = self.build_url(core_file, system, machine)
        cores_dir.mkdir(parents=True, exist_ok=True)
        zip_path = cores_dir / f"{core_file}.zip"

        logger.info(f"Downloading core {core_file} from {url}")
        try:
            with self._http_client() as client, client.stream("GET", url) as resp:
                if resp.status_code != httpx.codes.OK:
                    raise CoreDownloadError(
                        "Core download failed",
                        {"url": url, "status": resp.status_code},
                    )
                with open(zip_path, "wb") as f:
                    for chunk in resp.iter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            zip_path.unlink(missing_ok=True)
            raise CoreDownloadError("Core download failed", {"url": url, "error": str(e)}) from e
        except (CoreDownloadError, OSError):
            zip_path.unlink(missing_ok=True)
            raise

        try:
            logger.debug(f"Downloaded {zip_path.name} ({format_size(zip_path.stat().st_size)})")
            self._unzip(zip_path, cores_dir)
        finally:
            zip_path.unlink(missing_ok=True)

        core_path = cores_dir / core_file
        logger.info(f"Installed core: {core_path}")
        return core_path

    @staticmethod
    def _unzip(src: Path, dest: Path) -> None:
        """Extract ``src`` into ``dest``, refusing members that would land outside it."""
        root = dest.resolve()
        try:
            with zipfile.ZipFile(src) as zf:
                for info in zf.infolist():
                    target = (root / info.filename).resolve()
                    try:
                        target.relative_to(root)
                    except ValueError:
                        raise CoreDownloadError(
                            "Illegal file path in core archive", {"member": info.filename}
                        ) from None
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src_f, open(target, "wb") as dst_f:
                        shutil.copyfileobj(src_f, dst_f)
        except (zipfile.BadZipFile, OSError) as e:
            raise CoreDownloadError("Failed to unpack core", {"archive": str(src), "error": str(e)}) from e
