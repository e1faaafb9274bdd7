"""Application entry point — wires services and runs the command line."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from retrolaunch.config import Config, default_config_dir, get_config
from retrolaunch.context import AppContext
from retrolaunch.core.cores import cores_for_extension, cores_for_platform, identify_platform
from retrolaunch.core.game_launcher import GameLauncher
from retrolaunch.core.library import LibraryService
from retrolaunch.core.retroarch import RetroArchLauncher, clear_cheevos_token
from retrolaunch.core.rom_locator import archive_rom_member, cores_in_archive
from retrolaunch.core.sync import SyncService
from retrolaunch.errors import ConfigurationError, RetroLaunchError
from retrolaunch.events import EventSink, LoggingEventSink
from retrolaunch.logger import setup_logger

_CHEEVOS_KEYS = {"cheevos_username", "cheevos_password"}


def create_context(
    catalog=None,
    config: Config | None = None,
    events: EventSink | None = None,
) -> AppContext:
    """Wire all services and return an AppContext.

    ``catalog`` is the RomM client; without one only direct ROM launching is available.
    """
    config = config or get_config()
    events = events or LoggingEventSink()
    retroarch = RetroArchLauncher(events)

    ctx = AppContext(config=config, events=events, retroarch=retroarch)
    if catalog is not None:
        ctx.library = LibraryService(config, catalog, events)
        ctx.game_launcher = GameLauncher(config, ctx.library, retroarch)
        ctx.sync = SyncService(ctx.library, catalog, config.sync_tolerance_seconds)
    return ctx


# ── Commands ──


def _cmd_launch(ctx: AppContext, args: argparse.Namespace) -> int:
    exe = Path(args.exe) if args.exe else ctx.config.retroarch_executable
    if exe is None:
        raise ConfigurationError("RetroArch is not configured, pass --exe or run 'configure'")
    user, password = ctx.config.cheevos_credentials
    session = ctx.retroarch.launch(
        exe,
        args.rom,
        cheevos_user=user,
        cheevos_pass=password,
        core_override=args.core or "",
        platform_hint=args.platform or "",
    )
    session.wait()
    return session.return_code or 0


def _cmd_cores(ctx: AppContext, args: argparse.Namespace) -> int:
    target = args.target
    platform = ""
    if target.startswith("."):
        cores = cores_for_extension(target)
    else:
        cores = cores_for_platform(target)
        if cores:
            platform = identify_platform(target) or target.lower()
        else:
            cores = cores_for_extension(target)
    if not cores:
        print(f"No cores known for {target!r}")
        return 1
    if platform:
        print(f"Platform: {platform}")
    for i, core in enumerate(cores):
        print(f"{core}{'  (default)' if i == 0 else ''}")
    return 0


def _cmd_inspect(ctx: AppContext, args: argparse.Namespace) -> int:
    archive = Path(args.archive)
    member = archive_rom_member(archive)
    print(f"ROM: {archive}#{member}")
    for core in cores_in_archive(archive):
        print(f"  {core}")
    return 0


def _cmd_clear_token(ctx: AppContext, args: argparse.Namespace) -> int:
    exe = args.exe or ctx.config.retroarch_executable
    rewritten = clear_cheevos_token(exe)
    if not rewritten:
        print("No cheevos_token found")
    for path in rewritten:
        print(f"Cleared token in {path}")
    return 0


def _cmd_configure(ctx: AppContext, args: argparse.Namespace) -> int:
    changed = ctx.config.update_settings(
        romm_host=args.host or "",
        username=args.username or "",
        password=args.password or "",
        library_path=args.library or "",
        retroarch_path=args.retroarch or "",
        cheevos_username=args.cheevos_user or "",
        cheevos_password=args.cheevos_pass or "",
    )
    # New RetroAchievements credentials only take effect once the old token is gone
    if changed & _CHEEVOS_KEYS:
        clear_cheevos_token(ctx.config.retroarch_executable)
    print("Configuration saved." if changed else "Nothing changed.")
    for key in sorted(changed):
        print(f"  {key}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="retrolaunch", description="Launch ROMs with RetroArch")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("launch", help="launch a ROM file")
    p.add_argument("rom")
    p.add_argument("--core", help="libretro core to use, e.g. snes9x_libretro")
    p.add_argument("--platform", help="platform hint, e.g. psp or 'Sega CD'")
    p.add_argument("--exe", help="RetroArch executable or folder")
    p.set_defaults(func=_cmd_launch)

    p = sub.add_parser("cores", help="list cores for an extension or platform")
    p.add_argument("target")
    p.set_defaults(func=_cmd_cores)

    p = sub.add_parser("inspect", help="show the ROM and cores inside a zip")
    p.add_argument("archive")
    p.set_defaults(func=_cmd_inspect)

    p = sub.add_parser("clear-token", help="force RetroAchievements to log in again")
    p.add_argument("--exe", help="RetroArch executable or folder")
    p.set_defaults(func=_cmd_clear_token)

    p = sub.add_parser("configure", help="update settings")
    p.add_argument("--host")
    p.add_argument("--username")
    p.add_argument("--password")
    p.add_argument("--library")
    p.add_argument("--retroarch")
    p.add_argument("--cheevos-user")
    p.add_argument("--cheevos-pass")
    p.set_defaults(func=_cmd_configure)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    # Sinks first so settings-load warnings land in the log file
    setup_logger(default_config_dir() / "logs", verbose=args.verbose)
    ctx = create_context()

    try:
        return args.func(ctx, args)
    except RetroLaunchError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
