"""Command line entry point for gitmirror.

Subcommands:

- ``sync``   -- mirror one branch of a remote into a local directory.
- ``delete`` -- remove the repository metadata from a mirror directory,
  leaving its working files alone.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .errors import MirrorSyncError
from .logger import setup_logging
from .sync import Reconciler, delete_metadata

logger = logging.getLogger(__name__)

EXIT_FAILURE = 2
EXIT_INTERRUPTED = 130


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitmirror",
        description="Keep a local directory mirroring one branch of a remote git repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mirror the production branch into /srv/config
  gitmirror sync --repo /srv/config --origin https://git.example.com/ops/config.git --branch production

  # Use settings from GITMIRROR_* env vars, .env, or .gitmirror/config.yml
  gitmirror sync

  # Drop the repository metadata (working files are kept)
  gitmirror delete --repo /srv/config

Note: sync is destructive. Local modifications in the mirror are discarded.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"gitmirror version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Synchronize the mirror")
    _add_common_arguments(sync)
    sync.add_argument(
        "--origin",
        help="URL of the origin repository (overrides GITMIRROR_ORIGIN)",
    )
    sync.add_argument(
        "--branch",
        help="Branch to sync with (default: master)",
    )
    sync.add_argument(
        "--ssh-key",
        help="Private key used for SSH remotes (overrides GITMIRROR_SSH_KEY)",
    )
    sync.add_argument(
        "--username",
        help="Username for HTTP remotes (overrides GITMIRROR_USERNAME)",
    )
    sync.add_argument(
        "--password",
        help="Password or token for HTTP remotes"
        " (visible in process list -- prefer GITMIRROR_PASSWORD env var)",
    )
    sync.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not print progress to stdout",
    )

    delete = subparsers.add_parser(
        "delete", help="Remove repository metadata from the mirror directory"
    )
    _add_common_arguments(delete)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        help="Path of directory to sync (overrides GITMIRROR_REPO)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )


def resolve_config(args: argparse.Namespace) -> tuple[Config, UnifiedConfig]:
    """Merge CLI args, env vars, .env and YAML config into a ``Config``."""
    load_dotenv()

    unified = UnifiedConfig()
    yaml_fallbacks: dict[str, Any] | None = None
    if discover_config_files():
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = unified.mirror.model_dump(exclude_none=True)

    config = load_config(
        repo=args.repo,
        origin=getattr(args, "origin", None),
        branch=getattr(args, "branch", None),
        ssh_key=getattr(args, "ssh_key", None),
        username=getattr(args, "username", None),
        password=getattr(args, "password", None),
        debug=args.debug,
        yaml_fallbacks=yaml_fallbacks,
        require_origin=args.command != "delete",
    )
    return config, unified


async def run_command(args: argparse.Namespace, config: Config) -> None:
    progress = None if getattr(args, "quiet", False) else sys.stdout
    if args.command == "delete":
        await delete_metadata(config.repo, progress=progress)
        return

    reconciler = Reconciler(
        config.repo,
        config.origin,
        branch=config.branch,
        credential=config.credential(),
        progress=progress,
        max_attempts=config.max_attempts,
    )
    await reconciler.synchronize()


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config, unified = resolve_config(args)
    except ValueError as e:
        _stderr_print(f"ERROR: Configuration error: {e}")
        return EXIT_FAILURE

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=unified.logging.format,
        level=unified.logging.level,
    )

    try:
        asyncio.run(run_command(args, config))
    except MirrorSyncError as e:
        logger.debug("Command failed", exc_info=True)
        _stderr_print(str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        return EXIT_INTERRUPTED
    return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
