"""Command-line front end for the InfoFlow vault sync.

Runs the same commands as the MCP tools, once, against one vault::

    infoflow-sync sync
    infoflow-sync resync
    infoflow-sync delete "InfoFlow/2024-01-02/Some Title.md"
    infoflow-sync status --json
    infoflow-sync init

Exit codes: 0 on success, 1 on a failed command, 2 on a configuration
error.
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from . import __version__
from .config import load_runtime_config
from .config_loader import ensure_config
from .logger import setup_logging
from .sync.models import SyncStatus
from .sync.notices import Notifier
from .sync.reporter import (
    format_delete_result,
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .sync.service import SyncService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="infoflow-sync",
        description="Sync InfoFlow items into a Markdown vault",
    )
    parser.add_argument(
        "--vault",
        help="Vault root directory (takes precedence over INFOFLOW_VAULT and config files)",
    )
    parser.add_argument(
        "--settings-file",
        help="Settings record path (default: <vault>/.infoflow/data.json)",
    )
    parser.add_argument(
        "--api-key",
        help="Override the stored InfoFlow API key (prefer INFOFLOW_API_KEY)",
    )
    parser.add_argument(
        "--endpoint", help="Override the stored InfoFlow GraphQL endpoint"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print machine-readable JSON instead of text",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"infoflow-sync version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("sync", help="Sync new changes")
    subparsers.add_parser(
        "resync", help="Reset the last sync time and sync all items"
    )
    delete = subparsers.add_parser(
        "delete", help="Delete a synced document and its InfoFlow item"
    )
    delete.add_argument("path", help="Vault-relative document path")
    subparsers.add_parser("status", help="Show the sync state")
    subparsers.add_parser(
        "init", help="Write a starter config file if none exists"
    )
    return parser


def _emit(args: argparse.Namespace, text: str, data: dict) -> None:
    if args.as_json:
        print(json.dumps(data, indent=2))
    else:
        print(text)


def _overrides(args: argparse.Namespace) -> dict:
    return {
        key: value
        for key, value in (
            ("vault", args.vault),
            ("settings_file", args.settings_file),
            ("api_key", args.api_key),
            ("endpoint", args.endpoint),
            ("debug", args.debug),
        )
        if value
    }


def run_command(args: argparse.Namespace, service: SyncService) -> int:
    """Run the command named by *args* and print its outcome.

    Returns:
        Process exit code.
    """
    notifier = Notifier()
    service.startup(notifier, reset_lock=False)
    match args.command:
        case "sync" | "resync":
            if args.command == "sync":
                report = service.sync(manual=True, notifier=notifier)
            else:
                report = service.resync(notifier)
            _emit(args, format_sync_report(report), report_to_json(report))
            if report.status in (SyncStatus.FAILED, SyncStatus.MISSING_API_KEY):
                return EXIT_FAILED
            return EXIT_OK
        case "delete":
            result = service.delete_document(args.path, notifier)
            _emit(args, format_delete_result(result), result.model_dump())
            return EXIT_OK
        case "status":
            settings = service.status()
            _emit(args, format_status(settings), status_to_json(settings))
            return EXIT_OK
        case _:
            raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    if args.command == "init":
        path = ensure_config()
        print(f"Config file: {path}")
        return EXIT_OK

    load_dotenv()
    try:
        runtime = load_runtime_config(_overrides(args))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    service = SyncService.from_config(
        runtime.config, runtime.settings_overrides
    )
    try:
        return run_command(args, service)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except OSError as e:
        logger.error("File system error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
