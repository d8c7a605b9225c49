"""MCP Server for InfoFlow vault sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents sync InfoFlow items into a Markdown vault, inspect the sync state
and delete synced documents.

The server talks JSON-RPC over stdin/stdout, so nothing else may write to
stdout once it runs: logs go to a file and user messages to stderr.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..sync.service import SyncService
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "infoflow-sync-mcp"

server = Server(SERVER_NAME)

# Set for the lifetime of the stdio session by main()
_service: SyncService | None = None

_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_service() -> SyncService:
    """Get the global SyncService instance.

    Raises:
        RuntimeError: If the service is not initialized
    """
    if _service is None:
        raise RuntimeError(
            "SyncService not initialized. Server lifespan not started."
        )
    return _service


def set_service(service: SyncService | None) -> None:
    global _service
    _service = service


def get_registry() -> ToolRegistry:
    """The registry built by main(); RuntimeError before that."""
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools (registered and permitted)."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch *name* to its handler; unknown names become an error result."""
    service = get_service()
    try:
        return await get_registry().call_tool(name, arguments, service)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "List the tools again; this server may run with a restricted permission set.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the ToolRegistry, filtered by *permissions_file* if given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Permissions file %s grants %s",
            permissions_file,
            ", ".join(sorted(allowed_permissions)),
        )

    registry = ToolRegistry(ALL_SPECS, allowed_permissions)
    logger.info(
        "%d of %d tools enabled",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    return registry


async def main(config_overrides: dict | None = None):
    """Serve the vault over MCP until the client disconnects.

    Sets up logging for MCP mode (file only, never stdout), starts the
    vault's SyncService via the lifespan manager, and serves the tools
    over stdio.

    Args:
        config_overrides: Optional dict with config values to override (vault, settings_file, api_key, endpoint, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run BEFORE stdio_server: nothing may reach stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    permissions_file = overrides.get("permissions_file")
    registry = build_registry(permissions_file)
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(ALL_SPECS)} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_service() is called here rather than in the lifespan so that
    # running this file as __main__ updates this module's global.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_service(ctx["service"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_service(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="InfoFlow Sync MCP Server - sync InfoFlow items into a Markdown vault over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .infoflow/config.yml)
  infoflow-sync-mcp

  # Serve a specific vault
  infoflow-sync-mcp --vault ~/Notes

  # Read-only: only the status tool
  infoflow-sync-mcp --permissions-file /etc/infoflow/read-only.permissions

The server speaks MCP over stdin/stdout; its own messages go to stderr
and its log to the log file.
        """,
    )

    parser.add_argument(
        "--vault",
        help="Vault root directory (takes precedence over INFOFLOW_VAULT env var and config files)",
    )
    parser.add_argument(
        "--settings-file",
        help="Settings record path (default: <vault>/.infoflow/data.json)",
    )
    parser.add_argument(
        "--api-key",
        help="Override the stored InfoFlow API key"
        " (visible in process list -- prefer INFOFLOW_API_KEY env var)",
    )
    parser.add_argument(
        "--endpoint",
        help="Override the stored InfoFlow GraphQL endpoint",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (SYNC_VIEW, SYNC_RUN, DOCUMENT_DELETE, "
        "SETTINGS_ADMIN), # for comments. If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{SERVER_NAME} version {__version__}",
    )
    return parser


def run() -> None:
    """Console script entry point of the MCP server."""
    args = build_parser().parse_args()

    config_overrides = {
        key: value
        for key, value in (
            ("vault", args.vault),
            ("settings_file", args.settings_file),
            ("api_key", args.api_key),
            ("endpoint", args.endpoint),
            ("debug", args.debug),
            ("log_file", args.log_file),
            ("permissions_file", args.permissions_file),
        )
        if value
    }

    # stdout is reserved for the protocol
    if config_overrides:
        override_keys = [k for k in config_overrides if k != "api_key"]
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # server_lifespan already reported the cause on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
