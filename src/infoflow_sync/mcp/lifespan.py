"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_runtime_config
from ..sync.notices import Notifier
from ..sync.service import SyncService

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Build the SyncService of the vault and start it (stale-lock reset,
      settings overrides, sync on start, scheduled syncs)

    On shutdown:
    - Stop the scheduler and wait for a running sync on start

    Args:
        config_overrides: Optional dict with config values from CLI (vault, settings_file, api_key, endpoint, debug)

    Yields:
        Dict with 'service' key containing the started SyncService

    Raises:
        RuntimeError: If configuration is invalid or the settings record cannot be loaded.
    """
    logger.info("MCP server starting...")
    _stderr_print("InfoFlow Sync MCP Server starting...")

    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()
        runtime = load_runtime_config(config_overrides)
        config = runtime.config

        source_desc = ", ".join(runtime.sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Vault: %s", config.vault_path)
        _stderr_print(f"  Vault: {config.vault_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure INFOFLOW_VAULT is set to an existing directory.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure INFOFLOW_VAULT is set to an existing directory."
        ) from e

    service = SyncService.from_config(config, runtime.settings_overrides)
    notifier = Notifier(sink=lambda message: _stderr_print(f"  {message}"))
    try:
        settings = await service.start(notifier)
    except ValueError as e:
        logger.error("Failed to load settings: %s", e)
        _stderr_print(f"ERROR: Failed to load settings: {e}")
        raise RuntimeError(f"Failed to load settings: {e}") from e

    _stderr_print(f"  Settings: {config.settings_path}")
    if settings.frequency > 0:
        _stderr_print(f"  Scheduled sync: every {settings.frequency} minute(s)")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"service": service}
    finally:
        logger.info("MCP server shutting down")
        await service.stop()
        _stderr_print("InfoFlow Sync MCP Server shutting down.")
