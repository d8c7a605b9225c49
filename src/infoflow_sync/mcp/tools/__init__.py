"""MCP tool handlers for InfoFlow vault sync.

This package contains MCP tool implementations that wrap the SyncService
with async handlers, report formatting, and structured error responses.
"""

from .errors import build_error_response, translate_api_error
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "build_error_response",
    "translate_api_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # ToolSpec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
]
