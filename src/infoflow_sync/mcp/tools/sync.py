"""MCP tool handlers for the InfoFlow vault sync.

Defines five tools:

- ``infoflow_sync`` -- sync new changes since the last sync.
- ``infoflow_resync`` -- forget the last sync time and sync everything.
- ``infoflow_delete_document`` -- delete a synced document and its item.
- ``infoflow_sync_status`` -- last sync time, syncing flag, schedule.
- ``infoflow_update_settings`` -- change the settings record.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import SyncStatus
from ...sync.reporter import (
    format_delete_result,
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ...sync.models import SyncReport
    from ...sync.service import SyncService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="infoflow_sync",
        description=(
            "Pull InfoFlow items updated since the last sync into the vault "
            "as Markdown documents. Re-syncing unchanged items is a no-op."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="infoflow_resync",
        description=(
            "Reset the last sync time and pull every InfoFlow item matching "
            "the configured query into the vault."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="infoflow_delete_document",
        description=(
            "Delete a synced document from the vault and its item from "
            "InfoFlow. The item id is read from the document's front matter; "
            "the document is deleted even if the remote delete fails."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Vault-relative path of the document (e.g. 'InfoFlow/2024-01-02/Title.md')",
                },
            },
            "required": ["path"],
        },
    ),
    types.Tool(
        name="infoflow_sync_status",
        description=(
            "Show the sync state of the vault -- last sync time, whether a "
            "sync is running, query, mode and schedule."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="infoflow_update_settings",
        description=(
            "Change settings of the vault (e.g. frequency, customQuery, "
            "folder, filename, template, isSingleFile). A changed frequency "
            "reschedules the periodic sync."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "settings": {
                    "type": "object",
                    "description": "Settings to change, camelCase or snake_case keys",
                },
            },
            "required": ["settings"],
        },
    ),
]

_TOOLS_BY_NAME = {tool.name: tool for tool in SYNC_TOOLS}


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _report_result(report: SyncReport) -> types.CallToolResult:
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_report(report))
        ],
        structuredContent=report_to_json(report),
        isError=report.status
        in (SyncStatus.FAILED, SyncStatus.MISSING_API_KEY),
    )


async def _handle_sync(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``infoflow_sync`` tool."""
    report = await run_sync(service.sync, True)
    return _report_result(report)


async def _handle_resync(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``infoflow_resync`` tool."""
    report = await run_sync(service.resync)
    return _report_result(report)


async def _handle_delete_document(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``infoflow_delete_document`` tool."""
    path = args.get("path")
    if not path:
        return build_error_response(
            "validation_error",
            "path is required",
            "Provide the vault-relative 'path' of the document to delete.",
        )

    result = await run_sync(service.delete_document, path)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_delete_result(result))
        ],
        structuredContent=result.model_dump(),
    )


async def _handle_sync_status(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``infoflow_sync_status`` tool."""
    settings = await run_sync(service.status)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_status(settings))],
        structuredContent=status_to_json(settings),
    )


async def _handle_update_settings(
    service: SyncService, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``infoflow_update_settings`` tool."""
    changes = args.get("settings")
    if not isinstance(changes, dict) or not changes:
        return build_error_response(
            "validation_error",
            "settings must be a non-empty object",
            "Pass the settings to change, e.g. {\"settings\": {\"frequency\": 30}}.",
        )

    settings = await service.reconfigure(**changes)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Updated {', '.join(sorted(changes))}\n\n"
                + format_status(settings),
            )
        ],
        structuredContent=status_to_json(settings),
    )


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=_TOOLS_BY_NAME["infoflow_sync"],
        permissions=frozenset({"SYNC_RUN"}),
        handler=_handle_sync,
    ),
    ToolSpec(
        tool=_TOOLS_BY_NAME["infoflow_resync"],
        permissions=frozenset({"SYNC_RUN"}),
        handler=_handle_resync,
    ),
    ToolSpec(
        tool=_TOOLS_BY_NAME["infoflow_delete_document"],
        permissions=frozenset({"DOCUMENT_DELETE"}),
        handler=_handle_delete_document,
    ),
    ToolSpec(
        tool=_TOOLS_BY_NAME["infoflow_sync_status"],
        permissions=frozenset({"SYNC_VIEW"}),
        handler=_handle_sync_status,
    ),
    ToolSpec(
        tool=_TOOLS_BY_NAME["infoflow_update_settings"],
        permissions=frozenset({"SETTINGS_ADMIN"}),
        handler=_handle_update_settings,
    ),
]
