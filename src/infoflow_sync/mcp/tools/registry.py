"""Tool registry with permission filtering.

An operator can expose a vault read-only (status only) or forbid deleting
documents by starting the server with a permissions file.  Tools whose
permissions are not all granted are never listed and cannot be called.

Permissions:
    SYNC_VIEW        -- read the sync state
    SYNC_RUN         -- sync and resync
    DOCUMENT_DELETE  -- delete synced documents (and their items)
    SETTINGS_ADMIN   -- change the settings record
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.client import InfoFlowAPIError

if TYPE_CHECKING:
    from ...sync.service import SyncService

logger = logging.getLogger(__name__)

KNOWN_PERMISSIONS = frozenset(
    {"SYNC_VIEW", "SYNC_RUN", "DOCUMENT_DELETE", "SETTINGS_ADMIN"}
)

ToolHandler = Callable[["SyncService", dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool: its definition, what it needs, and who runs it.

    Attributes:
        tool: Name, description and input schema shown to the client.
        permissions: All of these must be granted; empty means always
            available.
        handler: ``await handler(service, args)`` returns the tool result.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: ToolHandler

    def permitted(self, granted: frozenset[str] | None) -> bool:
        """``granted=None`` means no permissions file: everything is allowed."""
        return granted is None or self.permissions <= granted


class ToolRegistry:
    """The tools this server exposes, keyed by name.

    Filtering happens once, at construction; a filtered-out tool behaves
    exactly like an unknown one.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs = {
            spec.tool.name: spec
            for spec in specs
            if spec.permitted(allowed_permissions)
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        service: SyncService,
    ) -> types.CallToolResult:
        """Run the handler of tool *name* against *service*.

        Handler failures never escape: API errors, invalid values, file
        system errors and anything unexpected come back as ``isError``
        results carrying a corrective action.

        Raises:
            ValueError: *name* is unknown or was filtered out.
        """
        from .errors import build_error_response, translate_api_error

        if name not in self._specs:
            raise ValueError(f"Unknown tool: {name}")
        handler = self._specs[name].handler

        try:
            return await handler(service, arguments or {})
        except InfoFlowAPIError as e:
            logger.warning("InfoFlow API error in %s: %s", name, e)
            return translate_api_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Fix the arguments and call the tool again.",
            )
        except OSError as e:
            logger.error("File system error in tool %s: %s", name, e)
            return build_error_response(
                "filesystem_error",
                str(e),
                "Check that the vault is writable and the path exists.",
            )
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read the granted permissions from *path*.

    One permission name per line; blank lines and ``#`` comments are
    skipped.  Example::

        # Read-only vault
        SYNC_VIEW

    Raises:
        FileNotFoundError: *path* does not exist.
        ValueError: A line names an unknown permission, or none is granted.
    """
    path = Path(path)
    granted: set[str] = set()
    lines = path.read_text().splitlines()
    for number, raw in enumerate(lines, start=1):
        entry = raw.strip()
        if entry.startswith("#") or not entry:
            continue
        if entry not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{entry}' at line {number} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        granted.add(entry)
    if not granted:
        raise ValueError(f"No permissions found in {path}.")
    return frozenset(granted)
