"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolSpec creation and immutability
- ToolRegistry filtering (no filter, permission filter, empty permissions)
- ToolRegistry list_tools, tool_count, call_tool and error translation
- load_permissions_file parsing, validation, and error cases
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import mcp.types as types

from infoflow_sync.core.client import InfoFlowAPIError
from infoflow_sync.mcp.tools import ALL_SPECS
from infoflow_sync.mcp.tools.registry import (
    KNOWN_PERMISSIONS,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if permissions is None:
        permissions = frozenset()
    if handler is None:

        async def handler(service, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions,
        handler=handler,
    )


def _raising_spec(name: str, exc: Exception) -> ToolSpec:
    async def handler(service, args):
        raise exc

    return _make_spec(name, frozenset(), handler)


def _write_permissions(text: str) -> str:
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".permissions", delete=False
    ) as f:
        f.write(text)
        return f.name


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_creation(self):
        spec = _make_spec("test_tool", frozenset({"SYNC_VIEW"}))
        self.assertEqual(spec.tool.name, "test_tool")
        self.assertEqual(spec.permissions, frozenset({"SYNC_VIEW"}))
        self.assertIsNotNone(spec.handler)

    def test_frozen(self):
        """ToolSpec is immutable (frozen dataclass)."""
        spec = _make_spec("test_tool")
        with self.assertRaises(AttributeError):
            spec.permissions = frozenset({"NEW"})


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry class."""

    def setUp(self):
        self.specs = [
            _make_spec("ping", frozenset()),
            _make_spec("status", frozenset({"SYNC_VIEW"})),
            _make_spec("sync", frozenset({"SYNC_RUN"})),
            _make_spec("delete", frozenset({"DOCUMENT_DELETE"})),
            _make_spec(
                "sync_and_delete",
                frozenset({"SYNC_RUN", "DOCUMENT_DELETE"}),
            ),
        ]

    def test_no_filter_all_tools_registered(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 5)

    def test_filter_by_permissions(self):
        """Only tools with matching or empty permissions are included."""
        registry = ToolRegistry(self.specs, frozenset({"SYNC_VIEW"}))
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "status"])

    def test_subset_check(self):
        """Multi-permission tool included only when ALL permissions are granted."""
        registry = ToolRegistry(self.specs, frozenset({"SYNC_RUN"}))
        names = [t.name for t in registry.list_tools()]
        self.assertNotIn("sync_and_delete", names)
        self.assertIn("sync", names)

        registry2 = ToolRegistry(
            self.specs, frozenset({"SYNC_RUN", "DOCUMENT_DELETE"})
        )
        self.assertIn(
            "sync_and_delete", [t.name for t in registry2.list_tools()]
        )

    def test_call_tool_dispatches_to_handler(self):
        """call_tool() invokes the tool's handler with (service, args)."""
        calls = []

        async def mock_handler(service, args):
            calls.append((service, args))
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="dispatched")]
            )

        registry = ToolRegistry([_make_spec("dispatch", None, mock_handler)])
        service = MagicMock()

        result = asyncio.run(
            registry.call_tool("dispatch", {"key": "val"}, service)
        )

        self.assertEqual(calls, [(service, {"key": "val"})])
        self.assertEqual(result.content[0].text, "dispatched")

    def test_call_tool_none_arguments(self):
        calls = []

        async def mock_handler(service, args):
            calls.append(args)
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="ok")]
            )

        registry = ToolRegistry([_make_spec("none_args", None, mock_handler)])
        asyncio.run(registry.call_tool("none_args", None, MagicMock()))
        self.assertEqual(calls, [{}])

    def test_call_tool_unknown_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError) as ctx:
            asyncio.run(registry.call_tool("nonexistent", {}, MagicMock()))
        self.assertIn("Unknown tool", str(ctx.exception))

    def test_call_tool_filtered_out_raises(self):
        registry = ToolRegistry(self.specs, frozenset({"SYNC_VIEW"}))
        with self.assertRaises(ValueError) as ctx:
            asyncio.run(registry.call_tool("delete", {}, MagicMock()))
        self.assertIn("Unknown tool", str(ctx.exception))


class TestCallToolErrorTranslation(unittest.TestCase):
    """Exceptions raised by handlers become structured error responses."""

    def _call(self, exc: Exception) -> types.CallToolResult:
        registry = ToolRegistry([_raising_spec("boom", exc)])
        return asyncio.run(registry.call_tool("boom", {}, MagicMock()))

    def test_api_error(self):
        result = self._call(InfoFlowAPIError("Unauthorized", status_code=401))
        self.assertTrue(result.isError)
        self.assertIn("auth_error", result.content[0].text)

    def test_value_error(self):
        result = self._call(ValueError("Document not found: a.md"))
        self.assertTrue(result.isError)
        self.assertIn("validation_error", result.content[0].text)
        self.assertIn("Document not found: a.md", result.content[0].text)

    def test_os_error(self):
        result = self._call(PermissionError("read-only vault"))
        self.assertTrue(result.isError)
        self.assertIn("filesystem_error", result.content[0].text)

    def test_unexpected_error(self):
        result = self._call(RuntimeError("kaboom"))
        self.assertTrue(result.isError)
        self.assertIn("server_error", result.content[0].text)


class TestSyncSpecs(unittest.TestCase):
    """The shipped specs only use known permissions."""

    def test_every_spec_requires_a_known_permission(self):
        for spec in ALL_SPECS:
            self.assertTrue(spec.permissions)
            self.assertLessEqual(spec.permissions, KNOWN_PERMISSIONS)

    def test_read_only_vault(self):
        registry = ToolRegistry(ALL_SPECS, frozenset({"SYNC_VIEW"}))
        self.assertEqual(
            [t.name for t in registry.list_tools()], ["infoflow_sync_status"]
        )


class TestLoadPermissionsFile(unittest.TestCase):
    """Test load_permissions_file function."""

    def test_load_valid_file(self):
        """Loads valid permissions file with comments and blanks."""
        path = _write_permissions(
            "# Sync only\nSYNC_VIEW\n\n  SYNC_RUN  \n# Another comment\n"
        )
        try:
            self.assertEqual(
                load_permissions_file(path),
                frozenset({"SYNC_VIEW", "SYNC_RUN"}),
            )
        finally:
            Path(path).unlink()

    def test_load_file_not_found(self):
        with self.assertRaises(FileNotFoundError):
            load_permissions_file("/nonexistent/path.permissions")

    def test_load_empty_file(self):
        path = _write_permissions("# Only comments\n\n")
        try:
            with self.assertRaises(ValueError) as ctx:
                load_permissions_file(path)
            self.assertIn("No permissions found", str(ctx.exception))
        finally:
            Path(path).unlink()

    def test_load_invalid_permission(self):
        path = _write_permissions("SYNC_VIEW\nWIKI_VIEW\n")
        try:
            with self.assertRaises(ValueError) as ctx:
                load_permissions_file(path)
            self.assertIn("Invalid permission", str(ctx.exception))
            self.assertIn("WIKI_VIEW", str(ctx.exception))
            self.assertIn("line 2", str(ctx.exception))
        finally:
            Path(path).unlink()
