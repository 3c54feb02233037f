"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation, immutability, and read-only detection
- ToolRegistry filtering (all tools, read-only mode)
- ToolRegistry list_tools, tool_count, call_tool
- call_tool error translation (docsync errors, ValueError, unexpected)
"""

import asyncio
import unittest
from unittest.mock import MagicMock

import mcp.types as types

from docsync.errors import RepositoryNotFoundError, SourceAuthError
from docsync.mcp.tools import ALL_SPECS
from docsync.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, read_only: bool | None = None, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(ctx, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    annotations = None
    if read_only is not None:
        annotations = types.ToolAnnotations(readOnlyHint=read_only)
    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
            annotations=annotations,
        ),
        handler=handler,
    )


def _raising(exc):
    async def handler(ctx, args):
        raise exc

    return handler


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_creation(self):
        spec = _make_spec("test_tool", read_only=True)
        self.assertEqual(spec.tool.name, "test_tool")
        self.assertIsNotNone(spec.handler)

    def test_frozen(self):
        spec = _make_spec("test_tool")
        with self.assertRaises(AttributeError):
            spec.handler = None

    def test_read_only_from_annotation(self):
        self.assertTrue(_make_spec("a", read_only=True).read_only)
        self.assertFalse(_make_spec("b", read_only=False).read_only)

    def test_no_annotations_is_not_read_only(self):
        self.assertFalse(_make_spec("c").read_only)


class TestToolRegistryFiltering(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("reader", read_only=True),
            _make_spec("writer", read_only=False),
            _make_spec("unannotated"),
        ]

    def test_all_registered_by_default(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 3)
        self.assertEqual(
            [t.name for t in registry.list_tools()],
            ["reader", "writer", "unannotated"],
        )

    def test_read_only_mode(self):
        registry = ToolRegistry(self.specs, read_only=True)
        self.assertEqual([t.name for t in registry.list_tools()], ["reader"])

    def test_empty(self):
        self.assertEqual(ToolRegistry([]).tool_count(), 0)

    def test_builtin_read_only_tools(self):
        registry = ToolRegistry(ALL_SPECS, read_only=True)
        names = {t.name for t in registry.list_tools()}
        self.assertEqual(
            names, {"repo_list", "content_history", "content_diff"}
        )

    def test_builtin_tool_names_unique(self):
        names = [spec.tool.name for spec in ALL_SPECS]
        self.assertEqual(len(names), len(set(names)))


class TestToolRegistryCallTool(unittest.TestCase):
    def test_call_tool_dispatches_to_handler(self):
        handler = MagicMock()

        async def recording(ctx, args):
            handler(ctx, args)
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="done")]
            )

        registry = ToolRegistry([_make_spec("t", handler=recording)])
        ctx = object()
        result = asyncio.run(registry.call_tool("t", {"x": 1}, ctx))

        self.assertEqual(_text(result), "done")
        handler.assert_called_once_with(ctx, {"x": 1})

    def test_call_tool_none_arguments(self):
        seen = {}

        async def recording(ctx, args):
            seen["args"] = args
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", handler=recording)])
        asyncio.run(registry.call_tool("t", None, None))
        self.assertEqual(seen["args"], {})

    def test_call_tool_unknown_raises(self):
        registry = ToolRegistry([])
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, None))

    def test_call_tool_filtered_out_raises(self):
        registry = ToolRegistry(
            [_make_spec("writer", read_only=False)], read_only=True
        )
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("writer", {}, None))

    def test_docsync_error_translated(self):
        registry = ToolRegistry(
            [_make_spec("t", handler=_raising(RepositoryNotFoundError("r9")))]
        )
        result = asyncio.run(registry.call_tool("t", {}, None))
        self.assertTrue(result.isError)
        self.assertIn("Error (not_found): Repository not found: r9", _text(result))

    def test_source_auth_error_translated(self):
        registry = ToolRegistry(
            [_make_spec("t", handler=_raising(SourceAuthError("bad token")))]
        )
        result = asyncio.run(registry.call_tool("t", {}, None))
        self.assertIn("Error (permission_denied)", _text(result))

    def test_value_error_is_validation_error(self):
        registry = ToolRegistry(
            [_make_spec("t", handler=_raising(ValueError("x is required")))]
        )
        result = asyncio.run(registry.call_tool("t", {}, None))
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error): x is required", _text(result))

    def test_unexpected_error_is_server_error(self):
        registry = ToolRegistry(
            [_make_spec("t", handler=_raising(RuntimeError("kaboom")))]
        )
        with self.assertLogs("docsync.mcp.tools.registry", level="ERROR"):
            result = asyncio.run(registry.call_tool("t", {}, None))
        self.assertIn("Error (server_error): kaboom", _text(result))
