"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec creation and immutability
- ToolRegistry read-only filtering
- ToolRegistry list_tools, tool_count, call_tool and error translation
"""

import asyncio
import dataclasses
import unittest
from unittest.mock import MagicMock

import mcp.types as types

from backlog_jira_sync.mcp.tools import ALL_SPECS
from backlog_jira_sync.mcp.tools.registry import ToolRegistry, ToolSpec
from backlog_jira_sync.sync.errors import NotFoundError


def _make_spec(name: str, mutating: bool = False, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(session, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        mutating=mutating,
        handler=handler,
    )


def _raising(exc: Exception):
    async def handler(session, args):
        raise exc

    return handler


def _text(result: types.CallToolResult) -> str:
    return result.content[0].text


class TestToolSpec(unittest.TestCase):
    def test_creation(self):
        spec = _make_spec("task_push", mutating=True)
        self.assertEqual(spec.tool.name, "task_push")
        self.assertTrue(spec.mutating)

    def test_frozen(self):
        spec = _make_spec("task_push")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            spec.mutating = True


class TestToolRegistry(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("sync_status"),
            _make_spec("task_push", mutating=True),
            _make_spec("task_unlink", mutating=True),
        ]

    def test_all_tools_registered(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 4)

    def test_read_only_drops_mutating_tools(self):
        registry = ToolRegistry(self.specs, read_only=True)
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "sync_status"])

    def test_list_tools_returns_tool_objects(self):
        for tool in ToolRegistry(self.specs).list_tools():
            self.assertIsInstance(tool, types.Tool)

    def test_call_tool_dispatches_to_handler(self):
        calls = []

        async def handler(session, args):
            calls.append((session, args))
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="dispatched")]
            )

        registry = ToolRegistry([_make_spec("dispatch", handler=handler)])
        session = MagicMock()

        result = asyncio.run(
            registry.call_tool("dispatch", {"task_id": "task-1"}, session)
        )

        self.assertEqual(calls, [(session, {"task_id": "task-1"})])
        self.assertEqual(_text(result), "dispatched")

    def test_call_tool_none_arguments(self):
        calls = []

        async def handler(session, args):
            calls.append(args)
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="ok")]
            )

        registry = ToolRegistry([_make_spec("none_args", handler=handler)])
        asyncio.run(registry.call_tool("none_args", None, MagicMock()))
        self.assertEqual(calls, [{}])

    def test_unknown_tool_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("nope", {}, MagicMock()))

    def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry(self.specs, read_only=True)
        with self.assertRaises(ValueError):
            asyncio.run(registry.call_tool("task_push", {}, MagicMock()))


class TestCallToolErrors(unittest.TestCase):
    def _call(self, exc: Exception) -> types.CallToolResult:
        registry = ToolRegistry([_make_spec("boom", handler=_raising(exc))])
        return asyncio.run(registry.call_tool("boom", {}, MagicMock()))

    def test_sync_error_translated(self):
        result = self._call(NotFoundError("Task task-9 not found", "task-9"))
        self.assertTrue(result.isError)
        self.assertIn("Error (not_found)", _text(result))

    def test_value_error_is_validation_error(self):
        result = self._call(ValueError("Task id cannot be empty"))
        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error)", _text(result))

    def test_unexpected_error_is_server_error(self):
        with self.assertLogs("backlog_jira_sync.mcp.tools.registry", "ERROR"):
            result = self._call(RuntimeError("kaboom"))
        self.assertTrue(result.isError)
        self.assertIn("Error (server_error): kaboom", _text(result))


class TestAllSpecs(unittest.TestCase):
    def test_names(self):
        names = {spec.tool.name for spec in ALL_SPECS}
        self.assertEqual(
            names,
            {
                "task_push",
                "task_pull",
                "task_sync",
                "sync_status",
                "task_link",
                "task_unlink",
            },
        )

    def test_only_status_survives_read_only(self):
        registry = ToolRegistry(ALL_SPECS, read_only=True)
        self.assertEqual(
            [t.name for t in registry.list_tools()], ["sync_status"]
        )

    def test_read_only_hint_matches_mutating(self):
        for spec in ALL_SPECS:
            self.assertEqual(spec.tool.annotations.readOnlyHint, not spec.mutating)
