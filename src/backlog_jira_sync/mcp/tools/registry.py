"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, whether the
  tool changes anything, and an async handler with standardized
  signature (session, args) -> CallToolResult.
- ToolRegistry: Drops mutating tools in read-only mode at construction
  time, then provides list_tools() and call_tool() dispatch with error
  translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...session import SyncSession
from ...sync.errors import SyncError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable definition of a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        mutating: Whether the tool may write to Backlog.md, Jira, or
            the sync state.  Mutating tools are hidden in read-only mode.
        handler: Async handler with signature (session, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[SyncSession, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional read-only filtering."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.mutating:
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Return number of registered tools."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        session: SyncSession,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Provides centralized error handling for sync errors, validation
        errors, and unexpected exceptions, translating them into structured
        CallToolResult responses with corrective actions.

        Args:
            name: Tool name to invoke.
            arguments: Tool arguments (may be None).
            session: Configured SyncSession.

        Returns:
            CallToolResult from the handler.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_sync_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(session, args)
        except SyncError as e:
            logger.warning("Sync error in %s: %s", name, e)
            return translate_sync_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )
