"""MCP Server for Backlog.md <-> Jira sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents push, pull, and sync Backlog.md tasks with Jira issues via
standardized tools.

Transport: stdio (for MCP client integration)
Protocol: JSON-RPC 2.0 over MCP
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
from ..core.async_utils import run_sync
from ..logger import setup_logging
from ..session import SyncSession
from ..sync.errors import SyncError
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "backlog-jira-sync"
DEFAULT_LOG_FILE = "/tmp/backlog-jira-sync.log"

# Initialize server instance
server = Server(SERVER_NAME)

# Global session instance (initialized in main)
_session: SyncSession | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    session: SyncSession, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test Jira connectivity."""
    try:
        user = await run_sync(session.remote.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Backlog-Jira MCP server connected successfully as {user}.",
                )
            ]
        )
    except SyncError as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Jira connection failed: {e}. Check JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Backlog-Jira MCP server connectivity to Jira",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    mutating=False,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_session() -> SyncSession:
    """Get the global SyncSession instance.

    Raises:
        RuntimeError: If session is not initialized
    """
    if _session is None:
        raise RuntimeError(
            "SyncSession not initialized. Server lifespan not started."
        )
    return _session


def set_session(session: SyncSession | None) -> None:
    """Set the global SyncSession instance, or None to clear."""
    global _session
    _session = session


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    session = get_session()
    try:
        return await get_registry().call_tool(name, arguments, session)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), validates the
    Jira connection via the lifespan manager, and serves JSON-RPC over
    stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (url, email, api_token, insecure, project_key, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # CRITICAL: must run BEFORE stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=log_file, debug=overrides.get("debug", False))

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_session() is called here rather than in the lifespan so that
    # running this file as __main__ does not update a second module copy.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_session(ctx["session"])
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
            set_session(None)
            set_registry(None)


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
    """Add MCP server options to *parser* (shared with ``backlog-jira serve``)."""
    parser.add_argument(
        "--url",
        help="Override Jira base URL (takes precedence over JIRA_URL env var and config files)",
    )
    parser.add_argument(
        "--email",
        help="Override Jira account email (takes precedence over JIRA_EMAIL env var and config files)",
    )
    parser.add_argument(
        "--api-token",
        help="Override Jira API token"
        " (visible in process list -- prefer JIRA_API_TOKEN env var for security)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--project-key",
        help="Jira project new issues are created in",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Expose only tools that change nothing (ping, sync_status)",
    )


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Build the config overrides dict from parsed server arguments."""
    config_overrides = {}
    if args.url:
        config_overrides["url"] = args.url
    if args.email:
        config_overrides["email"] = args.email
    if args.api_token:
        config_overrides["api_token"] = args.api_token
    if args.insecure:
        config_overrides["insecure"] = True
    if args.project_key:
        config_overrides["project_key"] = args.project_key
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True
    return config_overrides


def serve(config_overrides: dict) -> None:
    """Run ``main`` until the client disconnects, exiting on startup errors."""
    # Log config overrides to stderr (before stdio transport starts)
    override_keys = [
        k for k in config_overrides.keys() if k not in ("api_token", "log_file")
    ]
    if override_keys:
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Backlog-Jira MCP Server - sync Backlog.md tasks with Jira over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .backlog-jira/config.yml)
  backlog-jira-mcp

  # Override Jira URL
  backlog-jira-mcp --url https://example.atlassian.net

  # Expose only read-only tools
  backlog-jira-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    add_server_arguments(parser)
    parser.add_argument(
        "--version",
        action="version",
        version=f"backlog-jira-sync version {__version__}",
    )

    args = parser.parse_args()
    serve(overrides_from_args(args))


if __name__ == "__main__":
    run()
