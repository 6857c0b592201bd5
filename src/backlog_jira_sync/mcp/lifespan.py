"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config_loader import discover_config_files
from ..core.async_utils import init_semaphore, run_sync
from ..session import build_session, load_unified_config
from ..sync.errors import SyncError

logger = logging.getLogger(__name__)

# Concurrent tool calls; engine runs are serialized per session anyway.
MAX_PARALLEL_TOOL_CALLS = 4


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
    - Load .env and YAML config (CLI > env vars > .env > YAML > defaults)
    - Build the SyncSession (Backlog.md client, Jira client, state dir)
    - Validate the Jira connection and fail fast if it is unreachable

    Args:
        config_overrides: Optional dict with config values from CLI (url, email, api_token, insecure, project_key)

    Yields:
        Dict with 'session' key containing the initialized SyncSession

    Raises:
        RuntimeError: If configuration is invalid or the Jira connection fails.
    """
    logger.info("MCP server starting...")
    _stderr_print("Backlog-Jira MCP Server starting...")

    overrides = config_overrides or {}
    try:
        unified = load_unified_config()
        session = build_session(unified, overrides)

        sources = []
        config_files = discover_config_files()
        if config_files:
            sources.append(f"config file: {config_files[0]}")
        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  Tasks directory: {session.config.backlog.tasks_dir}")
        _stderr_print(f"  State directory: {session.state_dir}")
    except SyncError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN are set."
        )
        raise RuntimeError(
            f"Configuration error: {e}. Ensure JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN are set."
        ) from e

    logger.info("Validating Jira connection...")
    _stderr_print("  Validating Jira connection...")
    try:
        user = await run_sync(session.remote.validate_connection)
        logger.info("Connected to Jira as %s", user)
        _stderr_print(f"  Connected to Jira as {user}")
        init_semaphore(MAX_PARALLEL_TOOL_CALLS)
        _stderr_print(
            "Server ready. Waiting for MCP client connection..."
        )
    except SyncError as e:
        logger.error("Failed to connect to Jira: %s", e)
        _stderr_print("ERROR: Jira connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN.")
        raise RuntimeError(
            f"Jira connection failed: {e}. Check JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN."
        ) from e

    yield {"session": session}

    logger.info("MCP server shutting down")
    _stderr_print("Backlog-Jira MCP Server shutting down.")
