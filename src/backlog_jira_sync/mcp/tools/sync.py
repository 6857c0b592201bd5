"""MCP tool handlers for Backlog.md <-> Jira sync.

Defines six tools:

- ``task_push`` -- propagate local task changes to Jira.
- ``task_pull`` -- propagate Jira changes to local tasks.
- ``task_sync`` -- classify and reconcile, resolving conflicts.
- ``sync_status`` -- read-only state of mapped tasks.
- ``task_link`` / ``task_unlink`` -- manage task <-> issue mappings.

Each call opens the sync store, runs one engine operation on a worker
thread, and closes the store again.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync_limited
from ...session import SyncSession
from ...sync.models import BatchResult, ItemSelection
from ...sync.reporter import (
    format_batch_result,
    format_dry_run_preview,
    format_status,
    result_to_json,
    status_to_json,
)
from ...sync.resolver import CONFLICT_STRATEGIES
from ...validators import normalize_task_id, validate_issue_key, validate_task_id
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared schema fragments
# ---------------------------------------------------------------------------

_TASK_IDS = {
    "type": "array",
    "items": {"type": "string"},
    "description": (
        "Task ids (e.g. ['task-12', '13']). When omitted, only tasks "
        "that need action are processed."
    ),
}
_ALL = {
    "type": "boolean",
    "default": False,
    "description": "Process every mapped task instead of only those needing action",
}
_DRY_RUN = {
    "type": "boolean",
    "default": False,
    "description": "Preview changes without applying them",
}
_FORCE = {
    "type": "boolean",
    "default": False,
    "description": "Overwrite the other side even when both sides changed",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _task_id(value: Any) -> str:
    """Normalize and validate one task id argument.

    Raises:
        ValueError: If the id is malformed.
    """
    task_id = normalize_task_id(str(value or ""))
    is_valid, error = validate_task_id(task_id)
    if not is_valid:
        raise ValueError(error)
    return task_id


def _selection(args: dict[str, Any]) -> ItemSelection:
    task_ids = args.get("task_ids") or []
    if not isinstance(task_ids, list):
        raise ValueError("task_ids must be a list of task ids")
    return ItemSelection(
        item_ids=[_task_id(t) for t in task_ids],
        all_mapped=bool(args.get("all", False)),
    )


def _batch_response(result: BatchResult) -> types.CallToolResult:
    text = (
        format_dry_run_preview(result)
        if result.dry_run
        else format_batch_result(result)
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=result_to_json(result),
        isError=not result.success,
    )


def _text_response(text: str, structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_task_push(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    selection = _selection(args)
    force = bool(args.get("force", False))
    dry_run = bool(args.get("dry_run", False))

    def _run() -> BatchResult:
        with session.engine() as engine:
            return engine.push(selection, force=force, dry_run=dry_run)

    return _batch_response(await run_sync_limited(_run))


async def _handle_task_pull(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    selection = _selection(args)
    force = bool(args.get("force", False))
    dry_run = bool(args.get("dry_run", False))

    def _run() -> BatchResult:
        with session.engine() as engine:
            return engine.pull(selection, force=force, dry_run=dry_run)

    return _batch_response(await run_sync_limited(_run))


async def _handle_task_sync(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    selection = _selection(args)
    strategy = args.get("strategy")
    if strategy is not None and strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"strategy must be one of {', '.join(CONFLICT_STRATEGIES)}"
        )
    dry_run = bool(args.get("dry_run", False))

    def _run() -> BatchResult:
        with session.engine() as engine:
            return engine.sync(selection, strategy=strategy, dry_run=dry_run)

    return _batch_response(await run_sync_limited(_run))


async def _handle_sync_status(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    selection = _selection(args)

    def _run():
        with session.engine() as engine:
            return engine.status(selection)

    report = await run_sync_limited(_run)
    return _text_response(format_status(report), status_to_json(report))


async def _handle_task_link(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    task_id = _task_id(args.get("task_id"))
    issue_key = str(args.get("issue_key") or "").strip().upper()
    is_valid, error = validate_issue_key(issue_key)
    if not is_valid:
        raise ValueError(error)

    def _run() -> None:
        with session.engine() as engine:
            engine.link(task_id, issue_key)

    await run_sync_limited(_run)
    logger.info("Linked %s to %s", task_id, issue_key)
    return _text_response(
        f"Linked {task_id} <-> {issue_key}. "
        "Run task_sync to record the first baselines.",
        {"task_id": task_id, "issue_key": issue_key, "linked": True},
    )


async def _handle_task_unlink(
    session: SyncSession, args: dict[str, Any]
) -> types.CallToolResult:
    task_id = _task_id(args.get("task_id"))

    def _run() -> str:
        with session.engine() as engine:
            return engine.unlink(task_id)

    issue_key = await run_sync_limited(_run)
    logger.info("Unlinked %s from %s", task_id, issue_key)
    return _text_response(
        f"Unlinked {task_id} from {issue_key}.",
        {"task_id": task_id, "issue_key": issue_key, "linked": False},
    )


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="task_push",
            description=(
                "Push local Backlog.md task changes to Jira. Unmapped tasks "
                "get a new Jira issue. Conflicting tasks fail unless force=true."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "task_ids": _TASK_IDS,
                    "all": _ALL,
                    "force": _FORCE,
                    "dry_run": _DRY_RUN,
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_task_push,
    ),
    ToolSpec(
        tool=types.Tool(
            name="task_pull",
            description=(
                "Pull Jira issue changes into mapped Backlog.md tasks. Never "
                "creates tasks. Conflicting tasks fail unless force=true."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "task_ids": _TASK_IDS,
                    "all": _ALL,
                    "force": _FORCE,
                    "dry_run": _DRY_RUN,
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_task_pull,
    ),
    ToolSpec(
        tool=types.Tool(
            name="task_sync",
            description=(
                "Bidirectional sync of mapped tasks: pushes local changes, "
                "pulls remote changes, and resolves conflicts with the "
                "given strategy."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "task_ids": _TASK_IDS,
                    "strategy": {
                        "type": "string",
                        "enum": list(CONFLICT_STRATEGIES),
                        "description": "Conflict strategy (default from config)",
                    },
                    "dry_run": _DRY_RUN,
                },
                "required": [],
            },
        ),
        mutating=True,
        handler=_handle_task_sync,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_status",
            description=(
                "Show the sync state of mapped tasks (InSync, NeedsPush, "
                "NeedsPull, Conflict, Unknown) and list unmapped tasks."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {"task_ids": _TASK_IDS},
                "required": [],
            },
        ),
        mutating=False,
        handler=_handle_sync_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="task_link",
            description="Map an existing Backlog.md task to an existing Jira issue.",
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "task_id": {"type": "string", "description": "Task id (e.g. task-12)"},
                    "issue_key": {"type": "string", "description": "Jira issue key (e.g. PROJ-42)"},
                },
                "required": ["task_id", "issue_key"],
            },
        ),
        mutating=True,
        handler=_handle_task_link,
    ),
    ToolSpec(
        tool=types.Tool(
            name="task_unlink",
            description="Remove the mapping of a task and forget its sync baselines.",
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "task_id": {"type": "string", "description": "Task id (e.g. task-12)"},
                },
                "required": ["task_id"],
            },
        ),
        mutating=True,
        handler=_handle_task_unlink,
    ),
]

SYNC_TOOLS: list[types.Tool] = [spec.tool for spec in SYNC_SPECS]
