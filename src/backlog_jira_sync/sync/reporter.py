"""Batch result formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_batch_result`` -- full post-run summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``format_field_conflicts`` -- per-field view of a conflicted item.
- ``format_status`` -- table of mapped items and their sync state.
- ``result_to_json`` / ``status_to_json`` -- structured dicts for MCP
  tool output and ``--json``.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .models import ItemStatus, SyncAction

if TYPE_CHECKING:
    from .models import BatchResult, FieldConflict, StatusReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _target(item_id: str, remote_id: str | None) -> str:
    return f"{item_id} <-> {remote_id}" if remote_id else item_id


def format_batch_result(result: BatchResult) -> str:
    """Format a completed batch result as human-readable text.

    Sections are only included when they contain at least one item.
    Skipped items are summarised by count only.

    Args:
        result: The completed batch result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"{result.operation.value.capitalize()} report"
    if result.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    lines.append("")

    lines.append(
        f"Processed {len(result.outcomes)} items: "
        f"{len(result.succeeded)} succeeded, "
        f"{len(result.conflicted)} conflicted, "
        f"{len(result.skipped)} skipped, "
        f"{len(result.failed)} failed"
    )
    lines.append("")

    succeeded = [
        o for o in result.outcomes if o.status == ItemStatus.SUCCEEDED
    ]
    if succeeded:
        lines.append("Succeeded:")
        for o in succeeded:
            line = f"  [{o.action.value}] {_target(o.item_id, o.remote_id)}"
            if o.message:
                line += f" ({o.message})"
            lines.append(line)
        lines.append("")

    conflicted = [
        o for o in result.outcomes if o.status == ItemStatus.CONFLICTED
    ]
    if conflicted:
        lines.append("Conflicts:")
        for o in conflicted:
            fields = ", ".join(c.field for c in o.field_conflicts) or "-"
            lines.append(
                f"  {_target(o.item_id, o.remote_id)}: {o.resolution} "
                f"(fields: {fields})"
            )
            if o.action == SyncAction.MARK_MANUAL:
                detail = format_field_conflicts(o.item_id, o.field_conflicts)
                lines.extend(f"  {line}" for line in detail.splitlines()[1:])
        lines.append("")

    failed = [o for o in result.outcomes if o.status == ItemStatus.FAILED]
    if failed:
        lines.append("Errors:")
        for o in failed:
            suffix = " [retryable]" if o.retryable else ""
            lines.append(f"  {o.item_id}: {o.error}{suffix}")
        lines.append("")

    if result.skipped:
        lines.append(f"Skipped: {len(result.skipped)} items")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(result: BatchResult) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION] item <-> key`` followed by
    the fields it would change.

    Args:
        result: A dry-run batch result (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Operation: {result.operation.value}")
    lines.append("")

    groups = defaultdict(list)
    for o in result.outcomes:
        if o.status in (ItemStatus.SUCCEEDED, ItemStatus.CONFLICTED):
            groups[o.action].append(o)

    display_order = [
        SyncAction.CREATE_REMOTE,
        SyncAction.PUSH,
        SyncAction.PULL,
        SyncAction.BOOTSTRAP,
        SyncAction.MARK_MANUAL,
    ]

    for action in display_order:
        if action not in groups:
            continue
        label = action.value.upper().replace("_", " ")
        lines.append(f"[{label}]")
        for o in groups[action]:
            lines.append(f"  {_target(o.item_id, o.remote_id)}")
            for field in sorted(o.updates):
                lines.append(f"    {field}: {o.updates[field]!r}")
        lines.append("")

    if result.skipped:
        lines.append(f"Skipped: {len(result.skipped)} items (unchanged)")
        lines.append("")

    if result.failed:
        lines.append("Errors:")
        for o in result.outcomes:
            if o.status == ItemStatus.FAILED:
                lines.append(f"  {o.item_id}: {o.error}")
        lines.append("")

    if not groups:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflicts and status
# ------------------------------------------------------------------


def format_field_conflicts(
    item_id: str, conflicts: list[FieldConflict]
) -> str:
    """Format the diverging fields of one conflicted item."""
    lines = [f"Conflict: {item_id}"]
    if not conflicts:
        lines.append("  (both sides changed, no overlapping fields)")
    for c in conflicts:
        lines.append(f"  {c.field}:")
        lines.append(f"    base:   {c.base_value!r}")
        lines.append(f"    local:  {c.local_value!r}")
        lines.append(f"    remote: {c.remote_value!r}")
    return "\n".join(lines)


def format_status(report: StatusReport) -> str:
    """Format a status report as one line per mapped item."""
    lines: list[str] = []
    if not report.items:
        lines.append("No mapped tasks.")
    for item in report.items:
        state = item.state.value if item.state else "Error"
        line = f"{item.item_id:<12} {item.remote_id:<12} {state:<10}"
        if item.last_sync_at:
            line += f" last sync {item.last_sync_at}"
        if item.conflict_marker:
            line += f" [{item.conflict_marker}]"
        if item.error:
            line += f" ({item.error})"
        lines.append(line.rstrip())

    if report.unmapped:
        lines.append("")
        lines.append(f"Unmapped tasks ({len(report.unmapped)}):")
        lines.append("  " + ", ".join(report.unmapped))
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: BatchResult) -> dict:
    """Convert a batch result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        result: The batch result.

    Returns:
        Dict with operation info, counts, and per-item details.
    """
    items = []
    for o in result.outcomes:
        entry: dict = {
            "item_id": o.item_id,
            "remote_id": o.remote_id,
            "status": o.status.value,
            "action": o.action.value,
        }
        if o.state is not None:
            entry["state"] = o.state.value
        if o.updates:
            entry["updates"] = o.updates
        if o.field_conflicts:
            entry["field_conflicts"] = [
                c.model_dump(mode="json") for c in o.field_conflicts
            ]
        if o.resolution:
            entry["resolution"] = o.resolution
        if o.message:
            entry["message"] = o.message
        if o.error:
            entry["error"] = o.error
            entry["error_kind"] = o.error_kind
            entry["retryable"] = o.retryable
        items.append(entry)

    return {
        "operation": result.operation.value,
        "dry_run": result.dry_run,
        "success": result.success,
        "outcome": result.outcome.value,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "counts": {
            "total": len(result.outcomes),
            "succeeded": len(result.succeeded),
            "conflicted": len(result.conflicted),
            "skipped": len(result.skipped),
            "failed": len(result.failed),
        },
        "items": items,
    }


def status_to_json(report: StatusReport) -> dict:
    """Convert a status report to a structured dict."""
    return report.model_dump(mode="json")
