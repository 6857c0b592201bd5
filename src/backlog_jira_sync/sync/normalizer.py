"""Canonical projection and content digests for tasks and issues.

Both sides are projected into a ``CanonicalRecord`` sharing one field
vocabulary (``title``, ``description``, ``status``, ``assignee``,
``priority``, ``labels``).  Server-assigned fields (ids, created/updated
timestamps, reporter, issue type) are dropped, so re-fetching an
unchanged record always yields the same digest.

Key design choices:

* **Text normalisation** -- BOM, line endings, trailing whitespace and
  trailing blank lines never change a digest.  Empty text is ``None``.
* **Label sets** -- labels are stripped, de-duplicated and sorted.
* **Priorities** -- compared case-insensitively (Backlog.md writes
  ``high``, Jira ``High``).
* **Status vocabulary** -- remote statuses are translated into local
  status names via the configured status map, so the two sides can be
  compared field-by-field during conflict detection.  Digests are only
  ever compared against the same side's baseline.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping

from .models import CanonicalRecord, LocalTask, RemoteIssue

DEFAULT_STATUS_MAP: dict[str, str] = {
    "To Do": "To Do",
    "Open": "To Do",
    "Backlog": "To Do",
    "In Progress": "In Progress",
    "Done": "Done",
    "Closed": "Done",
    "Resolved": "Done",
}


def normalize_text(value: str | None) -> str | None:
    """Normalise free text for hashing and comparison.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip leading and trailing empty lines.

    Returns ``None`` for ``None`` or whitespace-only input.
    """
    if value is None:
        return None
    text = value.lstrip("\ufeff").replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    while lines and lines[0] == "":
        lines.pop(0)
    normalised = "\n".join(lines)
    return normalised or None


def normalize_scalar(value: str | None) -> str | None:
    """Strip a single-line value; empty becomes ``None``."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_priority(value: str | None) -> str | None:
    """Lower-case a priority name (``High`` and ``high`` are equal)."""
    value = normalize_scalar(value)
    return value.casefold() if value else None


def normalize_labels(labels: Iterable[str] | None) -> tuple[str, ...]:
    """Return labels as a sorted, de-duplicated tuple."""
    if not labels:
        return ()
    return tuple(sorted({label.strip() for label in labels if label.strip()}))


def map_remote_status(
    status: str | None, status_map: Mapping[str, str] | None = None
) -> str | None:
    """Translate a remote status name into the local vocabulary.

    Lookup is exact first, then case-insensitive.  Unmapped statuses
    pass through unchanged.
    """
    status = normalize_scalar(status)
    if status is None:
        return None
    mapping = DEFAULT_STATUS_MAP if status_map is None else status_map
    if status in mapping:
        return mapping[status]
    folded = status.casefold()
    for remote_name, local_name in mapping.items():
        if remote_name.casefold() == folded:
            return local_name
    return status


def normalize_local_task(task: LocalTask) -> CanonicalRecord:
    """Project a local task into canonical form."""
    # Backlog.md writes "@name"
    assignees = [
        a.lstrip("@") for a in (normalize_scalar(a) for a in task.assignee) if a
    ]
    return CanonicalRecord(
        title=normalize_scalar(task.title),
        description=normalize_text(task.description),
        status=normalize_scalar(task.status),
        assignee=(assignees[0] or None) if assignees else None,
        priority=normalize_priority(task.priority),
        labels=normalize_labels(task.labels),
    )


def normalize_remote_issue(
    issue: RemoteIssue, status_map: Mapping[str, str] | None = None
) -> CanonicalRecord:
    """Project a remote issue into canonical form."""
    return CanonicalRecord(
        title=normalize_scalar(issue.summary),
        description=normalize_text(issue.description),
        status=map_remote_status(issue.status, status_map),
        assignee=normalize_scalar(issue.assignee),
        priority=normalize_priority(issue.priority),
        labels=normalize_labels(issue.labels),
    )


def canonical_bytes(record: CanonicalRecord) -> bytes:
    """Serialise *record* deterministically for hashing."""
    payload = record.model_dump(mode="json")
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def compute_digest(record: CanonicalRecord) -> str:
    """Return the SHA-256 hex digest of *record*'s canonical bytes."""
    return hashlib.sha256(canonical_bytes(record)).hexdigest()
