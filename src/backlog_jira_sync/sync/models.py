"""Pydantic models for the task sync engine.

Defines the core data contracts used across all sync modules:

- ``LocalTask`` / ``RemoteIssue``: current records fetched from the two
  collaborators.
- ``CanonicalRecord``: the order-independent projection both sides are
  digested and diffed in.
- ``Snapshot`` / ``SnapshotPair`` / ``SyncStateRecord``: persisted
  reconciliation baselines.
- ``SyncState``: closed set of classifier results.
- ``FieldConflict``: one diverging field found by three-way comparison.
- ``ItemOutcome`` / ``BatchResult``: per-item and aggregate results of a
  push, pull, or sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

CONFLICT_MARKER = "manual-resolution-required"

COMPARABLE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "status",
    "assignee",
    "priority",
    "labels",
)


class SyncState(str, Enum):
    """Classification of one tracked item against its baselines."""

    UNKNOWN = "Unknown"
    IN_SYNC = "InSync"
    NEEDS_PUSH = "NeedsPush"
    NEEDS_PULL = "NeedsPull"
    CONFLICT = "Conflict"


class Side(str, Enum):
    """Which replica a snapshot belongs to."""

    LOCAL = "local"
    REMOTE = "remote"


class OperationKind(str, Enum):
    """Batch operation kinds recorded in the operation log."""

    PUSH = "push"
    PULL = "pull"
    SYNC = "sync"


class OperationOutcome(str, Enum):
    """Aggregate outcome of a batch, as recorded in the operation log."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class SyncAction(str, Enum):
    """What the engine did (or would do, on a dry run) for one item."""

    NONE = "none"
    CREATE_REMOTE = "create_remote"
    PUSH = "push"
    PULL = "pull"
    BOOTSTRAP = "bootstrap"
    MARK_MANUAL = "mark_manual"


class ItemStatus(str, Enum):
    """Bucket an item lands in within a ``BatchResult``."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CONFLICTED = "conflicted"


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


class LocalTask(BaseModel):
    """A task as read from the local Backlog.md task files.

    Attributes:
        id: Task id (e.g. ``task-12``).
        title: Task title.
        description: Body of the ``## Description`` section.
        status: Status name in the local vocabulary.
        assignee: Assignees (Backlog.md allows several).
        priority: Priority name, if set.
        labels: Labels in file order.
        created: Creation date as written in the file.
        updated: Last-updated date as written in the file.
    """

    id: str
    title: str
    description: str | None = None
    status: str = ""
    assignee: list[str] = []
    priority: str | None = None
    labels: list[str] = []
    created: str | None = None
    updated: str | None = None

    model_config = {"frozen": True}


class RemoteIssue(BaseModel):
    """An issue as read from the remote tracker.

    Attributes:
        key: Issue key (e.g. ``PROJ-42``).
        id: Server-side numeric id.
        summary: Issue summary (maps to the local title).
        description: Issue description.
        status: Status name in the remote vocabulary.
        issue_type: Issue type name.
        assignee: Assignee handle (username or email local part, else
            display name).
        reporter: Reporter display name.
        priority: Priority name.
        labels: Labels in server order.
        created: Server-assigned creation timestamp.
        updated: Server-assigned update timestamp.
    """

    key: str
    id: str = ""
    summary: str
    description: str | None = None
    status: str = ""
    issue_type: str = ""
    assignee: str | None = None
    reporter: str | None = None
    priority: str | None = None
    labels: list[str] = []
    created: str | None = None
    updated: str | None = None

    model_config = {"frozen": True}


class Transition(BaseModel):
    """A workflow transition available on a remote issue."""

    id: str
    name: str
    to_status: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Canonical form and persisted state
# ---------------------------------------------------------------------------


class CanonicalRecord(BaseModel):
    """Side-independent projection of a task or issue.

    Only fields that matter for sync-worthiness are kept.  Labels are
    sorted and de-duplicated so equal label sets compare equal.
    """

    title: str | None = None
    description: str | None = None
    status: str | None = None
    assignee: str | None = None
    priority: str | None = None
    labels: tuple[str, ...] = ()

    model_config = {"frozen": True}

    def value(self, field: str) -> Any:
        """Return the canonical value of *field*."""
        return getattr(self, field)


class Snapshot(BaseModel):
    """Baseline for one side of one item at the last successful sync."""

    digest: str
    payload: CanonicalRecord
    captured_at: str

    model_config = {"frozen": True}


class SnapshotPair(BaseModel):
    """Both baselines of an item; either may be absent."""

    local: Snapshot | None = None
    remote: Snapshot | None = None

    model_config = {"frozen": True}


class SyncStateRecord(BaseModel):
    """Per-item sync bookkeeping."""

    last_sync_at: str | None = None
    conflict_marker: str | None = None

    model_config = {"frozen": True}


class FieldConflict(BaseModel):
    """One field both sides changed to different values."""

    field: str
    local_value: Any = None
    remote_value: Any = None
    base_value: Any = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ItemSelection(BaseModel):
    """Which items a batch operation should process.

    An explicit ``item_ids`` list wins over ``all_mapped``.  When neither
    is given the operation picks its own default (only the items that
    need action).
    """

    item_ids: list[str] = []
    all_mapped: bool = False

    model_config = {"frozen": True}


class ItemOutcome(BaseModel):
    """Result of processing one tracked item.

    Attributes:
        item_id: Local task id.
        remote_id: Mapped remote issue key, if known.
        status: Bucket for the batch result.
        action: Action performed (or planned, on a dry run).
        state: Classified sync state, when classification happened.
        updates: Field updates applied (or planned).
        field_conflicts: Diverging fields found on conflict.
        resolution: Conflict resolution label, on conflict.
        message: Human-readable note.
        error: Error message for failed items.
        error_kind: ``SyncError.kind`` of the failure.
        retryable: Whether re-running may succeed.
    """

    item_id: str
    remote_id: str | None = None
    status: ItemStatus
    action: SyncAction = SyncAction.NONE
    state: SyncState | None = None
    updates: dict[str, Any] = {}
    field_conflicts: list[FieldConflict] = []
    resolution: str | None = None
    message: str | None = None
    error: str | None = None
    error_kind: str | None = None
    retryable: bool = False

    model_config = {"frozen": True}


class BatchResult(BaseModel):
    """Aggregate report for one push, pull, or sync run.

    Attributes:
        operation: Which operation ran.
        dry_run: Whether this was a dry-run (no changes applied).
        outcomes: Per-item outcomes, in selection order.
        started_at: ISO 8601 timestamp when the batch started.
        completed_at: ISO 8601 timestamp when the batch completed.
    """

    operation: OperationKind
    dry_run: bool = False
    outcomes: list[ItemOutcome] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _ids(self, status: ItemStatus) -> list[str]:
        return [o.item_id for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[str]:
        """Item ids that were pushed, pulled, created, or bootstrapped."""
        return self._ids(ItemStatus.SUCCEEDED)

    @property
    def failed(self) -> list[str]:
        """Item ids whose processing raised an error."""
        return self._ids(ItemStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        """Item ids that needed no action."""
        return self._ids(ItemStatus.SKIPPED)

    @property
    def conflicted(self) -> list[str]:
        """Item ids whose conflict was routed to a resolution strategy."""
        return self._ids(ItemStatus.CONFLICTED)

    @property
    def success(self) -> bool:
        """``True`` when no item failed."""
        return not self.failed

    @property
    def outcome(self) -> OperationOutcome:
        """Aggregate outcome recorded in the operation log."""
        if not self.failed:
            return OperationOutcome.SUCCESS
        if len(self.failed) == len(self.outcomes):
            return OperationOutcome.FAILURE
        return OperationOutcome.PARTIAL


class ItemStatusReport(BaseModel):
    """Read-only status of one mapped item (``status`` command)."""

    item_id: str
    remote_id: str
    state: SyncState | None = None
    last_sync_at: str | None = None
    conflict_marker: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class StatusReport(BaseModel):
    """Result of the ``status`` operation.

    Attributes:
        items: One entry per mapped item, in mapping order.
        unmapped: Local task ids that have no remote mapping.
    """

    items: list[ItemStatusReport] = []
    unmapped: list[str] = []

    model_config = {"frozen": True}
