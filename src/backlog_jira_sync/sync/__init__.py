"""Backlog.md <-> Jira sync state engine.

Public API for keeping local Backlog.md task files and Jira issues
eventually consistent.

Architecture
------------
The engine uses **snapshot-based change detection**.  After every
successful push or pull it records a digest of each side's canonical
form.  On the next run each side is compared against its own snapshot
-- a local digest is never compared with a remote one -- which tells
the engine which side changed and whether both did.

Modules:

- ``engine``      -- ``SyncEngine``: push, pull, sync, link, status.
- ``store``       -- ``SyncStore``: mappings, snapshots, operation log.
- ``normalizer``  -- canonical projection and SHA-256 digests.
- ``classifier``  -- five-state classification from digests.
- ``conflicts``   -- field-level three-way conflict detection.
- ``resolver``    -- conflict strategies (prefer-local, prefer-remote,
  manual, prompt).
- ``reporter``    -- human-readable and JSON report formatting.
- ``ports``       -- collaborator protocols.
- ``models`` / ``errors`` -- data contracts and error taxonomy.

Usage example
-------------
::

    from pathlib import Path
    from backlog_jira_sync.core.backlog_client import BacklogClient
    from backlog_jira_sync.core.jira_client import JiraClient
    from backlog_jira_sync.sync import (
        ItemSelection, SyncEngine, SyncStore, format_batch_result,
    )

    with SyncStore.open(Path(".backlog-jira")) as store:
        engine = SyncEngine(
            BacklogClient(Path("backlog/tasks")),
            JiraClient(config),
            store,
            project_key="PROJ",
            conflict_strategy="manual",
        )

        # Dry-run first to preview changes
        preview = engine.sync(dry_run=True)
        print(format_batch_result(preview))

        result = engine.sync()
        print(format_batch_result(result))
"""

from .classifier import classify
from .conflicts import detect_field_conflicts, diff_fields
from .engine import ItemLocks, SyncEngine
from .errors import (
    ConfigurationError,
    ConflictWithoutForceError,
    MappingError,
    NotFoundError,
    StoreError,
    SyncError,
    TransportError,
)
from .models import (
    BatchResult,
    CanonicalRecord,
    FieldConflict,
    ItemOutcome,
    ItemSelection,
    ItemStatus,
    LocalTask,
    RemoteIssue,
    StatusReport,
    SyncAction,
    SyncState,
    Transition,
)
from .normalizer import compute_digest, normalize_local_task, normalize_remote_issue
from .reporter import (
    format_batch_result,
    format_dry_run_preview,
    format_status,
    result_to_json,
)
from .resolver import create_resolver
from .store import SyncStore

__all__ = [
    "BatchResult",
    "CanonicalRecord",
    "ConfigurationError",
    "ConflictWithoutForceError",
    "FieldConflict",
    "ItemLocks",
    "ItemOutcome",
    "ItemSelection",
    "ItemStatus",
    "LocalTask",
    "MappingError",
    "NotFoundError",
    "RemoteIssue",
    "StatusReport",
    "StoreError",
    "SyncAction",
    "SyncEngine",
    "SyncError",
    "SyncState",
    "SyncStore",
    "TransportError",
    "Transition",
    "classify",
    "compute_digest",
    "create_resolver",
    "detect_field_conflicts",
    "diff_fields",
    "format_batch_result",
    "format_dry_run_preview",
    "format_status",
    "normalize_local_task",
    "normalize_remote_issue",
    "result_to_json",
]
