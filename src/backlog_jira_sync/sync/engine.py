"""Sync orchestrator: push, pull, and sync between Backlog.md and Jira.

The ``SyncEngine`` ties together the store, normalizer, classifier,
conflict detector and resolver.  For every selected item it:

1. Looks up the mapping and fetches the current task and issue.
2. Normalizes both and loads the baselines from the store.
3. Classifies the item (``InSync``, ``NeedsPush``, ...).
4. Acts on the classification (update remote, update local, bootstrap,
   or hand a conflict to the resolver).
5. Commits both new baselines in one store commit.

Once per batch the aggregate result is appended to the operation log.

Error handling is per-item: a single failure does not abort the batch.
Only configuration errors (unknown strategy, missing project key) are
raised, and they are raised before any item is touched.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from ..core.async_utils import run_bounded
from .classifier import classify
from .conflicts import detect_field_conflicts, diff_fields
from .errors import (
    ConfigurationError,
    ConflictWithoutForceError,
    MappingError,
    NotFoundError,
    SyncError,
)
from .models import (
    CONFLICT_MARKER,
    BatchResult,
    CanonicalRecord,
    ItemOutcome,
    ItemSelection,
    ItemStatus,
    ItemStatusReport,
    LocalTask,
    OperationKind,
    RemoteIssue,
    Side,
    Snapshot,
    SnapshotPair,
    StatusReport,
    SyncAction,
    SyncState,
)
from .normalizer import (
    DEFAULT_STATUS_MAP,
    compute_digest,
    map_remote_status,
    normalize_local_task,
    normalize_remote_issue,
)
from .ports import LocalTaskSource, RemoteTracker
from .resolver import ConflictResolver, Resolution, create_resolver
from .store import SyncStore, utc_now

logger = logging.getLogger(__name__)

ItemHandler = Callable[[str], ItemOutcome]


class ItemLocks:
    """Hand out one lock per item id.

    A worker holds the lock of an item for its whole
    fetch -> classify -> act -> commit cycle.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, item_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(item_id)
            if lock is None:
                lock = self._locks[item_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, item_id: str) -> Iterator[None]:
        with self.get(item_id):
            yield


@dataclass(frozen=True)
class _ItemView:
    """Everything fetched and derived for one mapped item."""

    item_id: str
    remote_id: str
    task: LocalTask
    issue: RemoteIssue
    local: CanonicalRecord
    remote: CanonicalRecord
    baselines: SnapshotPair
    state: SyncState


def _dedupe(item_ids: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for item_id in item_ids:
        if item_id not in seen:
            seen.add(item_id)
            ordered.append(item_id)
    return ordered


class SyncEngine:
    """Orchestrate push, pull, and sync runs over mapped items.

    Args:
        local: Local task source (Backlog.md).
        remote: Remote tracker (Jira).
        store: An open ``SyncStore``.
        project_key: Jira project new issues are created in.
        issue_type: Issue type for new issues.
        status_map: Remote status name -> local status name.
        conflict_strategy: Default strategy for ``sync``.
        max_workers: Upper bound on items processed concurrently.

    Raises:
        ConfigurationError: If *conflict_strategy* is unknown or
            *max_workers* is below 1.
    """

    def __init__(
        self,
        local: LocalTaskSource,
        remote: RemoteTracker,
        store: SyncStore,
        *,
        project_key: str | None = None,
        issue_type: str = "Task",
        status_map: Mapping[str, str] | None = None,
        conflict_strategy: str = "prompt",
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be at least 1, got {max_workers}"
            )
        self.local = local
        self.remote = remote
        self.store = store
        self.project_key = project_key
        self.issue_type = issue_type
        self.status_map = dict(
            DEFAULT_STATUS_MAP if status_map is None else status_map
        )
        self.conflict_strategy = conflict_strategy
        self.max_workers = max_workers

        # Validates the default strategy up front.
        self.resolver = create_resolver(conflict_strategy)
        self._locks = ItemLocks()
        self._cancel = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: Any,
        local: LocalTaskSource,
        remote: RemoteTracker,
        store: SyncStore,
    ) -> SyncEngine:
        """Build an engine from a ``UnifiedConfig``."""
        return cls(
            local,
            remote,
            store,
            project_key=config.jira.project_key,
            issue_type=config.jira.issue_type,
            status_map=config.sync.status_map,
            conflict_strategy=config.sync.conflict_strategy,
            max_workers=config.sync.max_workers,
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop launching new items; in-flight items finish."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested; finishing in-flight items")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def push(
        self,
        selection: ItemSelection | None = None,
        *,
        force: bool = False,
        dry_run: bool = False,
    ) -> BatchResult:
        """Propagate local changes to the remote tracker.

        Unmapped items get a new remote issue and a mapping.  Default
        selection: mapped items classified ``NeedsPush``.

        Raises:
            ConfigurationError: If an unmapped item is selected and no
                project key is configured.
        """
        selection = selection or ItemSelection()
        item_ids = self._select(selection, SyncState.NEEDS_PUSH)
        if not self.project_key and any(
            self.store.get_mapping(i) is None for i in item_ids
        ):
            raise ConfigurationError(
                "jira.project_key is required to create remote issues"
            )
        return self._run_batch(
            OperationKind.PUSH,
            item_ids,
            lambda item_id: self._push_item(item_id, force, dry_run),
            dry_run,
        )

    def pull(
        self,
        selection: ItemSelection | None = None,
        *,
        force: bool = False,
        dry_run: bool = False,
    ) -> BatchResult:
        """Propagate remote changes to local tasks.

        Never creates local tasks.  Default selection: mapped items
        classified ``NeedsPull``.
        """
        selection = selection or ItemSelection()
        item_ids = self._select(selection, SyncState.NEEDS_PULL)
        return self._run_batch(
            OperationKind.PULL,
            item_ids,
            lambda item_id: self._pull_item(item_id, force, dry_run),
            dry_run,
        )

    def sync(
        self,
        selection: ItemSelection | None = None,
        *,
        strategy: str | None = None,
        dry_run: bool = False,
    ) -> BatchResult:
        """Classify each item and push, pull, bootstrap, or resolve.

        Args:
            selection: Items to process (default: all mapped items).
            strategy: Conflict strategy overriding the configured one.
            dry_run: Report what would happen without changing anything.

        Raises:
            ConfigurationError: If *strategy* is unknown.
        """
        resolver = (
            create_resolver(strategy) if strategy is not None else self.resolver
        )
        selection = selection or ItemSelection()
        item_ids = self._select(selection, None)
        return self._run_batch(
            OperationKind.SYNC,
            item_ids,
            lambda item_id: self._sync_item(item_id, resolver, dry_run),
            dry_run,
        )

    def link(self, item_id: str, remote_id: str) -> None:
        """Map an existing task to an existing issue without snapshots.

        The next ``sync`` bootstraps the baselines.

        Raises:
            NotFoundError: If either record does not exist.
            MappingError: If either side is already mapped.
        """
        with self._locks.hold(item_id):
            owner = self.store.find_local_id(remote_id)
            if owner is not None and owner != item_id:
                raise MappingError(
                    f"Issue {remote_id} is already linked to {owner}; "
                    f"unlink {owner} first",
                    item_id,
                )
            self.local.get_item(item_id)
            self.remote.get_item(remote_id)
            self.store.add_mapping(item_id, remote_id)

    def unlink(self, item_id: str) -> str:
        """Retire the mapping of *item_id* with its snapshots.

        Returns:
            The remote key the task was mapped to.

        Raises:
            NotFoundError: If *item_id* is not mapped.
        """
        with self._locks.hold(item_id):
            remote_id = self.store.get_mapping(item_id)
            if remote_id is None:
                raise NotFoundError(f"No remote mapping for {item_id}", item_id)
            self.store.remove_mapping(item_id)
            return remote_id

    def status(self, selection: ItemSelection | None = None) -> StatusReport:
        """Classify mapped items without changing anything.

        Fetch failures are reported on the item rather than raised.
        """
        selection = selection or ItemSelection()
        mappings = self.store.all_mappings()
        if selection.item_ids:
            item_ids = [i for i in _dedupe(selection.item_ids) if i in mappings]
        else:
            item_ids = list(mappings)

        items = []
        for item_id in item_ids:
            record = self.store.get_sync_state(item_id)
            state = None
            error = None
            try:
                state = self._fetch(item_id, mappings[item_id]).state
            except SyncError as exc:
                error = str(exc)
            items.append(
                ItemStatusReport(
                    item_id=item_id,
                    remote_id=mappings[item_id],
                    state=state,
                    last_sync_at=record.last_sync_at,
                    conflict_marker=record.conflict_marker,
                    error=error,
                )
            )

        unmapped = [i for i in self.local.list_task_ids() if i not in mappings]
        return StatusReport(items=items, unmapped=unmapped)

    # ------------------------------------------------------------------
    # Selection and batch execution
    # ------------------------------------------------------------------

    def _select(
        self, selection: ItemSelection, wanted: SyncState | None
    ) -> list[str]:
        """Resolve *selection* into an ordered, de-duplicated id list."""
        if selection.item_ids:
            return _dedupe(selection.item_ids)

        mappings = self.store.all_mappings()
        if selection.all_mapped or wanted is None:
            return list(mappings)

        selected = []
        for item_id, remote_id in mappings.items():
            try:
                view = self._fetch(item_id, remote_id)
            except SyncError as exc:
                logger.warning("Cannot classify %s: %s", item_id, exc)
                continue
            if view.state == wanted:
                selected.append(item_id)
        return selected

    def _run_batch(
        self,
        kind: OperationKind,
        item_ids: list[str],
        handler: ItemHandler,
        dry_run: bool,
    ) -> BatchResult:
        started_at = utc_now()
        self._cancel.clear()
        logger.info(
            "Starting %s of %d item(s)%s",
            kind.value,
            len(item_ids),
            " (dry run)" if dry_run else "",
        )

        def process(item_id: str) -> ItemOutcome:
            return self._process_item(item_id, handler)

        if self.max_workers > 1 and len(item_ids) > 1:
            outcomes = asyncio.run(
                run_bounded(process, item_ids, self.max_workers)
            )
        else:
            outcomes = [process(item_id) for item_id in item_ids]

        result = BatchResult(
            operation=kind,
            dry_run=dry_run,
            outcomes=outcomes,
            started_at=started_at,
            completed_at=utc_now(),
        )
        logger.info(
            "Finished %s: %d succeeded, %d conflicted, %d skipped, %d failed",
            kind.value,
            len(result.succeeded),
            len(result.conflicted),
            len(result.skipped),
            len(result.failed),
        )

        if not dry_run and outcomes:
            self.store.log_operation(
                kind,
                item_ids[0] if len(item_ids) == 1 else None,
                result.outcome,
                {
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "skipped": result.skipped,
                    "conflicted": result.conflicted,
                },
            )
        return result

    def _process_item(self, item_id: str, handler: ItemHandler) -> ItemOutcome:
        """Run *handler* for one item, turning errors into outcomes."""
        if self._cancel.is_set():
            return ItemOutcome(
                item_id=item_id,
                status=ItemStatus.SKIPPED,
                message="cancelled",
            )
        with self._locks.hold(item_id):
            try:
                return handler(item_id)
            except SyncError as exc:
                logger.error("Failed to process %s: %s", item_id, exc)
                return ItemOutcome(
                    item_id=item_id,
                    remote_id=self.store.get_mapping(item_id),
                    status=ItemStatus.FAILED,
                    error=str(exc),
                    error_kind=exc.kind,
                    retryable=exc.retryable,
                )
            except Exception as exc:
                logger.exception("Unexpected error processing %s", item_id)
                return ItemOutcome(
                    item_id=item_id,
                    status=ItemStatus.FAILED,
                    error=str(exc) or type(exc).__name__,
                    error_kind="unexpected",
                )

    # ------------------------------------------------------------------
    # Fetch and classify
    # ------------------------------------------------------------------

    def _fetch(self, item_id: str, remote_id: str) -> _ItemView:
        task = self.local.get_item(item_id)
        issue = self.remote.get_item(remote_id)
        local = normalize_local_task(task)
        remote = normalize_remote_issue(issue, self.status_map)
        baselines = self.store.get_snapshots(item_id)
        state = classify(
            compute_digest(local),
            compute_digest(remote),
            baselines.local.digest if baselines.local else None,
            baselines.remote.digest if baselines.remote else None,
        )
        logger.debug("%s <-> %s classified %s", item_id, remote_id, state.value)
        return _ItemView(
            item_id=item_id,
            remote_id=remote_id,
            task=task,
            issue=issue,
            local=local,
            remote=remote,
            baselines=baselines,
            state=state,
        )

    def _require_mapping(self, item_id: str) -> str:
        remote_id = self.store.get_mapping(item_id)
        if remote_id is None:
            raise NotFoundError(f"No remote mapping for {item_id}", item_id)
        return remote_id

    @staticmethod
    def _snapshot(record: CanonicalRecord) -> Snapshot:
        return Snapshot(
            digest=compute_digest(record),
            payload=record,
            captured_at=utc_now(),
        )

    @staticmethod
    def _changed_since(
        view: _ItemView, side: Side, force: bool = False
    ) -> CanonicalRecord | None:
        """Baseline of *side* when only *side* moved, else ``None``.

        Passed to ``diff_fields`` so a one-sided change carries only the
        fields that side edited.  Values the two systems spell
        differently (a Jira display name against a Backlog.md handle)
        then stay put.  Forced writes, conflict resolutions and
        overwrites of the other side's edits get no baseline and carry
        every differing field.
        """
        if force:
            return None
        if side == Side.LOCAL:
            wanted, snapshot = SyncState.NEEDS_PUSH, view.baselines.local
        else:
            wanted, snapshot = SyncState.NEEDS_PULL, view.baselines.remote
        if view.state != wanted or snapshot is None:
            return None
        return snapshot.payload

    @staticmethod
    def _pushed_local(
        local: CanonicalRecord, landed: CanonicalRecord
    ) -> CanonicalRecord:
        """Local baseline recording what actually reached the remote.

        A status no workflow transition could reach keeps the remote's
        status in the baseline, so the task still classifies
        ``NeedsPush`` and the transition is retried next run.
        """
        if local.status and (local.status.casefold()
                             != (landed.status or "").casefold()):
            return local.model_copy(update={"status": landed.status})
        return local

    # ------------------------------------------------------------------
    # Per-item operations
    # ------------------------------------------------------------------

    def _push_item(self, item_id: str, force: bool, dry_run: bool) -> ItemOutcome:
        remote_id = self.store.get_mapping(item_id)
        if remote_id is None:
            return self._create_remote(item_id, dry_run)

        view = self._fetch(item_id, remote_id)
        if view.state == SyncState.CONFLICT and not force:
            raise ConflictWithoutForceError(item_id)
        if view.state == SyncState.IN_SYNC and not force:
            return self._skipped(view, "already in sync")
        if view.state == SyncState.NEEDS_PULL:
            logger.warning(
                "Pushing %s although only the remote side changed", item_id
            )
        return self._apply_push(
            view, dry_run, baseline=self._changed_since(view, Side.LOCAL, force)
        )

    def _pull_item(self, item_id: str, force: bool, dry_run: bool) -> ItemOutcome:
        view = self._fetch(item_id, self._require_mapping(item_id))
        if view.state == SyncState.CONFLICT and not force:
            raise ConflictWithoutForceError(item_id)
        if view.state == SyncState.IN_SYNC and not force:
            return self._skipped(view, "already in sync")
        if view.state == SyncState.NEEDS_PUSH:
            logger.warning(
                "Pulling %s although only the local side changed", item_id
            )
        return self._apply_pull(
            view, dry_run, baseline=self._changed_since(view, Side.REMOTE, force)
        )

    def _sync_item(
        self, item_id: str, resolver: ConflictResolver, dry_run: bool
    ) -> ItemOutcome:
        remote_id = self.store.get_mapping(item_id)
        if remote_id is None:
            return ItemOutcome(
                item_id=item_id,
                status=ItemStatus.SKIPPED,
                message="no remote mapping",
            )

        view = self._fetch(item_id, remote_id)
        if view.state == SyncState.IN_SYNC:
            return self._skipped(view, "already in sync")
        if view.state == SyncState.NEEDS_PUSH:
            return self._apply_push(
                view, dry_run, baseline=self._changed_since(view, Side.LOCAL)
            )
        if view.state == SyncState.NEEDS_PULL:
            return self._apply_pull(
                view, dry_run, baseline=self._changed_since(view, Side.REMOTE)
            )
        if view.state == SyncState.UNKNOWN:
            return self._bootstrap(view, dry_run)
        return self._resolve_conflict(view, resolver, dry_run)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _skipped(self, view: _ItemView, message: str) -> ItemOutcome:
        return ItemOutcome(
            item_id=view.item_id,
            remote_id=view.remote_id,
            status=ItemStatus.SKIPPED,
            state=view.state,
            message=message,
        )

    def _create_remote(self, item_id: str, dry_run: bool) -> ItemOutcome:
        """Create the remote issue for an unmapped task and seed baselines."""
        if not self.project_key:
            raise ConfigurationError(
                "jira.project_key is required to create remote issues",
                item_id,
            )
        task = self.local.get_item(item_id)
        local = normalize_local_task(task)
        fields = {
            field: value
            for field, value in diff_fields(local, CanonicalRecord()).items()
            if field not in ("title", "status")
        }
        if dry_run:
            return ItemOutcome(
                item_id=item_id,
                status=ItemStatus.SUCCEEDED,
                action=SyncAction.CREATE_REMOTE,
                updates=diff_fields(local, CanonicalRecord()),
                message="dry run",
            )

        created = self.remote.create_item(
            self.project_key,
            self.issue_type,
            local.title or item_id,
            fields,
        )
        logger.info("Created %s for %s", created.key, item_id)
        # Mapped before anything else can fail: a retry must update this
        # issue, never create a second one.
        self.store.add_mapping(item_id, created.key)

        note = None
        created_status = map_remote_status(created.status, self.status_map)
        if local.status and created_status != local.status:
            note = self._transition_remote(created.key, local.status)

        landed = normalize_remote_issue(
            self.remote.get_item(created.key), self.status_map
        )
        self.store.commit_item(
            item_id,
            local=self._snapshot(self._pushed_local(local, landed)),
            remote=self._snapshot(landed),
        )
        return ItemOutcome(
            item_id=item_id,
            remote_id=created.key,
            status=ItemStatus.SUCCEEDED,
            action=SyncAction.CREATE_REMOTE,
            message=note,
        )

    def _apply_push(
        self,
        view: _ItemView,
        dry_run: bool,
        resolution: str | None = None,
        baseline: CanonicalRecord | None = None,
    ) -> ItemOutcome:
        updates = diff_fields(view.local, view.remote, baseline)
        status = (
            ItemStatus.CONFLICTED if resolution is not None
            else ItemStatus.SUCCEEDED
        )
        if dry_run:
            return ItemOutcome(
                item_id=view.item_id,
                remote_id=view.remote_id,
                status=status,
                action=SyncAction.PUSH,
                state=view.state,
                updates=updates,
                resolution=resolution,
                message="dry run",
            )

        field_updates = {k: v for k, v in updates.items() if k != "status"}
        if field_updates:
            self.remote.update_item(view.remote_id, field_updates)

        note = None
        if "status" in updates:
            if view.local.status:
                note = self._transition_remote(
                    view.remote_id, view.local.status
                )
            else:
                note = "Local status is empty; remote status left unchanged"
                logger.warning("%s: %s", view.item_id, note)

        landed = normalize_remote_issue(
            self.remote.get_item(view.remote_id), self.status_map
        )
        self.store.commit_item(
            view.item_id,
            local=self._snapshot(self._pushed_local(view.local, landed)),
            remote=self._snapshot(landed),
        )
        logger.info("Pushed %s -> %s", view.item_id, view.remote_id)
        return ItemOutcome(
            item_id=view.item_id,
            remote_id=view.remote_id,
            status=status,
            action=SyncAction.PUSH,
            state=view.state,
            updates=updates,
            resolution=resolution,
            message=note,
        )

    def _apply_pull(
        self,
        view: _ItemView,
        dry_run: bool,
        resolution: str | None = None,
        baseline: CanonicalRecord | None = None,
    ) -> ItemOutcome:
        updates = diff_fields(view.remote, view.local, baseline)
        status = (
            ItemStatus.CONFLICTED if resolution is not None
            else ItemStatus.SUCCEEDED
        )
        if dry_run:
            return ItemOutcome(
                item_id=view.item_id,
                remote_id=view.remote_id,
                status=status,
                action=SyncAction.PULL,
                state=view.state,
                updates=updates,
                resolution=resolution,
                message="dry run",
            )

        if updates:
            self.local.update_item(view.item_id, updates)
        refreshed = self.local.get_item(view.item_id)
        self.store.commit_item(
            view.item_id,
            local=self._snapshot(normalize_local_task(refreshed)),
            remote=self._snapshot(view.remote),
        )
        logger.info("Pulled %s -> %s", view.remote_id, view.item_id)
        return ItemOutcome(
            item_id=view.item_id,
            remote_id=view.remote_id,
            status=status,
            action=SyncAction.PULL,
            state=view.state,
            updates=updates,
            resolution=resolution,
        )

    def _bootstrap(self, view: _ItemView, dry_run: bool) -> ItemOutcome:
        """Seed both baselines from the current records; no data moves."""
        if not dry_run:
            self.store.commit_item(
                view.item_id,
                local=self._snapshot(view.local),
                remote=self._snapshot(view.remote),
            )
            logger.info("Bootstrapped baselines for %s", view.item_id)
        return ItemOutcome(
            item_id=view.item_id,
            remote_id=view.remote_id,
            status=ItemStatus.SUCCEEDED,
            action=SyncAction.BOOTSTRAP,
            state=view.state,
            message="dry run" if dry_run else None,
        )

    def _resolve_conflict(
        self, view: _ItemView, resolver: ConflictResolver, dry_run: bool
    ) -> ItemOutcome:
        baselines = view.baselines
        conflicts = detect_field_conflicts(
            view.local,
            view.remote,
            baselines.local.payload if baselines.local else None,
            baselines.remote.payload if baselines.remote else None,
        )
        resolution = resolver.resolve(view.item_id, conflicts)
        logger.info(
            "Conflict on %s resolved as %s (%s)",
            view.item_id,
            resolution.value,
            resolver.label,
        )

        if resolution == Resolution.PUSH:
            outcome = self._apply_push(view, dry_run, resolver.label)
        elif resolution == Resolution.PULL:
            outcome = self._apply_pull(view, dry_run, resolver.label)
        else:
            if not dry_run:
                self.store.set_conflict_marker(view.item_id, CONFLICT_MARKER)
            outcome = ItemOutcome(
                item_id=view.item_id,
                remote_id=view.remote_id,
                status=ItemStatus.CONFLICTED,
                action=SyncAction.MARK_MANUAL,
                state=view.state,
                resolution=resolver.label,
                message="dry run" if dry_run else CONFLICT_MARKER,
            )
        return outcome.model_copy(update={"field_conflicts": conflicts})

    def _transition_remote(self, remote_id: str, desired: str) -> str | None:
        """Move *remote_id* to the remote status mapping to *desired*.

        Returns:
            ``None`` on success, otherwise a note for the outcome.
        """
        wanted = desired.casefold()
        for transition in self.remote.list_transitions(remote_id):
            target = map_remote_status(transition.to_status, self.status_map)
            if (target or "").casefold() == wanted:
                self.remote.apply_transition(remote_id, transition.id)
                logger.info(
                    "Transitioned %s via '%s' to %s",
                    remote_id,
                    transition.name,
                    transition.to_status,
                )
                return None
        note = f"No workflow transition to status '{desired}'"
        logger.warning("%s: %s", remote_id, note)
        return note
