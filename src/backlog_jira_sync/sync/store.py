"""Snapshot store: mappings, baselines, sync state and operation log.

Persists everything the engine needs between runs in the
``.backlog-jira/`` directory:

* ``state.json`` -- mappings, per-side snapshots and per-item sync state.
* ``operations.jsonl`` -- append-only operation log, one JSON object per
  line.

Key design choices:

* **Atomic commits** -- every mutation is applied to a copy of the
  in-memory state, written to a temp file and moved into place with
  ``os.replace()``.  Only after the replace succeeds is the copy swapped
  in, so a failed write leaves both disk and memory untouched.
* **All-or-nothing per item** -- ``commit_item()`` writes both
  snapshots and the sync timestamp in one commit.  A first push
  saves the mapping on its own as soon as the issue exists.
* **Scoped lifetime** -- use ``SyncStore.open()`` as a context manager;
  the store is closed on every exit path and refuses use afterwards.
* **Thread safety** -- a re-entrant lock serialises read-modify-write
  cycles between concurrent workers.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import MappingError, StoreError
from .models import (
    OperationKind,
    OperationOutcome,
    Side,
    Snapshot,
    SnapshotPair,
    SyncStateRecord,
)

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _empty_state() -> dict[str, Any]:
    return {
        "version": STATE_VERSION,
        "mappings": {},
        "snapshots": {},
        "sync_state": {},
    }


class SyncStore:
    """Load, query, and atomically update persisted sync state.

    Args:
        state_dir: Directory holding ``state.json`` and
            ``operations.jsonl`` (typically ``.backlog-jira/``).
    """

    STATE_FILE = "state.json"
    LOG_FILE = "operations.jsonl"

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)
        self._state: dict[str, Any] = _empty_state()
        self._lock = threading.RLock()
        self._is_open = False
        self._next_sequence = 1

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    @contextmanager
    def open(cls, state_dir: Path) -> Iterator[SyncStore]:
        """Open the store for the duration of a ``with`` block."""
        store = cls(state_dir)
        store.load()
        try:
            yield store
        finally:
            store.close()

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    @property
    def state_path(self) -> Path:
        return self._state_dir / self.STATE_FILE

    @property
    def log_path(self) -> Path:
        return self._state_dir / self.LOG_FILE

    @property
    def is_open(self) -> bool:
        return self._is_open

    def load(self) -> None:
        """Read state from disk.

        A missing state file yields an empty state.

        Raises:
            StoreError: If the file is unreadable, not JSON, or has an
                unsupported version.
        """
        with self._lock:
            path = self.state_path
            if path.exists():
                try:
                    with open(path, encoding="utf-8") as fh:
                        data = json.load(fh)
                except (OSError, json.JSONDecodeError) as exc:
                    raise StoreError(
                        f"Cannot read sync state {path}: {exc}"
                    ) from exc
                if data.get("version") != STATE_VERSION:
                    raise StoreError(
                        f"Unsupported sync state version "
                        f"{data.get('version')!r} in {path}"
                    )
                for key in ("mappings", "snapshots", "sync_state"):
                    data.setdefault(key, {})
                self._state = data
            else:
                self._state = _empty_state()

            self._next_sequence = self._count_log_entries() + 1
            self._is_open = True
            logger.debug(
                "Opened sync store %s (%d mappings)",
                self._state_dir,
                len(self._state["mappings"]),
            )

    def close(self) -> None:
        """Release the store.  Further use raises ``StoreError``."""
        with self._lock:
            if self._is_open:
                logger.debug("Closed sync store %s", self._state_dir)
            self._is_open = False

    def _ensure_open(self) -> None:
        if not self._is_open:
            raise StoreError("Sync store is closed")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _write_atomic(self, state: dict[str, Any]) -> None:
        """Write *state* to a temp file, then atomically replace."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.state_path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    @contextmanager
    def _transaction(self) -> Iterator[dict[str, Any]]:
        """Yield a working copy of the state; commit it on clean exit."""
        with self._lock:
            self._ensure_open()
            working = copy.deepcopy(self._state)
            yield working
            try:
                self._write_atomic(working)
            except OSError as exc:
                raise StoreError(
                    f"Cannot write sync state {self.state_path}: {exc}"
                ) from exc
            self._state = working

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def get_mapping(self, local_id: str) -> str | None:
        """Return the remote key mapped to *local_id*, or ``None``."""
        with self._lock:
            self._ensure_open()
            return self._state["mappings"].get(local_id)

    def find_local_id(self, remote_id: str) -> str | None:
        """Reverse lookup: the local id mapped to *remote_id*."""
        with self._lock:
            self._ensure_open()
            for local_id, mapped in self._state["mappings"].items():
                if mapped == remote_id:
                    return local_id
            return None

    def all_mappings(self) -> dict[str, str]:
        """Return a copy of all ``local_id -> remote_key`` mappings."""
        with self._lock:
            self._ensure_open()
            return dict(self._state["mappings"])

    @staticmethod
    def _check_mapping(
        state: dict[str, Any], local_id: str, remote_id: str
    ) -> None:
        mappings = state["mappings"]
        if local_id in mappings:
            raise MappingError(
                f"Task {local_id} is already mapped to {mappings[local_id]}",
                local_id,
            )
        for other_local, mapped in mappings.items():
            if mapped == remote_id:
                raise MappingError(
                    f"Issue {remote_id} is already mapped to {other_local}",
                    local_id,
                )

    def add_mapping(self, local_id: str, remote_id: str) -> None:
        """Create a mapping without snapshots.

        Raises:
            MappingError: If *local_id* is already mapped or *remote_id*
                is mapped to another task.
        """
        with self._transaction() as state:
            self._check_mapping(state, local_id, remote_id)
            state["mappings"][local_id] = remote_id
        logger.info("Mapped %s -> %s", local_id, remote_id)

    def remove_mapping(self, local_id: str) -> bool:
        """Retire a mapping together with its snapshots and sync state.

        Returns:
            ``True`` if a mapping was removed, ``False`` if none existed.
        """
        with self._lock:
            if self.get_mapping(local_id) is None:
                return False
            with self._transaction() as state:
                state["mappings"].pop(local_id, None)
                state["snapshots"].pop(local_id, None)
                state["sync_state"].pop(local_id, None)
        logger.info("Removed mapping for %s", local_id)
        return True

    # ------------------------------------------------------------------
    # Snapshots and sync state
    # ------------------------------------------------------------------

    def get_snapshots(self, item_id: str) -> SnapshotPair:
        """Return both baselines of *item_id*; absent sides are ``None``."""
        with self._lock:
            self._ensure_open()
            entry = self._state["snapshots"].get(item_id, {})
            local = entry.get(Side.LOCAL.value)
            remote = entry.get(Side.REMOTE.value)
            return SnapshotPair(
                local=Snapshot.model_validate(local) if local else None,
                remote=Snapshot.model_validate(remote) if remote else None,
            )

    def get_sync_state(self, item_id: str) -> SyncStateRecord:
        """Return the sync-state record of *item_id* (empty if none)."""
        with self._lock:
            self._ensure_open()
            data = self._state["sync_state"].get(item_id)
            if data is None:
                return SyncStateRecord()
            return SyncStateRecord.model_validate(data)

    def commit_item(
        self,
        item_id: str,
        *,
        local: Snapshot,
        remote: Snapshot,
        synced_at: str | None = None,
    ) -> None:
        """Replace both baselines of *item_id* in a single commit.

        Also stamps ``last_sync_at`` and clears any conflict marker.

        Raises:
            StoreError: If the commit cannot be written.
        """
        with self._transaction() as state:
            state["snapshots"][item_id] = {
                Side.LOCAL.value: local.model_dump(mode="json"),
                Side.REMOTE.value: remote.model_dump(mode="json"),
            }
            state["sync_state"][item_id] = {
                "last_sync_at": synced_at or utc_now(),
                "conflict_marker": None,
            }

    def set_conflict_marker(self, item_id: str, marker: str | None) -> None:
        """Set (or clear, with ``None``) the conflict marker of *item_id*.

        Snapshots are not touched.
        """
        with self._transaction() as state:
            record = state["sync_state"].setdefault(
                item_id, {"last_sync_at": None, "conflict_marker": None}
            )
            record["conflict_marker"] = marker

    # ------------------------------------------------------------------
    # Operation log
    # ------------------------------------------------------------------

    def _count_log_entries(self) -> int:
        if not self.log_path.exists():
            return 0
        with open(self.log_path, encoding="utf-8") as fh:
            return sum(1 for line in fh if line.strip())

    def log_operation(
        self,
        kind: OperationKind,
        item_id: str | None,
        outcome: OperationOutcome,
        result: dict[str, Any],
    ) -> int:
        """Append one entry to the operation log.

        Returns:
            The sequence number of the new entry.
        """
        with self._lock:
            self._ensure_open()
            entry = {
                "sequence": self._next_sequence,
                "kind": kind.value,
                "item_id": item_id,
                "outcome": outcome.value,
                "result": result,
                "timestamp": utc_now(),
            }
            self._state_dir.mkdir(parents=True, exist_ok=True)
            try:
                with open(self.log_path, "a", encoding="utf-8") as fh:
                    fh.write(json.dumps(entry, default=str) + "\n")
            except OSError as exc:
                raise StoreError(
                    f"Cannot append to operation log {self.log_path}: {exc}"
                ) from exc
            self._next_sequence += 1
            return entry["sequence"]

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------

    def test_write_access(self) -> None:
        """Verify the state directory is writable without touching state.

        Raises:
            StoreError: If a probe file cannot be created and removed.
        """
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, probe = tempfile.mkstemp(
                dir=str(self._state_dir), suffix=".probe"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write("ok")
            os.unlink(probe)
        except OSError as exc:
            raise StoreError(
                f"State directory {self._state_dir} is not writable: {exc}"
            ) from exc
