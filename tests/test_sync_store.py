"""Tests for the snapshot store (mappings, baselines, operation log)."""

from __future__ import annotations

import json
import os

import pytest

from backlog_jira_sync.sync.errors import MappingError, StoreError
from backlog_jira_sync.sync.models import (
    CanonicalRecord,
    OperationKind,
    OperationOutcome,
    Snapshot,
)
from backlog_jira_sync.sync.normalizer import compute_digest
from backlog_jira_sync.sync.store import STATE_VERSION, SyncStore


def _snapshot(title: str) -> Snapshot:
    record = CanonicalRecord(title=title, status="To Do")
    return Snapshot(
        digest=compute_digest(record),
        payload=record,
        captured_at="2026-01-01T00:00:00+00:00",
    )


class TestLifecycle:
    def test_missing_state_file_is_empty(self, tmp_path):
        with SyncStore.open(tmp_path / "state") as store:
            assert store.all_mappings() == {}
            assert store.get_mapping("task-1") is None
            snapshots = store.get_snapshots("task-1")
            assert snapshots.local is None and snapshots.remote is None

    def test_closed_on_exit(self, tmp_path):
        with SyncStore.open(tmp_path) as store:
            pass
        assert store.is_open is False
        with pytest.raises(StoreError):
            store.get_mapping("task-1")

    def test_closed_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with SyncStore.open(tmp_path) as store:
                raise RuntimeError("boom")
        assert store.is_open is False

    def test_corrupt_state_file(self, tmp_path):
        (tmp_path / SyncStore.STATE_FILE).write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            with SyncStore.open(tmp_path):
                pass

    def test_unsupported_version(self, tmp_path):
        (tmp_path / SyncStore.STATE_FILE).write_text(
            json.dumps({"version": STATE_VERSION + 1}), encoding="utf-8"
        )
        with pytest.raises(StoreError):
            with SyncStore.open(tmp_path):
                pass

    def test_state_survives_reopen(self, tmp_path):
        with SyncStore.open(tmp_path) as store:
            store.add_mapping("task-1", "PROJ-1")
            store.commit_item("task-1", local=_snapshot("a"), remote=_snapshot("a"))
        with SyncStore.open(tmp_path) as store:
            assert store.get_mapping("task-1") == "PROJ-1"
            assert store.get_snapshots("task-1").local == _snapshot("a")

        data = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
        assert data["version"] == STATE_VERSION
        assert data["mappings"] == {"task-1": "PROJ-1"}
        assert set(data["snapshots"]["task-1"]) == {"local", "remote"}


class TestMappings:
    def test_add_and_find(self, store):
        store.add_mapping("task-1", "PROJ-1")
        assert store.get_mapping("task-1") == "PROJ-1"
        assert store.find_local_id("PROJ-1") == "task-1"
        assert store.find_local_id("PROJ-2") is None

    def test_local_id_unique(self, store):
        store.add_mapping("task-1", "PROJ-1")
        with pytest.raises(MappingError):
            store.add_mapping("task-1", "PROJ-2")

    def test_remote_key_unique(self, store):
        store.add_mapping("task-1", "PROJ-1")
        with pytest.raises(MappingError):
            store.add_mapping("task-2", "PROJ-1")
        assert store.get_mapping("task-2") is None

    def test_remove_mapping_retires_everything(self, store):
        store.add_mapping("task-1", "PROJ-1")
        store.commit_item("task-1", local=_snapshot("a"), remote=_snapshot("a"))
        assert store.remove_mapping("task-1") is True
        assert store.get_mapping("task-1") is None
        assert store.get_snapshots("task-1").remote is None
        assert store.get_sync_state("task-1").last_sync_at is None
        assert store.remove_mapping("task-1") is False


class TestCommit:
    def test_commit_replaces_both_sides_and_clears_marker(self, store):
        store.add_mapping("task-1", "PROJ-1")
        store.set_conflict_marker("task-1", "manual-resolution-required")

        store.commit_item(
            "task-1",
            local=_snapshot("local"),
            remote=_snapshot("remote"),
            synced_at="2026-02-02T00:00:00+00:00",
        )

        pair = store.get_snapshots("task-1")
        assert pair.local.payload.title == "local"
        assert pair.remote.payload.title == "remote"
        record = store.get_sync_state("task-1")
        assert record.last_sync_at == "2026-02-02T00:00:00+00:00"
        assert record.conflict_marker is None

    def test_marker_does_not_touch_snapshots(self, store):
        store.add_mapping("task-1", "PROJ-1")
        store.commit_item("task-1", local=_snapshot("a"), remote=_snapshot("a"))
        before = store.get_snapshots("task-1")

        store.set_conflict_marker("task-1", "manual-resolution-required")

        assert store.get_snapshots("task-1") == before
        assert (
            store.get_sync_state("task-1").conflict_marker
            == "manual-resolution-required"
        )

    def test_failed_write_leaves_state_untouched(self, store, monkeypatch):
        store.add_mapping("task-1", "PROJ-1")
        store.commit_item("task-1", local=_snapshot("a"), remote=_snapshot("a"))

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(StoreError):
            store.commit_item("task-1", local=_snapshot("b"), remote=_snapshot("b"))
        monkeypatch.undo()

        assert store.get_snapshots("task-1").local.payload.title == "a"
        assert not list(store.state_dir.glob("*.tmp"))

    def test_commit_leaves_mappings_alone(self, store):
        store.add_mapping("task-1", "PROJ-1")

        store.commit_item("task-2", local=_snapshot("a"), remote=_snapshot("a"))

        assert store.all_mappings() == {"task-1": "PROJ-1"}
        assert store.get_snapshots("task-2").local.payload.title == "a"


class TestOperationLog:
    def test_entries_are_sequenced(self, store):
        first = store.log_operation(
            OperationKind.PUSH, "task-1", OperationOutcome.SUCCESS, {"succeeded": ["task-1"]}
        )
        second = store.log_operation(
            OperationKind.SYNC, None, OperationOutcome.PARTIAL, {}
        )
        assert (first, second) == (1, 2)

        lines = store.log_path.read_text(encoding="utf-8").splitlines()
        entries = [json.loads(line) for line in lines]
        assert [e["kind"] for e in entries] == ["push", "sync"]
        assert entries[0]["item_id"] == "task-1"
        assert entries[1]["outcome"] == "partial"

    def test_sequence_continues_after_reopen(self, tmp_path):
        with SyncStore.open(tmp_path) as store:
            store.log_operation(OperationKind.PULL, None, OperationOutcome.SUCCESS, {})
        with SyncStore.open(tmp_path) as store:
            assert (
                store.log_operation(
                    OperationKind.PULL, None, OperationOutcome.FAILURE, {}
                )
                == 2
            )


class TestWriteAccess:
    def test_writable_directory(self, store):
        store.test_write_access()
        assert not list(store.state_dir.glob("*.probe"))

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with SyncStore.open(blocker / "state") as store:
            with pytest.raises(StoreError):
                store.test_write_access()
