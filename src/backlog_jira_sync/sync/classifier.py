"""Sync state classification.

Each side is compared against its own baseline digest -- a local digest
is never compared with a remote one.  State is recomputed from scratch
on every run; nothing about the classification is persisted.
"""

from __future__ import annotations

from .models import SyncState


def classify(
    current_local: str,
    current_remote: str,
    baseline_local: str | None,
    baseline_remote: str | None,
) -> SyncState:
    """Classify an item from its current and baseline digests.

    Args:
        current_local: Digest of the local task as fetched now.
        current_remote: Digest of the remote issue as fetched now.
        baseline_local: Local digest at the last successful sync, or
            ``None`` when no local snapshot exists.
        baseline_remote: Remote digest at the last successful sync, or
            ``None`` when no remote snapshot exists.

    Returns:
        ``UNKNOWN`` when either baseline is absent, otherwise one of
        ``IN_SYNC``, ``NEEDS_PUSH``, ``NEEDS_PULL``, ``CONFLICT``.
    """
    if baseline_local is None or baseline_remote is None:
        return SyncState.UNKNOWN

    local_changed = current_local != baseline_local
    remote_changed = current_remote != baseline_remote

    if local_changed and remote_changed:
        return SyncState.CONFLICT
    if local_changed:
        return SyncState.NEEDS_PUSH
    if remote_changed:
        return SyncState.NEEDS_PULL
    return SyncState.IN_SYNC
