"""Field-level three-way comparison and field diffing.

Pure functions over canonical records; no collaborator access.

Key design choices:

* A field is a conflict only when **both** sides moved away from their
  own baseline on that field **and** the two current values disagree.
  Convergent edits (both sides changed to the same value) are harmless.
* Labels are compared in canonical form (sorted, de-duplicated), which
  is set equality: reordering labels on one side never conflicts.
"""

from __future__ import annotations

from typing import Any

from .models import COMPARABLE_FIELDS, CanonicalRecord, FieldConflict


def _as_value(record: CanonicalRecord, field: str) -> Any:
    value = record.value(field)
    if isinstance(value, tuple):
        return list(value)
    return value


def detect_field_conflicts(
    current_local: CanonicalRecord,
    current_remote: CanonicalRecord,
    baseline_local: CanonicalRecord | None,
    baseline_remote: CanonicalRecord | None,
) -> list[FieldConflict]:
    """Return the fields both sides changed to different values.

    Args:
        current_local: Canonical local task as fetched now.
        current_remote: Canonical remote issue as fetched now.
        baseline_local: Local payload at the last successful sync.
        baseline_remote: Remote payload at the last successful sync.

    Returns:
        One ``FieldConflict`` per diverging field, in field order.  Empty
        when either baseline is missing (nothing to compare against).
    """
    if baseline_local is None or baseline_remote is None:
        return []

    conflicts: list[FieldConflict] = []
    for field in COMPARABLE_FIELDS:
        local_value = current_local.value(field)
        remote_value = current_remote.value(field)
        local_changed = local_value != baseline_local.value(field)
        remote_changed = remote_value != baseline_remote.value(field)
        if local_changed and remote_changed and local_value != remote_value:
            conflicts.append(
                FieldConflict(
                    field=field,
                    local_value=_as_value(current_local, field),
                    remote_value=_as_value(current_remote, field),
                    base_value=_as_value(baseline_local, field),
                )
            )
    return conflicts


def diff_fields(
    source: CanonicalRecord,
    target: CanonicalRecord,
    baseline: CanonicalRecord | None = None,
) -> dict[str, Any]:
    """Return the fields whose *source* value differs from *target*.

    Values are taken from *source* (the side being propagated) and are
    JSON-friendly: labels come back as a list.  With *baseline* (the
    source side's own last-synced payload), only fields the source
    changed since then are returned.
    """
    return {
        field: _as_value(source, field)
        for field in COMPARABLE_FIELDS
        if source.value(field) != target.value(field)
        and (baseline is None or source.value(field) != baseline.value(field))
    }
