"""Conflict resolution strategies for the sync engine.

Conflicts are resolved at whole-record granularity; field values are
never merged.  Each resolver only *decides*: the engine carries the
decision out (force-push, force-pull, or set the conflict marker).

- ``PreferLocalResolver``: the local task wins (force-push).
- ``PreferRemoteResolver``: the remote issue wins (force-pull).
- ``ManualResolver``: flag the item for a human; snapshots stay put so
  the item keeps classifying as a conflict on later runs.
- ``PromptResolver``: interactive prompting is not available inside the
  engine, so it behaves like ``ManualResolver`` and says so in the log.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from .errors import ConfigurationError
from .models import FieldConflict

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    """What the engine should do with a conflicted item."""

    PUSH = "push"
    PULL = "pull"
    MARK_MANUAL = "mark_manual"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    #: Label recorded on the item outcome (e.g. ``"preferred-local"``).
    label: str

    def resolve(
        self, item_id: str, conflicts: list[FieldConflict]
    ) -> Resolution:
        """Decide how to settle the conflict on *item_id*.

        Args:
            item_id: Local task id of the conflicted item.
            conflicts: Diverging fields found by the detector (may be
                empty when both records changed on disjoint fields).

        Returns:
            The ``Resolution`` for the engine to carry out.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class PreferLocalResolver:
    """Always resolve conflicts in favour of the local task."""

    label = "preferred-local"

    def resolve(
        self, item_id: str, conflicts: list[FieldConflict]
    ) -> Resolution:
        return Resolution.PUSH


class PreferRemoteResolver:
    """Always resolve conflicts in favour of the remote issue."""

    label = "preferred-remote"

    def resolve(
        self, item_id: str, conflicts: list[FieldConflict]
    ) -> Resolution:
        return Resolution.PULL


class ManualResolver:
    """Leave the conflict for a human to settle."""

    label = "manual-marked"

    def resolve(
        self, item_id: str, conflicts: list[FieldConflict]
    ) -> Resolution:
        fields = ", ".join(c.field for c in conflicts) or "(none overlapping)"
        logger.info(
            "Conflict on %s marked for manual resolution; fields: %s",
            item_id,
            fields,
        )
        return Resolution.MARK_MANUAL


class PromptResolver(ManualResolver):
    """Interactive strategy; without a terminal it degrades to manual."""

    label = "manual-required"

    def resolve(
        self, item_id: str, conflicts: list[FieldConflict]
    ) -> Resolution:
        logger.warning(
            "Interactive conflict prompt unavailable for %s; "
            "marking for manual resolution",
            item_id,
        )
        return super().resolve(item_id, conflicts)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "prefer-local": PreferLocalResolver,
    "prefer-remote": PreferRemoteResolver,
    "manual": ManualResolver,
    "prompt": PromptResolver,
}

CONFLICT_STRATEGIES: tuple[str, ...] = tuple(_STRATEGY_MAP)


def create_resolver(strategy: str) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"prefer-local"``, ``"prefer-remote"``,
            ``"manual"``, ``"prompt"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ConfigurationError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ConfigurationError(
            f"Unknown conflict strategy: '{strategy}'. "
            f"Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
