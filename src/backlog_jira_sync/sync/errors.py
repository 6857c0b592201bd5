"""Error taxonomy for the sync engine.

Every failure the engine records against an item is one of these
classes.  Item-level errors (``NotFoundError``, ``TransportError``,
``ConflictWithoutForceError``, ``MappingError``) are caught by the
orchestrator and turned into failed outcomes, as is a ``StoreError`` raised
while committing one item.  ``ConfigurationError`` aborts the whole batch
before any item is touched, and so does a store that cannot be opened.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync engine errors.

    Attributes:
        item_id: Local task id or remote issue key the error refers to.
        retryable: Whether re-running the operation may succeed.
    """

    kind = "sync_error"
    retryable = False

    def __init__(self, message: str, item_id: str | None = None) -> None:
        super().__init__(message)
        self.item_id = item_id


class NotFoundError(SyncError):
    """A mapping, local task, or remote issue does not exist."""

    kind = "not_found"


class TransportError(SyncError):
    """A collaborator was unreachable, timed out, or returned an error."""

    kind = "transport"
    retryable = True

    def __init__(
        self,
        message: str,
        item_id: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message, item_id)
        self.status_code = status_code
        self.retryable = retryable


class ConflictWithoutForceError(SyncError):
    """Both sides changed and the caller did not pass ``force``."""

    kind = "conflict"

    def __init__(self, item_id: str) -> None:
        super().__init__(
            f"Conflict detected for {item_id}. Use --force to override "
            "or run 'backlog-jira sync' to resolve",
            item_id,
        )


class MappingError(SyncError):
    """A mapping would violate local-id or remote-key uniqueness."""

    kind = "mapping"


class ConfigurationError(SyncError):
    """Unknown strategy or missing required settings."""

    kind = "configuration"


class StoreError(SyncError):
    """The snapshot store is closed, unreadable, or not writable."""

    kind = "store"
