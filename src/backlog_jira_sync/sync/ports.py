"""Collaborator protocols consumed by the sync engine.

The engine never talks to Backlog.md files or to Jira directly; it goes
through these two protocols.  ``BacklogClient`` and ``JiraClient`` in
``backlog_jira_sync.core`` are the concrete implementations, and the
test-suite supplies in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Protocol

from .models import LocalTask, RemoteIssue, Transition


class LocalTaskSource(Protocol):
    """Read/write access to the local task store."""

    def get_item(self, item_id: str) -> LocalTask:
        """Return the task with *item_id*.

        Raises:
            NotFoundError: If no such task exists.
        """
        ...  # pragma: no cover

    def update_item(self, item_id: str, updates: dict[str, Any]) -> LocalTask:
        """Apply canonical field *updates* and return the updated task."""
        ...  # pragma: no cover

    def list_task_ids(self) -> list[str]:
        """Return the ids of all local tasks."""
        ...  # pragma: no cover


class RemoteTracker(Protocol):
    """Read/write access to the remote issue tracker.

    Transport failures raise ``TransportError``; a missing issue raises
    ``NotFoundError``.
    """

    def get_item(self, key: str) -> RemoteIssue:
        """Return the issue with *key*."""
        ...  # pragma: no cover

    def create_item(
        self,
        project_key: str,
        issue_type: str,
        title: str,
        fields: dict[str, Any],
    ) -> RemoteIssue:
        """Create an issue and return it as created."""
        ...  # pragma: no cover

    def update_item(self, key: str, updates: dict[str, Any]) -> None:
        """Apply canonical non-status field *updates* to issue *key*."""
        ...  # pragma: no cover

    def list_transitions(self, key: str) -> list[Transition]:
        """Return the workflow transitions available on issue *key*."""
        ...  # pragma: no cover

    def apply_transition(
        self, key: str, transition_id: str, comment: str | None = None
    ) -> None:
        """Move issue *key* through the workflow transition."""
        ...  # pragma: no cover
