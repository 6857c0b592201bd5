"""Shared pytest fixtures for backlog-jira-sync tests."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

import pytest
from dotenv import load_dotenv

from backlog_jira_sync.config import Config
from backlog_jira_sync.sync.errors import NotFoundError
from backlog_jira_sync.sync.models import LocalTask, RemoteIssue, Transition
from backlog_jira_sync.sync.store import SyncStore

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Jira instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Jira instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeBacklog:
    """In-memory ``LocalTaskSource``.

    Attributes:
        tasks: Task id -> current ``LocalTask``.
        update_calls: ``(item_id, updates)`` for every update.
        before_get: Optional hook called with the id on every read.
        fail_on: Method name -> exception raised (once) by that method.
    """

    def __init__(self, tasks: list[LocalTask] | None = None) -> None:
        self.tasks: dict[str, LocalTask] = {t.id: t for t in tasks or []}
        self.update_calls: list[tuple[str, dict]] = []
        self.before_get: Callable[[str], None] | None = None
        self.fail_on: dict[str, Exception] = {}

    def _maybe_fail(self, method: str) -> None:
        exc = self.fail_on.pop(method, None)
        if exc is not None:
            raise exc

    def add(self, **fields: Any) -> LocalTask:
        task = LocalTask(**fields)
        self.tasks[task.id] = task
        return task

    def edit(self, item_id: str, **changes: Any) -> LocalTask:
        """Simulate a human editing the task file."""
        task = self.tasks[item_id].model_copy(update=changes)
        self.tasks[item_id] = task
        return task

    def get_item(self, item_id: str) -> LocalTask:
        if self.before_get is not None:
            self.before_get(item_id)
        self._maybe_fail("get_item")
        if item_id not in self.tasks:
            raise NotFoundError(f"Task {item_id} not found", item_id)
        return self.tasks[item_id]

    def update_item(self, item_id: str, updates: dict[str, Any]) -> LocalTask:
        self._maybe_fail("update_item")
        self.update_calls.append((item_id, dict(updates)))
        changes: dict[str, Any] = {}
        for field, value in updates.items():
            if field == "assignee":
                changes["assignee"] = [f"@{value}"] if value else []
            elif field == "labels":
                changes["labels"] = list(value or [])
            elif field in ("title", "status"):
                changes[field] = value or ""
            else:
                changes[field] = value
        return self.edit(item_id, **changes)

    def list_task_ids(self) -> list[str]:
        return list(self.tasks)


JIRA_STATUSES = ("To Do", "In Progress", "Done")


class FakeJira:
    """In-memory ``RemoteTracker`` with a three-status workflow.

    Attributes:
        issues: Issue key -> current ``RemoteIssue``.
        mutations: ``(method, key, payload)`` for every mutating call.
        fail_on: Method name -> exception raised (once) by that method.
    """

    def __init__(self, issues: list[RemoteIssue] | None = None) -> None:
        self.issues: dict[str, RemoteIssue] = {i.key: i for i in issues or []}
        self.mutations: list[tuple[str, str, Any]] = []
        self.fail_on: dict[str, Exception] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def _maybe_fail(self, method: str) -> None:
        with self._lock:
            exc = self.fail_on.pop(method, None)
        if exc is not None:
            raise exc

    def add(self, **fields: Any) -> RemoteIssue:
        issue = RemoteIssue(**fields)
        self.issues[issue.key] = issue
        return issue

    def edit(self, key: str, **changes: Any) -> RemoteIssue:
        """Simulate someone editing the issue in Jira."""
        issue = self.issues[key].model_copy(update=changes)
        self.issues[key] = issue
        return issue

    def get_item(self, key: str) -> RemoteIssue:
        self._maybe_fail("get_item")
        if key not in self.issues:
            raise NotFoundError(f"Issue {key} not found", key)
        return self.issues[key]

    def _apply(self, issue: RemoteIssue, updates: dict[str, Any]) -> RemoteIssue:
        changes: dict[str, Any] = {}
        for field, value in updates.items():
            match field:
                case "title":
                    changes["summary"] = value or ""
                case "priority":
                    changes["priority"] = value.capitalize() if value else None
                case "labels":
                    changes["labels"] = list(value or [])
                case "description" | "assignee":
                    changes[field] = value
        return issue.model_copy(update=changes)

    def create_item(
        self,
        project_key: str,
        issue_type: str,
        title: str,
        fields: dict[str, Any],
    ) -> RemoteIssue:
        self._maybe_fail("create_item")
        with self._lock:
            self._counter += 1
            key = f"{project_key}-{self._counter}"
            issue = RemoteIssue(
                key=key,
                id=str(10000 + self._counter),
                summary=title,
                status="To Do",
                issue_type=issue_type,
            )
            issue = self._apply(issue, fields)
            self.issues[key] = issue
            self.mutations.append(("create_item", key, dict(fields)))
        return issue

    def update_item(self, key: str, updates: dict[str, Any]) -> None:
        self._maybe_fail("update_item")
        with self._lock:
            self.issues[key] = self._apply(self.issues[key], updates)
            self.mutations.append(("update_item", key, dict(updates)))

    def list_transitions(self, key: str) -> list[Transition]:
        self._maybe_fail("list_transitions")
        return [
            Transition(id=str(n), name=f"Move to {status}", to_status=status)
            for n, status in enumerate(JIRA_STATUSES, start=11)
            if status != self.issues[key].status
        ]

    def apply_transition(
        self, key: str, transition_id: str, comment: str | None = None
    ) -> None:
        self._maybe_fail("apply_transition")
        status = JIRA_STATUSES[int(transition_id) - 11]
        with self._lock:
            self.issues[key] = self.issues[key].model_copy(
                update={"status": status}
            )
            self.mutations.append(("apply_transition", key, status))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_task(item_id: str = "task-1", **overrides: Any) -> LocalTask:
    fields: dict[str, Any] = {
        "id": item_id,
        "title": "Fix the login page",
        "description": "Users cannot log in with SSO.",
        "status": "To Do",
        "assignee": ["@alice"],
        "priority": "high",
        "labels": ["frontend", "auth"],
    }
    fields.update(overrides)
    return LocalTask(**fields)


@pytest.fixture
def backlog():
    """FakeBacklog holding task-1."""
    return FakeBacklog([make_task()])


@pytest.fixture
def jira():
    """Empty FakeJira."""
    return FakeJira()


@pytest.fixture
def store(tmp_path):
    """Open SyncStore in a temp directory, closed after the test."""
    with SyncStore.open(tmp_path / ".backlog-jira") as opened:
        yield opened


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        jira_url="https://example.atlassian.net",
        email="dev@example.com",
        api_token="secret-token",
        insecure=False,
    )


@pytest.fixture
def clean_jira_env(monkeypatch):
    """Remove JIRA_* and config env vars so tests see a blank slate."""
    for var in (
        "JIRA_URL",
        "JIRA_EMAIL",
        "JIRA_API_TOKEN",
        "JIRA_INSECURE",
        "JIRA_DEBUG",
        "JIRA_CONNECT_TIMEOUT",
        "JIRA_READ_TIMEOUT",
        "BACKLOG_JIRA_CONFIG",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
