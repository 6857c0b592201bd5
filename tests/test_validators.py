"""Tests for task id and issue key validation."""

import pytest

from backlog_jira_sync.validators import (
    format_validation_error,
    normalize_task_id,
    validate_issue_key,
    validate_project_key,
    validate_task_id,
)


def test_format_validation_error():
    assert format_validation_error("Task id", "cannot be empty") == (
        "Task id cannot be empty"
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("12", "task-12"),
        ("TASK-12", "task-12"),
        (" task-3.1 ", "task-3.1"),
        ("Back-7", "back-7"),
        ("readme", "readme"),
    ],
)
def test_normalize_task_id(raw, expected):
    assert normalize_task_id(raw) == expected


class TestValidateTaskId:
    @pytest.mark.parametrize("task_id", ["task-1", "task-12.3", "back_log-7"])
    def test_valid(self, task_id):
        assert validate_task_id(task_id) == (True, "")

    def test_empty(self):
        is_valid, error = validate_task_id("  ")
        assert not is_valid
        assert "cannot be empty" in error

    @pytest.mark.parametrize("task_id", ["task", "12", "task-", "-1", "task-1a"])
    def test_invalid(self, task_id):
        is_valid, error = validate_task_id(task_id)
        assert not is_valid
        assert "task-12" in error


class TestValidateIssueKey:
    @pytest.mark.parametrize("key", ["PROJ-1", "AB2-999", "X_Y-3"])
    def test_valid(self, key):
        assert validate_issue_key(key) == (True, "")

    @pytest.mark.parametrize("key", ["proj-1", "PROJ", "PROJ-", "1-PROJ"])
    def test_invalid(self, key):
        is_valid, error = validate_issue_key(key)
        assert not is_valid
        assert "PROJ-42" in error

    def test_empty(self):
        assert validate_issue_key("")[0] is False


def test_validate_project_key():
    assert validate_project_key("PROJ") == (True, "")
    assert validate_project_key("proj")[0] is False
    assert validate_project_key("")[0] is False
