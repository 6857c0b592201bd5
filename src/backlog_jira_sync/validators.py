"""
Input validation functions for backlog_jira_sync.

Validates task ids and issue keys given on the command line or to MCP
tools before any file or HTTP access happens.
"""

import re

# task-12, task-12.3 (sub-task), or a custom prefix such as back-7
_TASK_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*-\d+(?:\.\d+)*$")
_ISSUE_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*-\d+$")
_PROJECT_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")

DEFAULT_TASK_PREFIX = "task"


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Task id")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def normalize_task_id(task_id: str) -> str:
    """Normalize user input into a task id.

    A bare number gets the default prefix (``12`` -> ``task-12``); the
    prefix is lower-cased (``TASK-12`` -> ``task-12``).
    """
    value = task_id.strip()
    if value.isdigit():
        return f"{DEFAULT_TASK_PREFIX}-{value}"
    prefix, sep, rest = value.partition("-")
    if sep:
        return f"{prefix.lower()}-{rest}"
    return value


def validate_task_id(task_id: str) -> tuple[bool, str]:
    """
    Validate a Backlog.md task id.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not task_id or not task_id.strip():
        return (False, format_validation_error("Task id", "cannot be empty"))

    if not _TASK_ID_PATTERN.match(task_id.strip()):
        return (
            False,
            format_validation_error(
                "Task id", f"'{task_id}' must look like 'task-12'"
            ),
        )

    return (True, "")


def validate_issue_key(issue_key: str) -> tuple[bool, str]:
    """
    Validate a Jira issue key.

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty
        - Upper-case project key, a dash, then a number (``PROJ-42``)
    """
    if not issue_key or not issue_key.strip():
        return (
            False,
            format_validation_error("Issue key", "cannot be empty"),
        )

    if not _ISSUE_KEY_PATTERN.match(issue_key.strip()):
        return (
            False,
            format_validation_error(
                "Issue key", f"'{issue_key}' must look like 'PROJ-42'"
            ),
        )

    return (True, "")


def validate_project_key(project_key: str) -> tuple[bool, str]:
    """Validate a Jira project key (``PROJ``)."""
    if not project_key or not _PROJECT_KEY_PATTERN.match(project_key):
        return (
            False,
            format_validation_error(
                "Project key", f"'{project_key}' must be upper-case letters"
            ),
        )
    return (True, "")
