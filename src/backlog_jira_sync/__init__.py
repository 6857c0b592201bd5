"""Bidirectional sync between Backlog.md task files and Jira issues."""

__version__ = "0.1.0"
