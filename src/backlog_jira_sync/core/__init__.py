"""Concrete collaborators shared between CLI and MCP server."""

from .async_utils import run_sync
from .backlog_client import BacklogClient
from .jira_client import JiraClient

__all__ = ["BacklogClient", "JiraClient", "run_sync"]
