"""Unified configuration schema for backlog_jira_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the Jira connection, the Backlog.md task store, sync
behaviour, and logging.  Jira credentials found here are only fallbacks;
``config.load_config`` lets CLI arguments and env vars win.

Usage:
    from backlog_jira_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from .sync.normalizer import DEFAULT_STATUS_MAP
from .sync.resolver import CONFLICT_STRATEGIES

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class JiraConfig(BaseModel):
    """Jira connection settings.

    Connection fields are optional: env vars and CLI args can supply them
    at runtime instead.
    """

    url: str | None = Field(default=None, description="Jira site URL")
    email: str | None = Field(
        default=None, description="Account email for basic auth"
    )
    api_token: str | None = Field(default=None, description="Jira API token")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    project_key: str | None = Field(
        default=None, description="Project that new issues are created in"
    )
    issue_type: str = Field(
        default="Task", description="Issue type for new issues"
    )
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)

    model_config = {"frozen": True}


class BacklogConfig(BaseModel):
    """Backlog.md task store settings."""

    tasks_dir: str = Field(
        default="backlog/tasks", description="Directory of task files"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync engine behaviour.

    Attributes:
        conflict_strategy: Default conflict strategy for ``sync``.
        state_dir: Directory holding ``state.json`` and the operation log.
        max_workers: Items processed concurrently (1 = sequential).
        status_map: Jira status name -> Backlog.md status name.
    """

    conflict_strategy: str = Field(default="prompt")
    state_dir: str = Field(default=".backlog-jira")
    max_workers: int = Field(default=1, ge=1, le=32)
    status_map: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATUS_MAP)
    )

    model_config = {"frozen": True}

    @field_validator("conflict_strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in CONFLICT_STRATEGIES:
            raise ValueError(
                f"Unknown conflict strategy '{value}'. "
                f"Valid strategies: {sorted(CONFLICT_STRATEGIES)}"
            )
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    jira: JiraConfig = Field(default_factory=JiraConfig)
    backlog: BacklogConfig = Field(default_factory=BacklogConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a value is out of range or unknown.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)

