"""Wiring shared by the CLI and the MCP server.

Loads configuration from every source and builds the collaborators the
engine needs.  A ``SyncSession`` outlives many operations; each
operation opens the store, runs one engine call, and closes it again.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.backlog_client import BacklogClient
from .core.jira_client import JiraClient
from .sync.engine import SyncEngine
from .sync.errors import ConfigurationError
from .sync.ports import LocalTaskSource, RemoteTracker
from .sync.store import SyncStore

logger = logging.getLogger(__name__)


def load_unified_config() -> UnifiedConfig:
    """Load ``.env`` and all config files into a ``UnifiedConfig``.

    ``.env`` is loaded first so ``${VAR}`` references in YAML can use it.

    Raises:
        ConfigurationError: If a config file is invalid.
    """
    load_dotenv()
    try:
        return build_config(load_hierarchical_config())
    except (ValidationError, ValueError, OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_client_config(
    unified: UnifiedConfig, overrides: dict[str, Any] | None = None
) -> Config:
    """Resolve Jira credentials: CLI > env > YAML.

    Raises:
        ConfigurationError: If credentials are missing or invalid.
    """
    overrides = overrides or {}
    yaml_fallbacks = {
        k: v for k, v in unified.jira.model_dump().items() if v is not None
    }
    try:
        return load_config(
            url=overrides.get("url"),
            email=overrides.get("email"),
            api_token=overrides.get("api_token"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


@dataclass
class SyncSession:
    """Configured collaborators plus the location of the sync state."""

    config: UnifiedConfig
    local: LocalTaskSource
    remote: RemoteTracker
    state_dir: Path
    _store_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False
    )

    @contextmanager
    def engine(self) -> Iterator[SyncEngine]:
        """Open the store and yield an engine bound to it.

        One engine runs at a time per session; concurrent callers wait.
        """
        with self._store_lock, SyncStore.open(self.state_dir) as store:
            yield SyncEngine.from_config(self.config, self.local, self.remote, store)


def build_session(
    unified: UnifiedConfig | None = None,
    overrides: dict[str, Any] | None = None,
) -> SyncSession:
    """Build a ``SyncSession`` from configuration.

    Args:
        unified: Pre-loaded config; loaded from disk when ``None``.
        overrides: CLI values (url, email, api_token, insecure, debug,
            project_key, strategy).

    Raises:
        ConfigurationError: If configuration is incomplete or invalid.
    """
    unified = unified or load_unified_config()
    overrides = overrides or {}

    updates: dict[str, Any] = {}
    if overrides.get("project_key"):
        updates["jira"] = unified.jira.model_copy(
            update={"project_key": overrides["project_key"]}
        )
    if updates:
        unified = unified.model_copy(update=updates)

    client_config = load_client_config(unified, overrides)
    logger.info("Jira URL: %s", client_config.jira_url)
    return SyncSession(
        config=unified,
        local=BacklogClient(Path(unified.backlog.tasks_dir)),
        remote=JiraClient(client_config),
        state_dir=Path(unified.sync.state_dir),
    )
