"""
Hierarchical configuration loader for backlog_jira_sync.

Discovers config files by convention, expands YAML ``!include``
directives and ``${VAR}`` references, and merges files so that the
project-level file wins over the global one.

Usage:
    from backlog_jira_sync.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BACKLOG_JIRA_CONFIG"
PROJECT_CONFIG_DIR = ".backlog-jira"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is kept as-is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) if match.group(2) is not None else ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``yaml.SafeLoader`` with an ``!include`` tag.

    A subclass keeps the global ``SafeLoader`` untouched.  Each load
    carries an include stack for cycle detection.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include <path>``.

    Relative paths resolve against the including file's directory.
    """
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    stack: list[Path] = getattr(loader, "_include_stack", [])
    if target in stack:
        chain = " -> ".join(str(p) for p in [*stack, target])
        raise ValueError(f"Circular include detected: {chain}")

    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(target, _include_stack=[*stack, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``BACKLOG_JIRA_CONFIG`` env var (explicit single path)
        2. ``.backlog-jira/config.yml`` in CWD (project-level)
        3. ``.backlog-jira/config.yaml`` in CWD (alternate extension)
        4. ``~/.config/backlog_jira/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")

    candidates.append(Path.home() / ".config" / "backlog_jira" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 3a. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# backlog-jira configuration
#
# Jira credentials can also be set via environment variables
# (or a .env file): JIRA_URL, JIRA_EMAIL, JIRA_API_TOKEN, JIRA_INSECURE
#
# jira:
#   url: https://your-site.atlassian.net
#   email: you@example.com
#   api_token: ${JIRA_API_TOKEN}
#   project_key: PROJ
#   issue_type: Task
#   connect_timeout: 10
#   read_timeout: 60
#
# backlog:
#   tasks_dir: backlog/tasks
#
# sync:
#   conflict_strategy: prompt   # prefer-local | prefer-remote | manual | prompt
#   state_dir: .backlog-jira
#   max_workers: 1
#   status_map:                 # Jira status -> Backlog.md status
#     To Do: To Do
#     In Progress: In Progress
#     Done: Done
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the config file that is (or would be) in effect.

    The highest-precedence existing file wins; with none on disk the
    project-level default ``CWD/.backlog-jira/config.yml`` is returned.
    Nothing is created.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if none exists.

    Args:
        target: Where to create the starter file.  Defaults to
            ``resolve_config_path()``.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest to highest precedence; a file's
    top-level sections replace (not deep-merge) earlier ones.  Env var
    references are expanded after merging.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found; using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s); skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
