"""Tests for backlog_jira_sync.config_loader -- hierarchical config loading."""

import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from backlog_jira_sync.config_loader import (
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)

DISCOVER = "backlog_jira_sync.config_loader.discover_config_files"


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME both point at an empty tmp dir."""
    monkeypatch.delenv("BACKLOG_JIRA_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")
    return tmp_path


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("JIRA_SITE", "acme")
        assert interpolate_env_vars("https://${JIRA_SITE}.atlassian.net") == (
            "https://acme.atlassian.net"
        )

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-Task}") == "Task"
        assert interpolate_env_vars("${EMPTY_VAR:-Task}") == "Task"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("ISSUE_TYPE", "Bug")
        assert interpolate_env_vars("${ISSUE_TYPE:-Task}") == "Bug"

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_recursive(self, monkeypatch):
        monkeypatch.setenv("JIRA_API_TOKEN", "tok")
        data = {
            "jira": {"api_token": "${JIRA_API_TOKEN}", "read_timeout": 30},
            "labels": ["${JIRA_API_TOKEN}", 1, True],
        }
        assert _interpolate_recursive(data) == {
            "jira": {"api_token": "tok", "read_timeout": 30},
            "labels": ["tok", 1, True],
        }


# -------------------------------------------------------------------------
# YAML !include support
# -------------------------------------------------------------------------


class TestIncludeDirective:
    """Tests for !include YAML loading via the ConfigLoader subclass."""

    def test_include_relative_file(self, tmp_path):
        _write(tmp_path / "status.yml", "Open: To Do\nClosed: Done\n")
        main = _write(tmp_path / "config.yml", "status_map: !include status.yml\n")

        result = _load_yaml_with_includes(main)
        assert result == {"status_map": {"Open": "To Do", "Closed": "Done"}}

    def test_include_absolute_path(self, tmp_path):
        secrets = _write(tmp_path / "secrets" / "jira.yml", "api_token: abc\n")
        main = _write(tmp_path / "config.yml", f"jira: !include {secrets}\n")

        assert _load_yaml_with_includes(main) == {"jira": {"api_token": "abc"}}

    def test_include_nonexistent_raises(self, tmp_path):
        main = _write(tmp_path / "config.yml", "jira: !include missing.yml\n")

        with pytest.raises(FileNotFoundError, match="missing.yml"):
            _load_yaml_with_includes(main)

    def test_circular_include_raises(self, tmp_path):
        a = _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")

        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(a)

    def test_self_include_raises(self, tmp_path):
        a = _write(tmp_path / "a.yml", "x: !include a.yml\n")

        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(a)

    def test_nested_includes(self, tmp_path):
        _write(tmp_path / "c.yml", "val: deep\n")
        _write(tmp_path / "b.yml", "inner: !include c.yml\n")
        a = _write(tmp_path / "a.yml", "outer: !include b.yml\n")

        assert _load_yaml_with_includes(a) == {"outer": {"inner": {"val": "deep"}}}

    def test_global_safe_loader_not_polluted(self, tmp_path):
        cfg = _write(tmp_path / "test.yml", "x: !include other.yml\n")

        with pytest.raises(yaml.constructor.ConstructorError):
            with open(cfg) as fh:
                yaml.safe_load(fh)


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    def test_empty_filesystem_returns_empty(self, isolated):
        assert discover_config_files() == []

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = _write(isolated / "custom.yml", "sync: {}\n")
        project = _write(isolated / ".backlog-jira" / "config.yml", "sync: {}\n")
        monkeypatch.setenv("BACKLOG_JIRA_CONFIG", str(custom))

        assert discover_config_files() == [custom.resolve(), project]

    def test_project_before_global(self, isolated):
        project = _write(isolated / ".backlog-jira" / "config.yml", "a: 1\n")
        global_cfg = _write(
            isolated / "home" / ".config" / "backlog_jira" / "config.yml", "a: 2\n"
        )

        assert discover_config_files() == [project, global_cfg]

    def test_yaml_extension(self, isolated):
        alt = _write(isolated / ".backlog-jira" / "config.yaml", "a: 1\n")
        assert discover_config_files() == [alt]

    def test_missing_env_path_excluded(self, isolated, monkeypatch):
        monkeypatch.setenv("BACKLOG_JIRA_CONFIG", str(isolated / "nope.yml"))
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_global_at_section_level(self, isolated):
        _write(
            isolated / "home" / ".config" / "backlog_jira" / "config.yml",
            """\
            jira:
              url: https://global.atlassian.net
              project_key: GLOB
            backlog:
              tasks_dir: tasks
            """,
        )
        _write(
            isolated / ".backlog-jira" / "config.yml",
            """\
            jira:
              url: https://project.atlassian.net
            """,
        )

        result = load_hierarchical_config()

        # Project jira section replaces the global one (shallow merge)
        assert result["jira"] == {"url": "https://project.atlassian.net"}
        assert result["backlog"] == {"tasks_dir": "tasks"}

    def test_env_var_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("JIRA_API_TOKEN", "s3cret")
        _write(
            isolated / ".backlog-jira" / "config.yml",
            """\
            jira:
              api_token: ${JIRA_API_TOKEN}
            """,
        )

        assert load_hierarchical_config()["jira"]["api_token"] == "s3cret"

    def test_include_within_merged_config(self, isolated):
        _write(isolated / ".backlog-jira" / "status.yml", "Shipped: Done\n")
        _write(
            isolated / ".backlog-jira" / "config.yml",
            """\
            sync:
              status_map: !include status.yml
            """,
        )

        result = load_hierarchical_config()
        assert result["sync"]["status_map"] == {"Shipped": "Done"}

    def test_non_dict_root_skipped(self, isolated, monkeypatch, caplog):
        custom = _write(isolated / "list.yml", "- a\n- b\n")
        monkeypatch.setenv("BACKLOG_JIRA_CONFIG", str(custom))

        assert load_hierarchical_config() == {}
        assert "non-dict root" in caplog.text

    def test_broken_yaml_propagates(self, isolated):
        _write(isolated / ".backlog-jira" / "config.yml", "jira: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# resolve_config_path / ensure_config
# -------------------------------------------------------------------------


class TestResolveConfigPath:
    def test_returns_highest_precedence(self):
        project_path = Path("/project/.backlog-jira/config.yml")
        global_path = Path("/home/user/.config/backlog_jira/config.yml")

        with patch(DISCOVER, return_value=[project_path, global_path]):
            assert resolve_config_path() == project_path

    def test_returns_default_when_no_files(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with patch(DISCOVER, return_value=[]):
            result = resolve_config_path()

        assert result == tmp_path / ".backlog-jira" / "config.yml"
        assert not result.exists()


class TestEnsureConfig:
    """Tests for ensure_config() -- bootstrapping config files."""

    def test_noop_when_exists(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        existing_path = Path("/fake/existing/config.yml")

        with patch(DISCOVER, return_value=[existing_path]):
            assert ensure_config() == existing_path

        assert not (tmp_path / ".backlog-jira").exists()

    def test_default_target_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with patch(DISCOVER, return_value=[]):
            result = ensure_config()

        assert result == tmp_path / ".backlog-jira" / "config.yml"
        content = result.read_text()
        assert "# backlog-jira configuration" in content
        assert "# jira:" in content
        assert "# sync:" in content

    def test_explicit_target_with_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "config.yml"

        with patch(DISCOVER, return_value=[]):
            result = ensure_config(target=target)

        assert result == target
        assert target.is_file()

    def test_starter_config_is_all_comments(self, tmp_path):
        target = tmp_path / "config.yml"
        with patch(DISCOVER, return_value=[]):
            ensure_config(target=target)

        assert yaml.safe_load(target.read_text()) is None
