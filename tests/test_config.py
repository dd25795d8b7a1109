"""Tests for configuration loading and persistence."""

import json
from pathlib import Path

import pytest

from worklog_mcp.config import (
    WorklogConfig,
    coerce_value,
    dict_to_config,
    env_overrides,
    find_config_file,
    load_config,
    load_config_file,
    merge_dicts,
    reset_user_config,
    set_user_value,
)
from worklog_mcp.storage import DEFAULT_DB_PATH


class TestDefaults:
    """Tests for built-in defaults."""

    def test_default_values(self):
        config = WorklogConfig()
        assert config.get_db_path() == DEFAULT_DB_PATH
        assert config.database.busy_timeout_ms == 5000
        assert config.display.default_format == "default"
        assert config.display.default_limit == 20
        assert config.session.auto_generate is True
        assert config.output.log_level == "WARNING"

    def test_get_value(self):
        config = WorklogConfig()
        assert config.get_value("display.default_limit") == 20
        assert config.get_value("session") == {"auto_generate": True}

    def test_get_value_unknown(self):
        with pytest.raises(KeyError):
            WorklogConfig().get_value("display.colour")

    def test_db_path_expands_user(self):
        config = WorklogConfig()
        config.database.path = "~/logs/work.db"
        assert config.get_db_path() == Path.home() / "logs" / "work.db"

    def test_effective_log_level(self):
        config = WorklogConfig()
        config.output.log_level = "ERROR"
        assert config.output.effective_log_level() == "ERROR"
        config.output.verbose = True
        assert config.output.effective_log_level() == "DEBUG"


class TestFileLoading:
    """Tests for reading config files."""

    def test_load_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[display]\ndefault_limit = 5\ndefault_format = "json"\n')
        assert load_config_file(path) == {"display": {"default_limit": 5, "default_format": "json"}}

    def test_load_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"database": {"path": "/tmp/x.db"}}))
        assert load_config_file(path) == {"database": {"path": "/tmp/x.db"}}

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("display: {}")
        with pytest.raises(ValueError, match="Unsupported config file type"):
            load_config_file(path)

    def test_find_prefers_toml(self, tmp_path):
        (tmp_path / "config.json").write_text("{}")
        (tmp_path / "config.toml").write_text("")
        assert find_config_file(tmp_path) == tmp_path / "config.toml"

    def test_find_none(self, tmp_path):
        assert find_config_file(tmp_path) is None


class TestMerging:
    """Tests for merge_dicts, env_overrides and dict_to_config."""

    def test_merge_nested(self):
        base = {"display": {"default_limit": 20, "timezone": "UTC"}}
        merged = merge_dicts(base, {"display": {"default_limit": 5}})
        assert merged == {"display": {"default_limit": 5, "timezone": "UTC"}}
        assert base["display"]["default_limit"] == 20

    def test_env_overrides(self):
        data = env_overrides({
            "WORKLOG_DB_PATH": "/tmp/env.db",
            "WORKLOG_DEFAULT_FORMAT": "table",
            "WORKLOG_DEFAULT_LIMIT": "7",
            "WORKLOG_LOG_LEVEL": "debug",
        })
        assert data == {
            "database": {"path": "/tmp/env.db"},
            "display": {"default_format": "table", "default_limit": 7},
            "output": {"log_level": "DEBUG"},
        }

    def test_env_ignores_bad_values(self):
        assert env_overrides({"WORKLOG_DEFAULT_FORMAT": "xml", "WORKLOG_DEFAULT_LIMIT": "many"}) == {}

    def test_unknown_keys_ignored(self):
        config = dict_to_config({"display": {"default_limit": 3, "colour": "red"}, "extra": {}})
        assert config.display.default_limit == 3
        assert not hasattr(config.display, "colour")


class TestLoadConfig:
    """Tests for layered load_config."""

    def test_defaults_only(self, tmp_path):
        config = load_config(cwd=tmp_path, user_dir=tmp_path / "user", environ={})
        assert config == WorklogConfig()

    def test_layer_precedence(self, tmp_path):
        user_dir = tmp_path / "user"
        user_dir.mkdir()
        (user_dir / "config.json").write_text(json.dumps({
            "display": {"default_limit": 11, "default_format": "table", "timezone": "Europe/Oslo"},
        }))

        project_dir = tmp_path / "project" / ".worklog"
        project_dir.mkdir(parents=True)
        (project_dir / "config.toml").write_text("[display]\ndefault_limit = 22\n")

        explicit = tmp_path / "explicit.toml"
        explicit.write_text('[display]\ndefault_format = "markdown"\n')

        config = load_config(
            cwd=tmp_path / "project",
            config_path=explicit,
            user_dir=user_dir,
            environ={"WORKLOG_DEFAULT_LIMIT": "33", "WORKLOG_DEFAULT_FORMAT": "json"},
        )
        assert config.display.timezone == "Europe/Oslo"
        assert config.display.default_limit == 33
        assert config.display.default_format == "markdown"

    def test_env_db_path(self, tmp_path):
        config = load_config(
            cwd=tmp_path, user_dir=tmp_path, environ={"WORKLOG_DB_PATH": str(tmp_path / "e.db")}
        )
        assert config.get_db_path() == tmp_path / "e.db"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(cwd=tmp_path, config_path=tmp_path / "nope.toml", user_dir=tmp_path, environ={})


class TestUserConfigFile:
    """Tests for set_user_value and reset_user_config."""

    def test_set_creates_file(self, tmp_path):
        path = set_user_value("display.default_limit", 5, user_dir=tmp_path / "user")
        assert json.loads(path.read_text()) == {"display": {"default_limit": 5}}
        config = load_config(cwd=tmp_path, user_dir=tmp_path / "user", environ={})
        assert config.display.default_limit == 5

    def test_set_keeps_other_values(self, tmp_path):
        set_user_value("display.default_limit", 5, user_dir=tmp_path)
        set_user_value("output.verbose", True, user_dir=tmp_path)
        data = json.loads((tmp_path / "config.json").read_text())
        assert data == {"display": {"default_limit": 5}, "output": {"verbose": True}}

    def test_set_unknown_key(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown configuration key"):
            set_user_value("display.colour", "red", user_dir=tmp_path)

    def test_set_section_refused(self, tmp_path):
        with pytest.raises(ValueError, match="single setting"):
            set_user_value("display", "x", user_dir=tmp_path)

    def test_reset(self, tmp_path):
        set_user_value("display.default_limit", 5, user_dir=tmp_path)
        assert reset_user_config(user_dir=tmp_path) is True
        assert not (tmp_path / "config.json").exists()
        assert reset_user_config(user_dir=tmp_path) is False


class TestCoerceValue:
    """Tests for coerce_value."""

    @pytest.mark.parametrize(
        "text,expected",
        [("true", True), ("false", False), ("42", 42), ("2.5", 2.5), ("json", "json")],
    )
    def test_coerce(self, text, expected):
        assert coerce_value(text) == expected
