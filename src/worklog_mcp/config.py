"""Configuration loading for the work log.

Layers, lowest precedence first:
1. Built-in defaults
2. User config: ~/.worklog/config.toml or ~/.worklog/config.json
3. Project config: ./.worklog/config.toml or ./.worklog/config.json
4. Environment: WORKLOG_DB_PATH, WORKLOG_DEFAULT_FORMAT, WORKLOG_DEFAULT_LIMIT,
   WORKLOG_LOG_LEVEL
5. An explicit config file passed on the command line
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .locking import remove_locked, write_text_atomic
from .storage import DEFAULT_BUSY_TIMEOUT_MS, DEFAULT_DB_PATH

USER_CONFIG_DIR = Path.home() / ".worklog"
PROJECT_CONFIG_DIR = ".worklog"
CONFIG_FILE_NAMES = ("config.toml", "config.json")
DISPLAY_FORMATS = ("default", "table", "json", "markdown")


@dataclass
class DatabaseConfig:
    path: str = str(DEFAULT_DB_PATH)
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS


@dataclass
class DisplayConfig:
    """CLI display settings.

    ``timezone`` is accepted and shown by ``config show`` for compatibility
    with existing config files; timestamps are always rendered in UTC.
    """
    default_format: str = "default"
    default_limit: int = 20
    timezone: str = "UTC"


@dataclass
class SessionConfig:
    """Accepted for compatibility with existing config files.

    ``create_log`` callers choose between ``session_id`` and
    ``new_session`` explicitly, so ``auto_generate`` changes nothing.
    """
    auto_generate: bool = True


@dataclass
class OutputConfig:
    verbose: bool = False
    log_level: str = "WARNING"

    def effective_log_level(self) -> str:
        """``verbose`` turns on debug logging whatever ``log_level`` says."""
        return "DEBUG" if self.verbose else self.log_level


@dataclass
class WorklogConfig:
    """Resolved configuration for the server and CLI."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def get_db_path(self) -> Path:
        return Path(self.database.path).expanduser()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def get_value(self, key: str) -> Any:
        """Look up a dotted key such as ``display.default_limit``.

        Raises:
            KeyError: If the key does not exist
        """
        current: Any = self.to_dict()
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                raise KeyError(key)
            current = current[part]
        return current


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return load_toml_config(path)
    elif suffix == ".json":
        return load_json_config(path)
    else:
        raise ValueError(f"Unsupported config file type: {suffix}")


def find_config_file(directory: Path) -> Optional[Path]:
    """Find config.toml, then config.json, in a directory."""
    for name in CONFIG_FILE_NAMES:
        path = directory / name
        if path.exists():
            return path
    return None


def merge_dicts(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate WORKLOG_* environment variables into config sections."""
    data: dict[str, Any] = {}

    if environ.get("WORKLOG_DB_PATH"):
        data.setdefault("database", {})["path"] = environ["WORKLOG_DB_PATH"]

    fmt = environ.get("WORKLOG_DEFAULT_FORMAT")
    if fmt in DISPLAY_FORMATS:
        data.setdefault("display", {})["default_format"] = fmt

    limit = environ.get("WORKLOG_DEFAULT_LIMIT")
    if limit and limit.isdigit():
        data.setdefault("display", {})["default_limit"] = int(limit)

    if environ.get("WORKLOG_LOG_LEVEL"):
        data.setdefault("output", {})["log_level"] = environ["WORKLOG_LOG_LEVEL"].upper()

    return data


def dict_to_config(data: Mapping[str, Any]) -> WorklogConfig:
    """Convert a (merged) dictionary to WorklogConfig. Unknown keys are ignored."""
    config = WorklogConfig()
    for section in fields(config):
        values = data.get(section.name)
        if not isinstance(values, Mapping):
            continue
        target = getattr(config, section.name)
        known = {f.name for f in fields(target)}
        for key, value in values.items():
            if key in known:
                setattr(target, key, value)
    return config


def load_config(
    cwd: Optional[Path] = None,
    config_path: Optional[Path] = None,
    user_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WorklogConfig:
    """Load configuration from every layer.

    Args:
        cwd: Directory holding the project's .worklog/ (default: current directory)
        config_path: Optional explicit config file, applied last
        user_dir: User config directory (default: ~/.worklog)
        environ: Environment mapping (default: os.environ)

    Returns:
        WorklogConfig instance
    """
    cwd = cwd or Path.cwd()
    user_dir = user_dir or USER_CONFIG_DIR
    environ = os.environ if environ is None else environ

    data = asdict(WorklogConfig())

    user_file = find_config_file(user_dir)
    if user_file is not None:
        data = merge_dicts(data, load_config_file(user_file))

    project_file = find_config_file(cwd / PROJECT_CONFIG_DIR)
    if project_file is not None:
        data = merge_dicts(data, load_config_file(project_file))

    data = merge_dicts(data, env_overrides(environ))

    if config_path is not None:
        data = merge_dicts(data, load_config_file(config_path))

    return dict_to_config(data)


def coerce_value(text: str) -> Any:
    """Convert a command-line string to bool, int, or float where it looks like one."""
    if text == "true":
        return True
    if text == "false":
        return False
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def set_user_value(key: str, value: Any, user_dir: Optional[Path] = None) -> Path:
    """Persist one dotted key into the user's config.json.

    Returns:
        Path of the written file

    Raises:
        ValueError: If the key is not a known setting
    """
    try:
        current = WorklogConfig().get_value(key)
    except KeyError:
        raise ValueError(f"Unknown configuration key: {key}")
    if isinstance(current, dict):
        raise ValueError(f"Configuration key must name a single setting: {key}")

    user_dir = user_dir or USER_CONFIG_DIR
    path = user_dir / "config.json"
    data = load_json_config(path) if path.exists() else {}

    section, _, name = key.partition(".")
    data.setdefault(section, {})[name] = value

    user_dir.mkdir(parents=True, exist_ok=True)
    write_text_atomic(path, json.dumps(data, indent=2) + "\n")
    return path


def reset_user_config(user_dir: Optional[Path] = None) -> bool:
    """Remove the user's config.json. Returns False if there was none."""
    user_dir = user_dir or USER_CONFIG_DIR
    return remove_locked(user_dir / "config.json")
