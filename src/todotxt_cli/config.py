"""Configuration management for todotxt-cli."""

import logging
import os
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError, InvalidInput
from .query_engine import SortKey, TaskFilter, parse_filter_terms, parse_sort_keys
from .utils.dates import today as local_today

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TODOTXT_CLI_CONFIG"
DEFAULT_CONFIG_PATH = "~/.todo/config.yaml"


def expand_path(value: str) -> str:
    """Expand ``~`` and ``$VARS`` in a path setting."""
    return os.path.expanduser(os.path.expandvars(value))


@dataclass
class ConfigModel:
    """Global configuration model for todotxt-cli."""

    # File paths; empty means "inside todo_dir"
    todo_dir: str = "~/.todo"
    todo_file: str = ""
    done_file: str = ""
    report_file: str = ""

    # Behavior settings
    date_on_add: bool = False
    preserve_line_numbers: bool = False
    strip_priority_on_complete: bool = False
    auto_archive: bool = False
    default_action: str = "list"

    # Listing
    sort: List[str] = field(default_factory=lambda: ["priority", "line"])
    filter: List[str] = field(default_factory=list)

    # Date preferences
    timezone: Optional[str] = None  # IANA name, None = system local time

    # UI
    no_color: bool = False
    hide_context: bool = False
    hide_project: bool = False
    hide_priority: bool = False
    styles: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Expand paths and fill in file defaults."""
        self.todo_dir = expand_path(self.todo_dir)
        self.todo_file = expand_path(self.todo_file) if self.todo_file else str(Path(self.todo_dir) / "todo.txt")
        self.done_file = expand_path(self.done_file) if self.done_file else str(Path(self.todo_dir) / "done.txt")
        self.report_file = expand_path(self.report_file) if self.report_file else str(Path(self.todo_dir) / "report.txt")

    def sort_keys(self) -> List[SortKey]:
        """Resolved sort keys.

        Raises:
            ConfigError: If a sort spec is invalid.
        """
        try:
            return parse_sort_keys(self.sort)
        except InvalidInput as e:
            raise ConfigError(f"Invalid sort setting: {e}") from e

    def default_filter(self) -> TaskFilter:
        """Filter applied to every listing."""
        try:
            return parse_filter_terms(self.filter, self.today())
        except InvalidInput as e:
            raise ConfigError(f"Invalid filter setting: {e}") from e

    def today(self) -> date:
        """Today's date in the configured timezone."""
        try:
            return local_today(self.timezone)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConfigModel":
        """Build a config from parsed YAML, ignoring unknown keys."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping of settings.")

        known = {f.name: f for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            kwargs[key] = value

        for key in ("sort", "filter"):
            if isinstance(kwargs.get(key), str):
                kwargs[key] = kwargs[key].split()
            if key in kwargs and not isinstance(kwargs[key], list):
                raise ConfigError(f"'{key}' must be a list of strings.")
        if "styles" in kwargs and not isinstance(kwargs["styles"], dict):
            raise ConfigError("'styles' must be a mapping of style names to rich styles.")
        for key in ("todo_dir", "todo_file", "done_file", "report_file"):
            if key in kwargs and not isinstance(kwargs[key], str):
                raise ConfigError(f"'{key}' must be a path string.")

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        return cls.from_dict(data)


def get_config_path(config_path: Optional[Path] = None) -> Path:
    """Config file location: explicit path, then $TODOTXT_CLI_CONFIG, then default."""
    if config_path is not None:
        return Path(config_path)
    return Path(expand_path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)))


class Config:
    """Configuration manager for todotxt-cli."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file, or defaults if there is none.

        Raises:
            ConfigError: If the file exists but cannot be read or parsed.
        """
        path = get_config_path(config_path)

        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    yaml_content = f.read()
            except OSError as e:
                raise ConfigError(f"Failed to read config from {path}: {e}") from e
            config = ConfigModel.from_yaml(yaml_content)
            logger.debug("Loaded configuration from %s", path)
        else:
            config = ConfigModel()
            logger.debug("No configuration at %s; using defaults", path)

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> Path:
        """Save configuration to file."""
        path = get_config_path(config_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(config.to_yaml())
        except OSError as e:
            raise ConfigError(f"Failed to save config to {path}: {e}") from e
        logger.info("Configuration saved to %s", path)
        return path

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the cached configuration."""
        cls._instance = None


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> Path:
    """Save configuration to file."""
    return Config.save(config, config_path)
