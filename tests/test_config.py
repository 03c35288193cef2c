"""Tests for configuration loading."""

from datetime import date
from pathlib import Path

import pytest

from todotxt_cli.config import Config, ConfigModel, get_config_path, load_config, save_config
from todotxt_cli.errors import ConfigError
from todotxt_cli.query_engine import SortKey


class TestConfigModel:
    """ConfigModel defaults and derived values."""

    def test_defaults(self):
        config = ConfigModel(todo_dir="/data/todo")

        assert config.todo_file == str(Path("/data/todo") / "todo.txt")
        assert config.done_file == str(Path("/data/todo") / "done.txt")
        assert config.report_file == str(Path("/data/todo") / "report.txt")
        assert config.date_on_add is False
        assert config.sort_keys() == [SortKey("priority"), SortKey("line")]

    def test_paths_are_expanded(self, monkeypatch):
        monkeypatch.setenv("TODO_HOME", "/srv/tasks")
        config = ConfigModel(todo_dir="$TODO_HOME", done_file="$TODO_HOME/archive.txt")

        assert config.todo_dir == "/srv/tasks"
        assert config.done_file == "/srv/tasks/archive.txt"

    def test_invalid_sort_setting(self):
        with pytest.raises(ConfigError):
            ConfigModel(sort=["colour"]).sort_keys()

    def test_default_filter(self):
        task_filter = ConfigModel(filter=["+work", "is:pending"]).default_filter()

        assert task_filter.projects == ["work"]
        assert task_filter.completed is False

    def test_timezone_today(self):
        assert isinstance(ConfigModel(timezone="Europe/Berlin").today(), date)

    def test_unknown_timezone(self):
        with pytest.raises(ConfigError):
            ConfigModel(timezone="Mars/Olympus_Mons").today()


class TestYaml:
    """YAML parsing."""

    def test_from_yaml_overrides(self):
        config = ConfigModel.from_yaml(
            "todo_dir: /tmp/t\n"
            "date_on_add: true\n"
            "sort: -created priority\n"
            "styles:\n"
            "  pri_a: bold red\n"
        )

        assert config.date_on_add is True
        assert config.sort == ["-created", "priority"]
        assert config.styles == {"pri_a": "bold red"}
        assert config.todo_file == str(Path("/tmp/t") / "todo.txt")

    def test_unknown_keys_are_ignored(self, caplog):
        with caplog.at_level("WARNING", logger="todotxt_cli.config"):
            config = ConfigModel.from_yaml("colour_scheme: neon\n")

        assert config == ConfigModel()
        assert "colour_scheme" in caplog.text

    def test_empty_yaml(self):
        assert ConfigModel.from_yaml("") == ConfigModel()

    @pytest.mark.parametrize("text", [
        "todo_dir: [unclosed",
        "- just\n- a list\n",
        "styles: red\n",
        "sort: 3\n",
        "todo_file: 12\n",
    ])
    def test_invalid_yaml(self, text):
        with pytest.raises(ConfigError):
            ConfigModel.from_yaml(text)

    def test_to_yaml_round_trip(self):
        config = ConfigModel(todo_dir="/x", hide_context=True, sort=["due"])

        assert ConfigModel.from_yaml(config.to_yaml()) == config


class TestConfigFile:
    """Config file discovery and the cached instance."""

    def test_explicit_path_wins(self, tmp_path):
        assert get_config_path(tmp_path / "c.yaml") == tmp_path / "c.yaml"

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TODOTXT_CLI_CONFIG", str(tmp_path / "env.yaml"))

        assert get_config_path() == tmp_path / "env.yaml"

    def test_missing_file_gives_defaults_without_writing(self, tmp_path):
        path = tmp_path / "config.yaml"

        config = load_config(path)

        assert config == ConfigModel()
        assert not path.exists()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "sub" / "config.yaml"
        save_config(ConfigModel(todo_dir=str(tmp_path), auto_archive=True), path)

        config = load_config(path)

        assert config.auto_archive is True
        assert config.todo_dir == str(tmp_path)

    def test_get_caches_instance(self, tmp_path):
        first = Config.get()

        assert Config.get() is first
        Config.reset()
        assert Config.get() is not first
