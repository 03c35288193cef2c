"""Pytest configuration and shared fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from todotxt_cli.config import Config, ConfigModel  # noqa: E402
from todotxt_cli.storage import parse_text  # noqa: E402

FIXED_TODAY = date(2024, 3, 15)

SAMPLE_TODO = (
    "(A) Call mom +family @phone\n"
    "(B) 2024-01-10 Review PR +work @computer due:2024-03-20\n"
    "x 2024-03-01 2024-02-20 Pay rent +home\n"
    "Buy milk @store\n"
    "(C) Write report +work due:2024-03-10\n"
)


@pytest.fixture
def today():
    """A callable returning a fixed date, for deterministic stamps."""
    return lambda: FIXED_TODAY


@pytest.fixture
def sample_tasks():
    """A parsed TaskList built from SAMPLE_TODO."""
    return parse_text(SAMPLE_TODO)


@pytest.fixture
def todo_dir(tmp_path):
    """A directory holding a todo.txt with SAMPLE_TODO and an empty done.txt."""
    (tmp_path / "todo.txt").write_text(SAMPLE_TODO, encoding="utf-8")
    (tmp_path / "done.txt").write_text("", encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(todo_dir):
    """A ConfigModel pointing at the files in ``todo_dir``."""
    return ConfigModel(todo_dir=str(todo_dir))


@pytest.fixture(autouse=True)
def reset_config(monkeypatch, tmp_path):
    """Keep tests away from the user's real configuration."""
    monkeypatch.setenv("TODOTXT_CLI_CONFIG", str(tmp_path / "no-config.yaml"))
    Config.reset()
    yield
    Config.reset()
