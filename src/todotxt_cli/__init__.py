"""todotxt-cli - a command-line manager for todo.txt task lists."""

__version__ = "0.1.0"
__author__ = "todotxt-cli contributors"

from .collection import TaskList
from .errors import (
    ConfigError,
    InvalidInput,
    NotFound,
    ResultStatus,
    StorageError,
    TodoError,
)
from .parser import parse_task
from .task import Task

__all__ = [
    "Task",
    "TaskList",
    "parse_task",
    "ResultStatus",
    "TodoError",
    "InvalidInput",
    "NotFound",
    "StorageError",
    "ConfigError",
    "__version__",
]
