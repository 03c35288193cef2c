"""Exceptions and result statuses for todotxt-cli."""

from enum import Enum
from pathlib import Path
from typing import Optional, Union


class TodoError(Exception):
    """Base class for all todotxt-cli errors."""


class InvalidInput(TodoError, ValueError):
    """A user-supplied value violates a format constraint."""


class NotFound(TodoError, LookupError):
    """A referenced task number does not exist in the collection."""

    def __init__(self, number: int, message: Optional[str] = None):
        self.number = number
        super().__init__(message or f"No task {number}.")


class StorageError(TodoError, OSError):
    """A todo file could not be read, written or replaced."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)

    def __str__(self) -> str:
        message = self.args[0] if self.args else ""
        if self.path is not None:
            return f"{message} ({self.path})"
        return message


class ConfigError(TodoError):
    """The configuration file is unreadable or invalid."""


class ResultStatus(Enum):
    """Outcome of a single targeted mutation."""
    OK = "ok"
    ALREADY_DONE = "already_done"
    ALREADY_PENDING = "already_pending"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"

    @property
    def is_failure(self) -> bool:
        return self in (ResultStatus.NOT_FOUND, ResultStatus.INVALID_INPUT)
