"""Task record model for todo.txt lines."""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Tuple

from .errors import InvalidInput
from .utils.dates import format_date, parse_date


PRIORITY_LETTER_RE = re.compile(r"^[A-Z]$")
# key:value with no surrounding whitespace; "+tag:x" and "@ctx:x" stay tags
METADATA_RE = re.compile(r"^([^\s:+@][^\s:]*):(\S+)$")


def validate_priority(letter: Optional[str]) -> str:
    """Return ``letter`` if it is a single uppercase A-Z priority.

    Raises:
        InvalidInput: For anything else, including lowercase letters.
    """
    if not isinstance(letter, str) or not PRIORITY_LETTER_RE.match(letter):
        raise InvalidInput(f"Invalid priority {letter!r}: use a single letter A-Z.")
    return letter


def _unique(items) -> Tuple[str, ...]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


def extract_projects(description: str) -> Tuple[str, ...]:
    """Project names (without ``+``) in first-seen order."""
    return _unique(token[1:] for token in description.split()
                   if token.startswith("+") and len(token) > 1)


def extract_contexts(description: str) -> Tuple[str, ...]:
    """Context names (without ``@``) in first-seen order."""
    return _unique(token[1:] for token in description.split()
                   if token.startswith("@") and len(token) > 1)


def extract_metadata(description: str) -> Dict[str, str]:
    """``key:value`` tokens; the first occurrence of a key wins.

    URLs such as ``https://example.com`` are not metadata.
    """
    metadata: Dict[str, str] = {}
    for token in description.split():
        match = METADATA_RE.match(token)
        if not match:
            continue
        key, value = match.groups()
        if value.startswith("//"):
            continue
        metadata.setdefault(key, value)
    return metadata


@dataclass
class Task:
    """One line of a todo.txt file.

    ``projects``, ``contexts`` and ``metadata`` are derived from
    ``description`` on every access and cannot be set directly.

    ``raw`` holds the line exactly as read and ``newline`` the terminator
    that followed it. While none of the structural
    fields differ from what was parsed out of ``raw``, ``to_line()`` returns
    ``raw`` unchanged; after a mutation the line is rebuilt in canonical form.
    """

    description: str = ""
    completed: bool = False
    priority: Optional[str] = None
    creation_date: Optional[date] = None
    completion_date: Optional[date] = None
    line_number: int = 0
    raw: Optional[str] = None
    # terminator read after this line; None follows the list convention
    newline: Optional[str] = field(default=None, repr=False, compare=False)
    _pristine: Tuple = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        self.validate()
        if self.raw is None:
            self.raw = self.format_line()
        self._pristine = self._state()

    def validate(self) -> None:
        """Check the record invariants.

        Raises:
            InvalidInput: On a bad priority or a completion date on a
                pending task.
        """
        if self.priority is not None:
            validate_priority(self.priority)
        if not self.completed and self.completion_date is not None:
            raise InvalidInput("A pending task cannot have a completion date.")

    def _state(self) -> Tuple:
        return (
            self.description,
            self.completed,
            self.priority,
            self.creation_date,
            self.completion_date,
        )

    @property
    def modified(self) -> bool:
        """True if any structural field changed since the record was created."""
        return self._state() != self._pristine

    @property
    def projects(self) -> Tuple[str, ...]:
        return extract_projects(self.description)

    @property
    def contexts(self) -> Tuple[str, ...]:
        return extract_contexts(self.description)

    @property
    def metadata(self) -> Dict[str, str]:
        return extract_metadata(self.description)

    @property
    def due_date(self) -> Optional[date]:
        """The ``due:`` date, or None when absent or malformed."""
        return parse_date(self.metadata.get("due"))

    @property
    def threshold_date(self) -> Optional[date]:
        """The ``t:`` threshold date, or None when absent or malformed."""
        return parse_date(self.metadata.get("t"))

    @property
    def is_blank(self) -> bool:
        return not self.to_line().strip()

    def format_line(self) -> str:
        """Build the canonical todo.txt line from the structural fields."""
        parts = []
        if self.completed:
            parts.append("x")
            if self.completion_date is not None:
                parts.append(format_date(self.completion_date))
        if self.priority:
            parts.append(f"({self.priority})")
        if self.creation_date is not None:
            parts.append(format_date(self.creation_date))
        if self.description:
            parts.append(self.description)
        return " ".join(parts)

    def to_line(self) -> str:
        """Serialize for writing back to disk."""
        if not self.modified and self.raw is not None:
            return self.raw
        return self.format_line()

    def __str__(self) -> str:
        return self.to_line()
