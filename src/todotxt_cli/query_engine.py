"""
Query Engine for todotxt-cli

Selects and orders tasks from a collection. Filters are conjunctive sets of
predicates (``TaskFilter``); they can be built directly or from command-line
terms using a field syntax such as ``pri:A``, ``+project``, ``@context``,
``created:>2024-01-01`` or ``due:2024-01-01..2024-01-31``. Sorting takes an
ordered list of ``SortKey`` values with per-key direction.

Nothing in this module mutates tasks or the collection.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from .errors import InvalidInput
from .task import METADATA_RE, Task
from .utils.dates import parse_date


class PriorityMatch(Enum):
    """Priority presence predicates."""
    ANY = "any"
    NONE = "none"


DATE_FIELDS = {
    "created": lambda t: t.creation_date,
    "completed": lambda t: t.completion_date,
    "due": lambda t: t.due_date,
    "threshold": lambda t: t.threshold_date,
}

DATE_FIELD_ALIASES = {
    "created": "created",
    "completed": "completed",
    "done": "completed",
    "due": "due",
    "t": "threshold",
    "threshold": "threshold",
}


@dataclass
class DatePredicate:
    """A date comparison against one of the task's dates.

    Tasks that lack the date never match.
    """
    field: str  # created, completed, due, threshold
    operator: str  # before, after, on, on_or_before, on_or_after, between
    value: Any  # date, or (start, end) for between

    def evaluate(self, task: Task) -> bool:
        getter = DATE_FIELDS.get(self.field)
        if getter is None:
            return False
        task_date = getter(task)
        if task_date is None:
            return False

        if self.operator == "before":
            return task_date < self.value
        elif self.operator == "after":
            return task_date > self.value
        elif self.operator == "on":
            return task_date == self.value
        elif self.operator == "on_or_before":
            return task_date <= self.value
        elif self.operator == "on_or_after":
            return task_date >= self.value
        elif self.operator == "between":
            start, end = self.value
            return start <= task_date <= end

        return False


@dataclass
class TaskFilter:
    """Conjunction of task predicates. An empty filter matches every task.

    ``priorities`` is None when any priority is acceptable; an empty set
    matches nothing. ``metadata`` maps a key to every value required of it,
    with None meaning the key only has to be present.
    """
    completed: Optional[bool] = None
    priorities: Optional[Set[str]] = None
    priority_match: Optional[PriorityMatch] = None
    projects: List[str] = field(default_factory=list)
    contexts: List[str] = field(default_factory=list)
    metadata: Dict[str, List[Optional[str]]] = field(default_factory=dict)
    terms: List[str] = field(default_factory=list)
    excluded_terms: List[str] = field(default_factory=list)
    dates: List[DatePredicate] = field(default_factory=list)
    include_blank: bool = False
    contradictory: bool = False

    def matches(self, task: Task) -> bool:
        """Evaluate every predicate against ``task``."""
        if task.is_blank:
            return self.include_blank and self._is_empty()
        if self.contradictory:
            return False

        if self.completed is not None and task.completed != self.completed:
            return False

        if self.priorities is not None and task.priority not in self.priorities:
            return False
        if self.priority_match is PriorityMatch.ANY and task.priority is None:
            return False
        if self.priority_match is PriorityMatch.NONE and task.priority is not None:
            return False

        if self.projects:
            task_projects = task.projects
            if not all(p in task_projects for p in self.projects):
                return False

        if self.contexts:
            task_contexts = task.contexts
            if not all(c in task_contexts for c in self.contexts):
                return False

        if self.metadata:
            task_metadata = task.metadata
            for key, values in self.metadata.items():
                if key not in task_metadata:
                    return False
                if any(v is not None and task_metadata[key] != v for v in values):
                    return False

        description = task.description.lower()
        if not all(term.lower() in description for term in self.terms):
            return False
        if any(term.lower() in description for term in self.excluded_terms):
            return False

        return all(predicate.evaluate(task) for predicate in self.dates)

    def _is_empty(self) -> bool:
        return self == TaskFilter(include_blank=self.include_blank)

    def require_completed(self, completed: Optional[bool]) -> None:
        if completed is None:
            return
        if self.completed is not None and self.completed != completed:
            self.contradictory = True
        self.completed = completed

    def require_priority_match(self, priority_match: Optional[PriorityMatch]) -> None:
        if priority_match is None:
            return
        if self.priority_match is not None and self.priority_match is not priority_match:
            self.contradictory = True
        self.priority_match = priority_match

    def require_priorities(self, letters: Optional[Iterable[str]]) -> None:
        """Narrow the accepted priorities to ``letters``."""
        if letters is None:
            return
        letters = set(letters)
        self.priorities = letters if self.priorities is None else self.priorities & letters

    def require_metadata(self, key: str, value: Optional[str] = None) -> None:
        values = self.metadata.setdefault(key, [])
        if value not in values:
            values.append(value)

    def merge(self, other: "TaskFilter") -> "TaskFilter":
        """Return a filter requiring both ``self`` and ``other``."""
        merged = TaskFilter(
            completed=self.completed,
            priorities=set(self.priorities) if self.priorities is not None else None,
            priority_match=self.priority_match,
            projects=self.projects + other.projects,
            contexts=self.contexts + other.contexts,
            metadata={key: list(values) for key, values in self.metadata.items()},
            terms=self.terms + other.terms,
            excluded_terms=self.excluded_terms + other.excluded_terms,
            dates=self.dates + other.dates,
            include_blank=self.include_blank and other.include_blank,
            contradictory=self.contradictory or other.contradictory,
        )
        merged.require_completed(other.completed)
        merged.require_priority_match(other.priority_match)
        merged.require_priorities(other.priorities)
        for key, values in other.metadata.items():
            for value in values:
                merged.require_metadata(key, value)
        return merged


def select(tasks: Iterable[Task], task_filter: Optional[TaskFilter] = None) -> List[Task]:
    """Tasks matching ``task_filter``, in their original order."""
    task_filter = task_filter or TaskFilter()
    return [task for task in tasks if task_filter.matches(task)]


def _resolve_date(token: str, today: date) -> Optional[date]:
    """Parse a date or a relative keyword (today, tomorrow, yesterday)."""
    keywords = {
        "today": today,
        "tomorrow": today + timedelta(days=1),
        "yesterday": today - timedelta(days=1),
    }
    if token.lower() in keywords:
        return keywords[token.lower()]
    return parse_date(token)


def parse_date_expression(field_name: str, expression: str,
                          today: date) -> Optional[DatePredicate]:
    """Turn ``>2024-01-01``, ``<=today``, ``a..b`` or ``2024-01-01`` into a predicate.

    Returns None when the expression is not a date expression.
    """
    for prefix, operator in ((">=", "on_or_after"), ("<=", "on_or_before"),
                             (">", "after"), ("<", "before")):
        if expression.startswith(prefix):
            value = _resolve_date(expression[len(prefix):], today)
            if value is None:
                return None
            return DatePredicate(field_name, operator, value)

    if ".." in expression:
        start_token, end_token = expression.split("..", 1)
        start = _resolve_date(start_token, today) if start_token else date.min
        end = _resolve_date(end_token, today) if end_token else date.max
        if start is None or end is None:
            return None
        return DatePredicate(field_name, "between", (start, end))

    value = _resolve_date(expression, today)
    if value is None:
        return None
    return DatePredicate(field_name, "on", value)


def _parse_priority_term(value: str, task_filter: TaskFilter) -> None:
    lowered = value.lower()
    if lowered == "any":
        task_filter.require_priority_match(PriorityMatch.ANY)
        return
    if lowered == "none":
        task_filter.require_priority_match(PriorityMatch.NONE)
        return

    if len(value) == 3 and value[1] == "-":
        # pri:A-C
        start, end = value[0].upper(), value[2].upper()
        letters = [chr(c) for c in range(ord(start), ord(end) + 1)]
    else:
        letters = [v for v in value.split(",") if v]
    if not letters:
        raise InvalidInput(f"Invalid priority filter {value!r}: use letters A-Z, any or none.")
    letters = [letter.upper() for letter in letters]
    for letter in letters:
        if len(letter) != 1 or not "A" <= letter <= "Z":
            raise InvalidInput(f"Invalid priority filter {value!r}: use letters A-Z, any or none.")
    task_filter.require_priorities(letters)


def parse_filter_terms(terms: Sequence[str], today: Optional[date] = None) -> TaskFilter:
    """Build a ``TaskFilter`` from command-line terms.

    Supported terms:
      +project, @context        required tag
      -word                     exclude tasks whose text contains word
      is:done / is:pending      completion state
      pri:A, pri:A,B, pri:A-C   priority letters
      pri:any / pri:none        priority presence
      has:key                   metadata key present
      created:>2024-01-01       date predicates on created, completed
                                (alias done), due and t (threshold)
      key:value                 metadata value match
      anything else             case-insensitive text match

    Repeated terms narrow the filter: ``pri:A pri:B`` matches nothing.

    Raises:
        InvalidInput: For malformed priority filters.
    """
    today = today or date.today()
    task_filter = TaskFilter()

    for term in terms:
        if not term:
            continue

        if term.startswith("+") and len(term) > 1:
            task_filter.projects.append(term[1:])
            continue
        if term.startswith("@") and len(term) > 1:
            task_filter.contexts.append(term[1:])
            continue
        if term.startswith("-") and len(term) > 1:
            task_filter.excluded_terms.append(term[1:])
            continue

        field_name, sep, value = term.partition(":")
        if not sep or not value:
            task_filter.terms.append(term)
            continue

        name = field_name.lower()
        if name == "is":
            state = value.lower()
            if state in ("done", "completed", "x"):
                task_filter.require_completed(True)
                continue
            if state in ("pending", "open", "active", "todo"):
                task_filter.require_completed(False)
                continue
        elif name in ("pri", "priority"):
            _parse_priority_term(value, task_filter)
            continue
        elif name == "has":
            task_filter.require_metadata(value)
            continue
        elif name in DATE_FIELD_ALIASES:
            predicate = parse_date_expression(DATE_FIELD_ALIASES[name], value, today)
            if predicate is not None:
                task_filter.dates.append(predicate)
                continue

        match = METADATA_RE.match(term)
        if match and not match.group(2).startswith("//"):
            task_filter.require_metadata(match.group(1), match.group(2))
        else:
            task_filter.terms.append(term)

    return task_filter


def _first_lower(values) -> Optional[str]:
    return values[0].lower() if values else None


SORT_FIELDS: Dict[str, Callable[[Task], Any]] = {
    "priority": lambda t: t.priority,
    "created": lambda t: t.creation_date,
    "completed": lambda t: t.completion_date,
    "done": lambda t: t.completed,
    "due": lambda t: t.due_date,
    "threshold": lambda t: t.threshold_date,
    "project": lambda t: _first_lower(t.projects),
    "context": lambda t: _first_lower(t.contexts),
    "description": lambda t: t.description.lower(),
    "raw": lambda t: t.to_line(),
    "line": lambda t: t.line_number,
}

SORT_ALIASES = {
    "pri": "priority",
    "create_date": "created",
    "creation": "created",
    "creation_date": "created",
    "complete_date": "completed",
    "completion": "completed",
    "completion_date": "completed",
    "finished": "done",
    "due_date": "due",
    "t": "threshold",
    "threshold_date": "threshold",
    "body": "description",
    "text": "description",
    "id": "line",
    "number": "line",
    "line_number": "line",
}


@dataclass(frozen=True)
class SortKey:
    """One sort criterion."""
    field: str
    descending: bool = False

    def __post_init__(self):
        if self.field not in SORT_FIELDS:
            raise InvalidInput(
                f"Unknown sort field {self.field!r}; choose from: {', '.join(sorted(SORT_FIELDS))}"
            )


def parse_sort_key(spec: str) -> SortKey:
    """Parse ``priority``, ``-created``, ``created:desc`` or ``due:asc``."""
    spec = spec.strip()
    descending = False
    if spec.startswith("-"):
        descending = True
        spec = spec[1:]
    elif spec.startswith("+"):
        spec = spec[1:]
    name, _, direction = spec.partition(":")
    direction = direction.lower()
    if direction in ("desc", "descending", "reverse"):
        descending = not descending
    elif direction not in ("", "asc", "ascending"):
        raise InvalidInput(f"Invalid sort direction {direction!r} in {spec!r}")
    name = name.lower()
    return SortKey(SORT_ALIASES.get(name, name), descending)


def parse_sort_keys(specs: Iterable[str]) -> List[SortKey]:
    return [parse_sort_key(spec) for spec in specs if spec and spec.strip()]


def _compare(a: Task, b: Task, sort_keys: Sequence[SortKey]) -> int:
    for key in sort_keys:
        getter = SORT_FIELDS[key.field]
        va, vb = getter(a), getter(b)
        # Absent values go last whatever the direction
        if va is None and vb is None:
            continue
        if va is None:
            return 1
        if vb is None:
            return -1
        result = (va > vb) - (va < vb)
        if key.descending:
            result = -result
        if result:
            return result
    return (a.line_number > b.line_number) - (a.line_number < b.line_number)


def sort_tasks(tasks: Iterable[Task], sort_keys: Optional[Sequence[SortKey]] = None) -> List[Task]:
    """Return a new list ordered by ``sort_keys``, then by line number."""
    sort_keys = list(sort_keys or [])
    return sorted(tasks, key=cmp_to_key(lambda a, b: _compare(a, b, sort_keys)))


class QueryEngine:
    """Convenience wrapper combining a default filter and sort order."""

    def __init__(self, sort_keys: Optional[Sequence[SortKey]] = None,
                 default_filter: Optional[TaskFilter] = None,
                 today: Optional[Callable[[], date]] = None):
        self.sort_keys = list(sort_keys or [SortKey("line")])
        self.default_filter = default_filter or TaskFilter()
        self.today = today or date.today

    def search(self, tasks: Iterable[Task], terms: Sequence[str] = (),
               task_filter: Optional[TaskFilter] = None) -> List[Task]:
        """Select with the default filter, ``terms`` and ``task_filter``, then sort."""
        combined = self.default_filter.merge(parse_filter_terms(terms, self.today()))
        if task_filter is not None:
            combined = combined.merge(task_filter)
        return sort_tasks(select(tasks, combined), self.sort_keys)
