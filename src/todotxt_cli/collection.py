"""Ordered task collection backed by a todo.txt file."""

from typing import Iterable, Iterator, List, Optional

from .parser import ParseAnomaly
from .task import Task


class TaskList:
    """Tasks in on-disk line order.

    Identity is positional: a task's number is its 1-based line position and
    is only recomputed by ``renumber()`` after structural changes.
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None,
                 newline: str = "\n", trailing_newline: bool = True):
        self.tasks: List[Task] = list(tasks or [])
        self.newline = newline
        self.trailing_newline = trailing_newline
        self.anomalies: List[ParseAnomaly] = []

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    def __getitem__(self, index: int) -> Task:
        return self.tasks[index]

    def __repr__(self) -> str:
        return f"TaskList({len(self.tasks)} tasks)"

    def get(self, number: int) -> Optional[Task]:
        """Return the task with line number ``number``, or None."""
        for task in self.tasks:
            if task.line_number == number:
                return task
        return None

    def index_of(self, task: Task) -> int:
        """Position of ``task`` (by identity) in the list."""
        for i, candidate in enumerate(self.tasks):
            if candidate is task:
                return i
        raise ValueError(f"Task not in collection: {task.to_line()!r}")

    def numbers(self) -> List[int]:
        return [task.line_number for task in self.tasks]

    def next_number(self) -> int:
        """Number the next appended task will get."""
        return max(self.numbers(), default=0) + 1

    def append(self, task: Task) -> Task:
        """Append ``task`` at the end, assigning it the next number.

        The task takes this list's newline convention.
        """
        task.line_number = self.next_number()
        task.newline = None
        self.tasks.append(task)
        return task

    def remove(self, task: Task) -> None:
        """Remove ``task`` (by identity) without renumbering."""
        del self.tasks[self.index_of(task)]

    def renumber(self) -> None:
        """Recompute task numbers from the current order."""
        for number, task in enumerate(self.tasks, start=1):
            task.line_number = number

    def pending(self) -> List[Task]:
        return [t for t in self.tasks if not t.completed and not t.is_blank]

    def done(self) -> List[Task]:
        return [t for t in self.tasks if t.completed]

    def to_lines(self) -> List[str]:
        return [task.to_line() for task in self.tasks]

    def to_text(self) -> str:
        """Serialize the whole collection.

        Every line ends with its own terminator, falling back to the list's
        convention for lines that were added or rebuilt. The final line gets
        one only if ``trailing_newline`` is set.
        """
        if not self.tasks:
            return ""
        parts = []
        last = len(self.tasks) - 1
        for i, task in enumerate(self.tasks):
            parts.append(task.to_line())
            if i < last or self.trailing_newline:
                parts.append(task.newline or self.newline)
        return "".join(parts)
