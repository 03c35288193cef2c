"""Mutation engine: edits a TaskList in place.

Operations that target task numbers resolve every number against the
collection as it was before the operation started, apply to each target
independently and return one ``OperationResult`` per requested number.
Invalid arguments (an empty task text, a bad priority letter) raise
``InvalidInput`` before anything is changed.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .collection import TaskList
from .errors import InvalidInput, NotFound, ResultStatus, TodoError
from .parser import parse_task
from .task import Task, validate_priority

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of an operation on a single task."""
    number: Optional[int]
    status: ResultStatus
    task: Optional[Task] = None
    message: str = ""
    error: Optional[TodoError] = None

    @property
    def ok(self) -> bool:
        return not self.status.is_failure

    def raise_for_error(self) -> None:
        """Re-raise the stored error, if any."""
        if self.error is not None:
            raise self.error


def _single_line(text: str) -> str:
    return " ".join(text.splitlines()).strip()


class TaskEditor:
    """Applies add/complete/prioritize/delete/archive operations to a TaskList."""

    def __init__(self, tasks: TaskList, today: Callable[[], date] = date.today):
        self.tasks = tasks
        self.today = today

    def _resolve(self, numbers: Iterable[int]) -> List[Tuple[int, Optional[Task]]]:
        """Map each requested number to its task in the current snapshot."""
        snapshot = {task.line_number: task for task in self.tasks if not task.is_blank}
        return [(number, snapshot.get(number)) for number in numbers]

    def _lookup(self, number: int) -> Optional[Task]:
        return self._resolve([number])[0][1]

    @staticmethod
    def _not_found(number: int) -> OperationResult:
        error = NotFound(number)
        return OperationResult(number, ResultStatus.NOT_FOUND, message=str(error), error=error)

    def add(self, text: str, date_on_add: bool = False) -> OperationResult:
        """Parse ``text`` as a new task and append it.

        Raises:
            InvalidInput: If the text is empty after trimming.
        """
        line = _single_line(text)
        if not line:
            raise InvalidInput("Task text is empty.")

        task = parse_task(line)
        if date_on_add and task.creation_date is None and not task.completed:
            task.creation_date = self.today()
            task = parse_task(task.format_line())

        self.tasks.append(task)
        logger.info("Added task %d: %s", task.line_number, task.to_line())
        return OperationResult(task.line_number, ResultStatus.OK, task,
                               f"{task.line_number} added.")

    def add_many(self, lines: Iterable[str], date_on_add: bool = False) -> List[OperationResult]:
        """Add each non-empty line as a task.

        Raises:
            InvalidInput: If no line has any text.
        """
        texts = [line for line in lines if line.strip()]
        if not texts:
            raise InvalidInput("No task text given.")
        return [self.add(text, date_on_add=date_on_add) for text in texts]

    def complete(self, numbers: Sequence[int], strip_priority: bool = False) -> List[OperationResult]:
        """Mark tasks done, stamping today's completion date."""
        results = []
        for number, task in self._resolve(numbers):
            if task is None:
                results.append(self._not_found(number))
                continue
            if task.completed:
                results.append(OperationResult(number, ResultStatus.ALREADY_DONE, task,
                                               f"{number} is already marked done."))
                continue
            task.completed = True
            task.completion_date = self.today()
            if strip_priority:
                task.priority = None
            logger.info("Completed task %d", number)
            results.append(OperationResult(number, ResultStatus.OK, task,
                                           f"{number} marked as done."))
        return results

    def uncomplete(self, numbers: Sequence[int]) -> List[OperationResult]:
        """Reopen completed tasks."""
        results = []
        for number, task in self._resolve(numbers):
            if task is None:
                results.append(self._not_found(number))
                continue
            if not task.completed:
                results.append(OperationResult(number, ResultStatus.ALREADY_PENDING, task,
                                               f"{number} is not marked done."))
                continue
            task.completed = False
            task.completion_date = None
            logger.info("Reopened task %d", number)
            results.append(OperationResult(number, ResultStatus.OK, task,
                                           f"{number} reopened."))
        return results

    def prioritize(self, numbers: Sequence[int], letter: str) -> List[OperationResult]:
        """Set the priority of each task to ``letter``.

        Raises:
            InvalidInput: If ``letter`` is not a single uppercase A-Z letter.
        """
        validate_priority(letter)
        results = []
        for number, task in self._resolve(numbers):
            if task is None:
                results.append(self._not_found(number))
                continue
            if task.priority == letter:
                results.append(OperationResult(number, ResultStatus.UNCHANGED, task,
                                               f"{number} already has priority ({letter})."))
                continue
            previous = task.priority
            task.priority = letter
            logger.info("Task %d priority %s -> %s", number, previous, letter)
            message = (f"{number} re-prioritized from ({previous}) to ({letter})."
                       if previous else f"{number} prioritized ({letter}).")
            results.append(OperationResult(number, ResultStatus.OK, task, message))
        return results

    def deprioritize(self, numbers: Sequence[int]) -> List[OperationResult]:
        """Remove the priority from each task."""
        results = []
        for number, task in self._resolve(numbers):
            if task is None:
                results.append(self._not_found(number))
                continue
            if task.priority is None:
                results.append(OperationResult(number, ResultStatus.UNCHANGED, task,
                                               f"{number} is not prioritized."))
                continue
            task.priority = None
            results.append(OperationResult(number, ResultStatus.OK, task,
                                           f"{number} deprioritized."))
        return results

    def _blank_out(self, task: Task) -> None:
        index = self.tasks.index_of(task)
        self.tasks.tasks[index] = Task(line_number=task.line_number, newline=task.newline)

    def delete(self, numbers: Sequence[int], preserve_line_numbers: bool = False) -> List[OperationResult]:
        """Delete tasks by number.

        All numbers refer to the numbering before the call. Removal happens
        in descending order; the list is renumbered afterwards unless
        ``preserve_line_numbers`` is set, in which case deleted lines are
        left blank.
        """
        results = []
        targets: List[Task] = []
        for number, task in self._resolve(numbers):
            if task is None or any(task is t for t in targets):
                results.append(self._not_found(number))
                continue
            targets.append(task)
            results.append(OperationResult(number, ResultStatus.OK, task,
                                           f"{number} deleted."))

        for task in sorted(targets, key=lambda t: t.line_number, reverse=True):
            if preserve_line_numbers:
                self._blank_out(task)
            else:
                self.tasks.remove(task)
            logger.info("Deleted task %d: %s", task.line_number, task.to_line())

        if targets and not preserve_line_numbers:
            self.tasks.renumber()
        return results

    def remove_term(self, number: int, term: str) -> OperationResult:
        """Remove every match of the regular expression ``term`` from a task.

        Raises:
            InvalidInput: If ``term`` is empty or not a valid expression.
        """
        if not term:
            raise InvalidInput("Term to remove is empty.")
        try:
            pattern = re.compile(term)
        except re.error as e:
            raise InvalidInput(f"Invalid term {term!r}: {e}") from e

        task = self._lookup(number)
        if task is None:
            return self._not_found(number)

        line = task.to_line()
        if not pattern.search(line):
            return OperationResult(number, ResultStatus.UNCHANGED, task,
                                   f"'{term}' not found; no removal done.")

        new_line = " ".join(pattern.sub("", line).split())
        updated = parse_task(new_line, number)
        updated.newline = task.newline
        self.tasks.tasks[self.tasks.index_of(task)] = updated
        logger.info("Removed %r from task %d: %s", term, number, new_line)
        return OperationResult(number, ResultStatus.OK, updated, f"Removed '{term}' from task.")

    def _edit_description(self, number: int, text: str,
                          edit: Callable[[Task, str], None], verb: str) -> OperationResult:
        line = _single_line(text)
        if not line:
            raise InvalidInput(f"Nothing to {verb}.")
        task = self._lookup(number)
        if task is None:
            return self._not_found(number)
        edit(task, line)
        return OperationResult(number, ResultStatus.OK, task, f"{number} updated.")

    def append(self, number: int, text: str) -> OperationResult:
        """Add ``text`` to the end of a task."""
        def edit(task: Task, line: str) -> None:
            task.description = f"{task.description} {line}" if task.description else line
        return self._edit_description(number, text, edit, "append")

    def prepend(self, number: int, text: str) -> OperationResult:
        """Add ``text`` to the start of a task's description, after its prefix."""
        def edit(task: Task, line: str) -> None:
            task.description = f"{line} {task.description}" if task.description else line
        return self._edit_description(number, text, edit, "prepend")

    def replace(self, number: int, text: str) -> OperationResult:
        """Replace a task's text.

        Priority and creation date are kept unless the new text has its own;
        a completed task stays completed.
        """
        def edit(task: Task, line: str) -> None:
            new = parse_task(line)
            task.description = new.description
            task.priority = new.priority or task.priority
            task.creation_date = new.creation_date or task.creation_date
            if new.completed:
                task.completed = True
                task.completion_date = new.completion_date
        return self._edit_description(number, text, edit, "replace")

    def archive(self, done: TaskList, preserve_line_numbers: bool = False) -> List[Task]:
        """Move completed tasks to ``done``, keeping their relative order.

        Blank lines are dropped from the main list and it is renumbered from
        1, unless ``preserve_line_numbers`` is set, in which case archived
        lines are left blank.
        """
        moved = self.tasks.done()
        for task in moved:
            if preserve_line_numbers:
                self._blank_out(task)
            else:
                self.tasks.remove(task)
            done.append(task)

        if not preserve_line_numbers:
            self.tasks.tasks = [t for t in self.tasks if not t.is_blank]
            self.tasks.renumber()
        logger.info("Archived %d completed tasks", len(moved))
        return moved

    def deduplicate(self, preserve_line_numbers: bool = False) -> List[Task]:
        """Remove tasks whose line repeats an earlier one."""
        seen = set()
        duplicates = []
        for task in self.tasks:
            if task.is_blank:
                continue
            line = task.to_line().strip()
            if line in seen:
                duplicates.append(task)
            else:
                seen.add(line)

        for task in duplicates:
            if preserve_line_numbers:
                self._blank_out(task)
            else:
                self.tasks.remove(task)
        if duplicates and not preserve_line_numbers:
            self.tasks.renumber()
        logger.info("Removed %d duplicate tasks", len(duplicates))
        return duplicates
