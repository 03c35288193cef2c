"""Storage layer for todotxt-cli: todo.txt files on disk.

Files are read whole and parsed line by line. Writes go to a temporary file
in the same directory which then replaces the original with ``os.replace``,
so readers never see a half-written list.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .collection import TaskList
from .config import ConfigModel
from .errors import StorageError
from .mutations import TaskEditor
from .parser import parse_task_with_anomalies
from .task import Task
from .utils.dates import now_local

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def parse_text(text: str) -> TaskList:
    """Split file contents into lines and parse each one.

    Each task keeps the terminator (``\\r\\n`` or ``\\n``) that ended its
    line, so files with mixed line endings are written back unchanged. The
    first line break sets the convention used for new lines, and the
    presence of a trailing newline is recorded on the returned TaskList.
    """
    first_break = text.find("\n")
    newline = "\r\n" if first_break > 0 and text[first_break - 1] == "\r" else "\n"
    trailing_newline = text.endswith("\n") or not text

    pieces = text.split("\n") if text else []
    # the piece after the last break is empty unless the file lacks a final newline
    last = pieces.pop() if pieces else ""

    lines: List[Tuple[str, Optional[str]]] = []
    for piece in pieces:
        if piece.endswith("\r"):
            lines.append((piece[:-1], "\r\n"))
        else:
            lines.append((piece, "\n"))
    if not trailing_newline:
        lines.append((last, None))

    tasks = TaskList(newline=newline, trailing_newline=trailing_newline)
    for number, (line, terminator) in enumerate(lines, start=1):
        task, anomalies = parse_task_with_anomalies(line, number)
        task.newline = terminator
        tasks.tasks.append(task)
        tasks.anomalies.extend(anomalies)
    return tasks


def load_tasks(path: PathLike) -> TaskList:
    """Load a todo.txt file. A missing file is an empty list.

    Bytes that are not valid UTF-8 are kept as surrogate escapes and written
    back unchanged by ``save_tasks``.

    Raises:
        StorageError: If the file exists but cannot be read.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("%s does not exist; starting with an empty list", path)
        return TaskList()

    try:
        with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            text = f.read()
    except OSError as e:
        raise StorageError(f"Cannot read todo file: {e}", path) from e

    tasks = parse_text(text)
    for anomaly in tasks.anomalies:
        logger.warning("%s:%d: %s", path, anomaly.line_number, anomaly.message)
    logger.debug("Loaded %d lines from %s", len(tasks), path)
    return tasks


def save_tasks(path: PathLike, tasks: TaskList) -> None:
    """Atomically replace ``path`` with the serialized collection.

    Raises:
        StorageError: If the temporary file cannot be written or the rename
            fails. The original file is left untouched and the temporary
            file is removed.
    """
    path = Path(path)
    content = tasks.to_text()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(
            mode="w", encoding="utf-8", errors="surrogateescape", newline="",
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False,
        )
    except OSError as e:
        raise StorageError(f"Cannot create temporary file: {e}", path) from e

    tmp_path = Path(tmp.name)
    try:
        with tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o777)
        os.replace(tmp_path, path)
    except BaseException as e:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        if isinstance(e, OSError):
            raise StorageError(f"Cannot write todo file: {e}", path) from e
        raise

    logger.info("Wrote %d tasks to %s", len(tasks), path)


class TodoRepository:
    """The todo, done and report files named by a configuration."""

    def __init__(self, config: ConfigModel):
        self.config = config

    @property
    def todo_path(self) -> Path:
        return Path(self.config.todo_file)

    @property
    def done_path(self) -> Path:
        return Path(self.config.done_file)

    @property
    def report_path(self) -> Path:
        return Path(self.config.report_file)

    def load(self) -> TaskList:
        return load_tasks(self.todo_path)

    def save(self, tasks: TaskList) -> None:
        save_tasks(self.todo_path, tasks)

    def load_done(self) -> TaskList:
        return load_tasks(self.done_path)

    def save_done(self, done: TaskList) -> None:
        save_tasks(self.done_path, done)

    def archive(self, tasks: TaskList) -> Tuple[TaskList, List[Task]]:
        """Move completed tasks from ``tasks`` to the done file and save both.

        The done file is written first: if the second write fails the
        archived tasks exist in both files rather than in neither.
        """
        done = self.load_done()
        editor = TaskEditor(tasks, today=self.config.today)
        moved = editor.archive(done, preserve_line_numbers=self.config.preserve_line_numbers)
        if moved:
            self.save_done(done)
        self.save(tasks)
        return done, moved

    def report(self, tasks: Optional[TaskList] = None) -> str:
        """Append a ``<timestamp> <pending> <done>`` line to the report file.

        Returns:
            The line written.
        """
        tasks = tasks if tasks is not None else self.load()
        done = self.load_done()
        pending_count = len(tasks.pending())
        done_count = len([t for t in done if not t.is_blank]) + len(tasks.done())
        stamp = now_local(self.config.timezone).strftime("%Y-%m-%dT%H:%M:%S")
        line = f"{stamp} {pending_count} {done_count}"

        report = load_tasks(self.report_path)
        report.tasks.append(Task(description=line, line_number=len(report) + 1))
        save_tasks(self.report_path, report)
        return line
