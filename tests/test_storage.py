"""Tests for loading and saving todo.txt files."""

import os
from unittest.mock import patch

import pytest

from todotxt_cli.collection import TaskList
from todotxt_cli.errors import StorageError
from todotxt_cli.mutations import TaskEditor
from todotxt_cli.storage import TodoRepository, load_tasks, parse_text, save_tasks

from conftest import SAMPLE_TODO


def write_bytes(path, data: bytes):
    path.write_bytes(data)
    return path


class TestRoundTrip:
    """Load-then-save without changes reproduces the file byte-for-byte."""

    @pytest.mark.parametrize("data", [
        SAMPLE_TODO.encode("utf-8"),
        b"(A)  double  spaced   +p\n\n   \nx 2023-02-30 odd\n",
        b"one\r\ntwo\r\n\r\nthree\r\n",
        b"no trailing newline\nsecond",
        b"crlf without trailing\r\nlast",
        b"mixed\r\nendings\n",
        b"lf\ncrlf\r\nunterminated",
        b"\xff\xfe\xfa bad\nok \xe9t\xe9\n",
        "unicode café @münchen\n".encode("utf-8"),
        b"",
    ])
    def test_round_trip(self, tmp_path, data):
        path = write_bytes(tmp_path / "todo.txt", data)

        save_tasks(path, load_tasks(path))

        assert path.read_bytes() == data

    def test_edit_keeps_other_lines(self, tmp_path):
        """Unmodified lines keep their exact bytes after a mutation elsewhere."""
        data = b"(A)  spaced   task\r\nBuy milk\r\n  indented\r\n"
        path = write_bytes(tmp_path / "todo.txt", data)

        tasks = load_tasks(path)
        TaskEditor(tasks).prioritize([2], "B")
        save_tasks(path, tasks)

        assert path.read_bytes() == b"(A)  spaced   task\r\n(B) Buy milk\r\n  indented\r\n"

    def test_mixed_endings_survive_edits(self, tmp_path):
        """Edited lines keep their terminator; new lines use the first one."""
        path = write_bytes(tmp_path / "todo.txt", b"one\r\ntwo\nthree\r\n")

        tasks = load_tasks(path)
        editor = TaskEditor(tasks)
        editor.prioritize([2], "A")
        editor.add("four")
        save_tasks(path, tasks)

        assert path.read_bytes() == b"one\r\n(A) two\nthree\r\nfour\r\n"

    def test_blanked_and_rewritten_lines_keep_terminator(self, tmp_path):
        path = write_bytes(tmp_path / "todo.txt", b"a +x\nb\r\nc\n")

        tasks = load_tasks(path)
        editor = TaskEditor(tasks)
        editor.delete([2], preserve_line_numbers=True)
        editor.remove_term(1, r" \+x")
        save_tasks(path, tasks)

        assert path.read_bytes() == b"a\n\r\nc\n"

    def test_undecodable_bytes_survive_edits(self, tmp_path):
        """Bytes that are not UTF-8 are written back as they were read."""
        path = write_bytes(tmp_path / "todo.txt", b"caf\xe9 \xff\nnext\n")

        tasks = load_tasks(path)
        TaskEditor(tasks).prioritize([1], "B")
        save_tasks(path, tasks)

        assert path.read_bytes() == b"(B) caf\xe9 \xff\nnext\n"


class TestLoad:
    """Reading files."""

    def test_missing_file_is_empty(self, tmp_path):
        tasks = load_tasks(tmp_path / "absent.txt")

        assert len(tasks) == 0

    def test_line_numbers_and_conventions(self):
        tasks = parse_text("a\r\nb")

        assert tasks.numbers() == [1, 2]
        assert tasks.newline == "\r\n"
        assert tasks.trailing_newline is False

    def test_anomalies_are_collected_and_logged(self, tmp_path, caplog):
        path = write_bytes(tmp_path / "todo.txt", b"ok\n(a) lowercase\n")

        with caplog.at_level("WARNING", logger="todotxt_cli.storage"):
            tasks = load_tasks(path)

        assert len(tasks) == 2
        assert [a.line_number for a in tasks.anomalies] == [2]
        assert "Invalid priority" in caplog.text

    def test_each_line_records_its_terminator(self):
        tasks = parse_text("a\r\nb\nc")

        assert [t.newline for t in tasks] == ["\r\n", "\n", None]
        assert tasks.newline == "\r\n"

    def test_undecodable_file_loads(self, tmp_path):
        path = write_bytes(tmp_path / "todo.txt", b"\xff\xfe\xfa bad +p\n")

        tasks = load_tasks(path)

        assert len(tasks) == 1
        assert tasks[0].projects == ("p",)

    def test_unreadable_path(self, tmp_path):
        path = tmp_path / "todo.txt"
        path.mkdir()

        with pytest.raises(StorageError) as exc_info:
            load_tasks(path)
        assert exc_info.value.path == path


class TestAtomicSave:
    """A failed save leaves the original file alone."""

    def test_failed_replace_leaves_file_untouched(self, tmp_path):
        path = write_bytes(tmp_path / "todo.txt", SAMPLE_TODO.encode("utf-8"))
        tasks = load_tasks(path)
        TaskEditor(tasks).delete([1, 2, 3])

        with patch("todotxt_cli.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError):
                save_tasks(path, tasks)

        assert path.read_text(encoding="utf-8") == SAMPLE_TODO
        assert sorted(os.listdir(tmp_path)) == ["todo.txt"]

    def test_failed_write_removes_temp_file(self, tmp_path):
        path = tmp_path / "todo.txt"

        with patch("todotxt_cli.storage.os.fsync", side_effect=OSError("io error")):
            with pytest.raises(StorageError):
                save_tasks(path, parse_text("a\n"))

        assert os.listdir(tmp_path) == []

    def test_save_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "todo.txt"

        save_tasks(path, parse_text("a\nb\n"))

        assert path.read_text(encoding="utf-8") == "a\nb\n"

    def test_save_empty_list(self, tmp_path):
        path = write_bytes(tmp_path / "todo.txt", b"a\n")

        save_tasks(path, TaskList())

        assert path.read_bytes() == b""


class TestRepository:
    """TodoRepository binds the todo, done and report files."""

    def test_archive_moves_completed_tasks(self, config):
        repository = TodoRepository(config)
        done, moved = repository.archive(repository.load())

        assert [t.description for t in moved] == ["Pay rent +home"]
        assert "Pay rent" not in repository.todo_path.read_text(encoding="utf-8")
        assert repository.done_path.read_text(encoding="utf-8") == (
            "x 2024-03-01 2024-02-20 Pay rent +home\n")
        assert len(repository.load()) == 4

    def test_archive_writes_done_file_first(self, config):
        """If the todo save fails the archived tasks are already in done.txt."""
        repository = TodoRepository(config)
        tasks = repository.load()

        with patch.object(TodoRepository, "save", side_effect=StorageError("boom")):
            with pytest.raises(StorageError):
                repository.archive(tasks)

        assert "Pay rent" in repository.done_path.read_text(encoding="utf-8")
        assert "Pay rent" in repository.todo_path.read_text(encoding="utf-8")

    def test_report(self, config):
        repository = TodoRepository(config)

        line = repository.report()

        stamp, pending, done = line.split(" ")
        assert (pending, done) == ("4", "1")
        assert len(stamp) == len("2024-03-15T10:00:00")
        assert repository.report_path.read_text(encoding="utf-8") == line + "\n"

    def test_report_appends(self, config):
        repository = TodoRepository(config)
        repository.report()
        repository.report()

        assert len(repository.report_path.read_text(encoding="utf-8").splitlines()) == 2
