"""Tests for the todo.txt line parser."""

from datetime import date

import pytest

from todotxt_cli.parser import TodoTxtParser, parse_task, parse_task_with_anomalies


class TestPrefixParsing:
    """The structural prefix is read in a fixed order."""

    def setup_method(self):
        self.parser = TodoTxtParser()

    def test_full_completed_line(self):
        """Marker, completion date, priority and creation date."""
        task, anomalies = self.parser.parse("x 2024-03-02 (A) 2024-03-01 Done thing +p @c", 4)

        assert anomalies == []
        assert task.completed
        assert task.completion_date == date(2024, 3, 2)
        assert task.priority == "A"
        assert task.creation_date == date(2024, 3, 1)
        assert task.description == "Done thing +p @c"
        assert task.line_number == 4

    def test_pending_with_priority_and_date(self):
        task = parse_task("(B) 2024-01-10 Review PR")

        assert not task.completed
        assert task.priority == "B"
        assert task.creation_date == date(2024, 1, 10)
        assert task.description == "Review PR"

    def test_completed_without_dates(self):
        task = parse_task("x Take out trash")

        assert task.completed
        assert task.completion_date is None
        assert task.description == "Take out trash"

    def test_single_date_on_completed_task_is_completion(self):
        """The first date after x is the completion date."""
        task = parse_task("x 2024-03-02 Something")

        assert task.completion_date == date(2024, 3, 2)
        assert task.creation_date is None

    def test_uppercase_x_is_text(self):
        """Only a lowercase x marks completion."""
        task = parse_task("X marks the spot")

        assert not task.completed
        assert task.description == "X marks the spot"

    def test_x_without_space_is_text(self):
        task = parse_task("xylophone lessons")

        assert not task.completed

    def test_priority_must_lead(self):
        """A priority later in the line is just text."""
        task = parse_task("Call (A) mom")

        assert task.priority is None
        assert task.description == "Call (A) mom"

    def test_blank_line(self):
        task, anomalies = parse_task_with_anomalies("")

        assert task.is_blank
        assert task.description == ""
        assert anomalies == []


class TestMalformedLines:
    """Malformed tokens stay in the text and are reported, never raised."""

    def test_lowercase_priority(self):
        task, anomalies = parse_task_with_anomalies("(a) Lowercase priority", 2)

        assert task.priority is None
        assert task.description == "(a) Lowercase priority"
        assert len(anomalies) == 1
        assert anomalies[0].token == "(a)"
        assert anomalies[0].line_number == 2
        assert anomalies[0].severity == "warning"

    def test_impossible_creation_date(self):
        task, anomalies = parse_task_with_anomalies("2023-02-30 Not a date")

        assert task.creation_date is None
        assert task.description == "2023-02-30 Not a date"
        assert [a.token for a in anomalies] == ["2023-02-30"]

    def test_impossible_completion_date(self):
        """One anomaly; the rest of the line is left as description."""
        task, anomalies = parse_task_with_anomalies("x 2023-13-01 (A) Bad month")

        assert task.completed
        assert task.completion_date is None
        assert task.priority is None
        assert task.description == "2023-13-01 (A) Bad month"
        assert len(anomalies) == 1

    @pytest.mark.parametrize("line", [
        "(a) Lowercase priority",
        "x 2023-02-30 bad",
        "(A) 2024-99-99 Bad",
        "   leading spaces",
        "trailing spaces   ",
        "x",
        "()",
    ])
    def test_malformed_lines_round_trip(self, line):
        """Whatever the anomalies, the raw line is preserved."""
        task, _ = parse_task_with_anomalies(line)

        assert task.to_line() == line
