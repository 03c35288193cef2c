"""Parser turning raw todo.txt lines into Task records.

Parsing is total: any string produces a Task. Structural tokens that look
intended but are malformed (a lowercase priority, an impossible date) are
left in the description and reported as ``ParseAnomaly`` values next to the
parsed record instead of being raised.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .task import Task
from .utils.dates import parse_date


COMPLETED_RE = re.compile(r"^x\s+")
PRIORITY_RE = re.compile(r"^\(([A-Z])\)(?:\s+|$)")
# Anything shaped like "(x)" at the start that is not a valid priority
BAD_PRIORITY_RE = re.compile(r"^(\([^)\s]\))(?:\s+|$)")
DATE_TOKEN_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:\s+|$)")


@dataclass
class ParseAnomaly:
    """A structural token that could not be interpreted."""
    message: str
    line_number: int = 0
    token: Optional[str] = None
    severity: str = "warning"  # warning, info


class TodoTxtParser:
    """Parses single todo.txt lines."""

    def parse(self, line: str, line_number: int = 0) -> Tuple[Task, List[ParseAnomaly]]:
        """Parse one line (without its line terminator).

        Returns:
            The parsed Task and the anomalies met while parsing.
        """
        anomalies: List[ParseAnomaly] = []
        remaining = line
        completed = False
        completion_date = None
        priority = None
        creation_date = None

        match = COMPLETED_RE.match(remaining)
        if match:
            completed = True
            remaining = remaining[match.end():]
            completion_date, remaining = self._take_date(
                remaining, line_number, "completion", anomalies)

        # Prefix parsing stops at the first malformed token
        if not anomalies:
            match = PRIORITY_RE.match(remaining)
            if match:
                priority = match.group(1)
                remaining = remaining[match.end():]
            else:
                bad = BAD_PRIORITY_RE.match(remaining)
                if bad:
                    anomalies.append(ParseAnomaly(
                        f"Invalid priority {bad.group(1)}; expected (A)-(Z), kept as text",
                        line_number=line_number,
                        token=bad.group(1),
                    ))

        if not anomalies:
            creation_date, remaining = self._take_date(
                remaining, line_number, "creation", anomalies)

        task = Task(
            description=remaining,
            completed=completed,
            priority=priority,
            creation_date=creation_date,
            completion_date=completion_date,
            line_number=line_number,
            raw=line,
        )
        return task, anomalies

    def _take_date(self, text: str, line_number: int, kind: str,
                   anomalies: List[ParseAnomaly]):
        match = DATE_TOKEN_RE.match(text)
        if not match:
            return None, text
        token = match.group(1)
        value = parse_date(token)
        if value is None:
            anomalies.append(ParseAnomaly(
                f"Invalid {kind} date {token}, kept as text",
                line_number=line_number,
                token=token,
            ))
            return None, text
        return value, text[match.end():]


_default_parser = TodoTxtParser()


def parse_task(line: str, line_number: int = 0) -> Task:
    """Parse a line into a Task, discarding anomalies."""
    task, _ = _default_parser.parse(line, line_number)
    return task


def parse_task_with_anomalies(line: str, line_number: int = 0) -> Tuple[Task, List[ParseAnomaly]]:
    """Parse a line into a Task and the list of anomalies found."""
    return _default_parser.parse(line, line_number)
