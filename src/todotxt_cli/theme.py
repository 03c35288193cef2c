"""Terminal rendering for todotxt-cli using rich.

Tasks are printed todo.sh style: a zero-padded task number followed by the
line, coloured by priority, with projects and contexts highlighted.
"""

import logging
import re
from typing import Dict, Iterable, Optional, TextIO

from rich.console import Console
from rich.errors import StyleSyntaxError
from rich.style import Style
from rich.text import Text
from rich.theme import Theme

from .config import ConfigModel
from .task import Task

logger = logging.getLogger(__name__)

# 256-colour defaults
DEFAULT_STYLES: Dict[str, str] = {
    "pri_a": "color(198)",
    "pri_b": "color(2)",
    "pri_c": "color(4)",
    "pri_d": "color(37)",
    "pri_x": "color(179)",
    "project": "color(154)",
    "context": "color(215)",
    "done": "color(246)",
    "line_number": "dim",
    "footer": "dim",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
}

TAG_RE = re.compile(r"(?<!\S)([+@])\S+")


def build_theme(overrides: Optional[Dict[str, str]] = None) -> Theme:
    """Default styles merged with user overrides; invalid overrides are skipped."""
    styles = dict(DEFAULT_STYLES)
    for name, definition in (overrides or {}).items():
        try:
            Style.parse(str(definition))
        except StyleSyntaxError as e:
            logger.warning("Ignoring invalid style %r for %s: %s", definition, name, e)
            continue
        styles[name.lower()] = str(definition)
    return Theme(styles)


def get_console(config: Optional[ConfigModel] = None, plain: bool = False,
                file: Optional[TextIO] = None) -> Console:
    """Console with the configured theme; ``plain`` turns colour off."""
    config = config or ConfigModel()
    no_color = plain or config.no_color
    return Console(
        theme=build_theme(config.styles),
        highlight=False,
        soft_wrap=True,
        no_color=no_color,
        color_system=None if no_color else "auto",
        file=file,
    )


def priority_style(task: Task) -> Optional[str]:
    if task.completed:
        return "done"
    if task.priority is None:
        return None
    if task.priority in "ABCD":
        return f"pri_{task.priority.lower()}"
    return "pri_x"


def printable(line: str) -> str:
    """``line`` with bytes that were not valid UTF-8 shown as U+FFFD."""
    return line.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def display_line(task: Task, hide_context: bool = False, hide_project: bool = False,
                 hide_priority: bool = False) -> str:
    """The task line with hidden parts removed. Display only."""
    line = printable(task.to_line())
    if hide_priority and task.priority:
        line = line.replace(f"({task.priority}) ", "", 1)
    if hide_context or hide_project:
        words = []
        for word in line.split(" "):
            if hide_context and word.startswith("@") and len(word) > 1:
                continue
            if hide_project and word.startswith("+") and len(word) > 1:
                continue
            words.append(word)
        line = " ".join(words).rstrip()
    return line


def render_task(task: Task, width: int = 1, config: Optional[ConfigModel] = None) -> Text:
    """A numbered, styled line for one task."""
    config = config or ConfigModel()
    line = display_line(task, config.hide_context, config.hide_project, config.hide_priority)

    text = Text(f"{task.line_number:0{width}d} ", style="line_number")
    body = Text(line, style=priority_style(task) or "")
    if not task.completed:
        for match in TAG_RE.finditer(line):
            tag_style = "project" if match.group(1) == "+" else "context"
            body.stylize(tag_style, match.start(), match.end())
    text.append_text(body)
    return text


def number_width(total: int) -> int:
    return len(str(max(total, 1)))


def print_tasks(console: Console, tasks: Iterable[Task], total: int,
                config: Optional[ConfigModel] = None) -> int:
    """Print tasks; returns how many were printed."""
    width = number_width(total)
    count = 0
    for task in tasks:
        console.print(render_task(task, width, config))
        count += 1
    return count


def print_footer(console: Console, label: str, shown: int, total: int) -> None:
    console.print(Text(f"{label}: {shown} of {total} tasks shown", style="footer"))
