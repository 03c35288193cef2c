"""Tests for task rendering."""

import io

from todotxt_cli.config import ConfigModel
from todotxt_cli.parser import parse_task
from todotxt_cli.theme import (
    build_theme,
    display_line,
    get_console,
    number_width,
    print_footer,
    print_tasks,
    printable,
    priority_style,
    render_task,
)


class TestRendering:
    """Styled task lines."""

    def test_number_is_zero_padded(self):
        task = parse_task("(A) Call mom", 7)

        assert render_task(task, width=3).plain == "007 (A) Call mom"

    def test_priority_styles(self):
        assert priority_style(parse_task("(A) a")) == "pri_a"
        assert priority_style(parse_task("(D) d")) == "pri_d"
        assert priority_style(parse_task("(Q) q")) == "pri_x"
        assert priority_style(parse_task("x (A) done")) == "done"
        assert priority_style(parse_task("plain")) is None

    def test_hide_options_affect_display_only(self):
        task = parse_task("(B) Review +work @computer")
        config = ConfigModel(hide_context=True, hide_project=True, hide_priority=True)

        assert render_task(task, 1, config).plain == "0 Review"
        assert task.to_line() == "(B) Review +work @computer"

    def test_display_line_keeps_plain_words(self):
        task = parse_task("Pay a + b @ c")

        assert display_line(task, hide_context=True, hide_project=True) == "Pay a + b @ c"

    def test_number_width(self):
        assert number_width(0) == 1
        assert number_width(9) == 1
        assert number_width(120) == 3

    def test_invalid_style_override_is_skipped(self, caplog):
        with caplog.at_level("WARNING", logger="todotxt_cli.theme"):
            theme = build_theme({"pri_a": "nonsense_colour", "project": "bold blue"})

        assert str(theme.styles["pri_a"]) == "color(198)"
        assert str(theme.styles["project"]) == "bold blue"
        assert "pri_a" in caplog.text

    def test_plain_console_output(self):
        buffer = io.StringIO()
        console = get_console(ConfigModel(), plain=True, file=buffer)
        tasks = [parse_task("(A) one +p", 1), parse_task("two @c", 2)]

        print_tasks(console, tasks, total=2)
        print_footer(console, "TODO", 2, 2)

        assert buffer.getvalue() == "1 (A) one +p\n2 two @c\nTODO: 2 of 2 tasks shown\n"

    def test_undecodable_bytes_are_replaced_for_display(self):
        task = parse_task("caf\udce9 +p")

        assert display_line(task) == "caf� +p"
        assert printable("plain") == "plain"
        assert task.to_line() == "caf\udce9 +p"
