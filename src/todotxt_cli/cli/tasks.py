"""Command-line interface for todotxt-cli."""

import functools
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import click
from rich.console import Console
from rich.text import Text

from .. import __version__
from ..collection import TaskList
from ..config import CONFIG_ENV_VAR, ConfigModel, load_config
from ..errors import ConfigError, InvalidInput, ResultStatus, StorageError
from ..mutations import OperationResult, TaskEditor
from ..query_engine import QueryEngine, TaskFilter, parse_sort_keys
from ..storage import TodoRepository
from ..theme import (
    display_line,
    get_console,
    number_width,
    print_footer,
    print_tasks,
    printable,
    render_task,
)

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_STORAGE = 2

# listpri priority argument: A, A-C or A,B,D
PRIORITY_SPEC_RE = re.compile(r"^[A-Za-z](?:-[A-Za-z]|(?:,[A-Za-z])*)$")

ALIASES = {
    "a": "add",
    "app": "append",
    "prep": "prepend",
    "rm": "del",
    "p": "pri",
    "dp": "depri",
    "ls": "list",
    "lsa": "listall",
    "lsp": "listpri",
    "lsprj": "listproj",
    "lsc": "listcon",
}


class AliasedGroup(click.Group):
    """Click group resolving the short todo.sh command aliases."""

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, ALIASES.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name, cmd, args


@dataclass
class AppContext:
    """Per-invocation state shared by the commands."""
    config: ConfigModel
    console: Console
    err_console: Console

    @property
    def repository(self) -> TodoRepository:
        return TodoRepository(self.config)

    def editor(self, tasks: TaskList) -> TaskEditor:
        return TaskEditor(tasks, today=self.config.today)


def setup_logging(verbosity: int, quiet: bool) -> None:
    """Configure the root logger from -v/-q flags."""
    if quiet:
        level = logging.ERROR
    elif verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def handle_errors(func):
    """Turn todotxt-cli errors into messages and exit codes."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        app: AppContext = click.get_current_context().obj
        try:
            return func(*args, **kwargs)
        except StorageError as e:
            app.err_console.print(Text(f"TODO: {e}", style="error"))
            sys.exit(EXIT_STORAGE)
        except (InvalidInput, ConfigError) as e:
            app.err_console.print(Text(f"TODO: {e}", style="error"))
            sys.exit(EXIT_FAILURE)
    return wrapper


def report_results(app: AppContext, results: Sequence[OperationResult], width: int) -> bool:
    """Print one status block per result; returns True if all succeeded."""
    all_ok = True
    for result in results:
        if result.task is not None:
            app.console.print(render_task(result.task, width, app.config))
        if result.ok:
            app.console.print(f"TODO: {result.message}")
        else:
            all_ok = False
            app.err_console.print(Text(f"TODO: {result.message}", style="error"))
    return all_ok


def finish(app: AppContext, tasks: TaskList, results: Sequence[OperationResult]) -> None:
    """Save if anything changed, then print results and set the exit code."""
    width = number_width(len(tasks))
    if any(r.status is ResultStatus.OK for r in results):
        app.repository.save(tasks)
    if not report_results(app, results, width):
        sys.exit(EXIT_FAILURE)


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              envvar=CONFIG_ENV_VAR, help="Path to YAML config file")
@click.option("--todo-file", type=click.Path(dir_okay=False), help="Override the todo.txt path")
@click.option("--done-file", type=click.Path(dir_okay=False), help="Override the done.txt path")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v, -vv)")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
@click.option("--plain", "-p", is_flag=True, help="Turn off colors")
@click.option("--date-on-add/--no-date-on-add", "-t/-T", default=None,
              help="Prepend the current date to new tasks")
@click.option("--preserve-line-numbers/--remove-blank-lines", "-N/-n", default=None,
              help="Leave deleted tasks as blank lines so numbers stay stable")
@click.option("--hide-context/--show-context", "-@", default=None,
              help="Hide task contexts from output")
@click.option("--hide-project/--show-project", "-+", default=None,
              help="Hide task projects from output")
@click.option("--hide-priority/--show-priority", "-P", default=None,
              help="Hide task priorities from output")
@click.version_option(__version__, prog_name="todotxt")
@click.pass_context
def cli(ctx, config_path, todo_file, done_file, verbose, quiet, plain,
        date_on_add, preserve_line_numbers, hide_context, hide_project, hide_priority):
    """todotxt - manage a todo.txt task list."""
    setup_logging(verbose, quiet)

    err_console = Console(stderr=True, highlight=False, soft_wrap=True, no_color=plain)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        err_console.print(f"Configuration error: {e}", markup=False)
        sys.exit(EXIT_FAILURE)

    if todo_file:
        config.todo_file = todo_file
    if done_file:
        config.done_file = done_file
    if date_on_add is not None:
        config.date_on_add = date_on_add
    if preserve_line_numbers is not None:
        config.preserve_line_numbers = preserve_line_numbers
    if hide_context is not None:
        config.hide_context = hide_context
    if hide_project is not None:
        config.hide_project = hide_project
    if hide_priority is not None:
        config.hide_priority = hide_priority

    ctx.obj = AppContext(config=config, console=get_console(config, plain),
                         err_console=err_console)
    logger.debug("Todo file: %s", config.todo_file)
    logger.debug("Done file: %s", config.done_file)

    if ctx.invoked_subcommand is None:
        action = ALIASES.get(config.default_action, config.default_action)
        command = cli.get_command(ctx, action)
        if command is None:
            err_console.print(f"Unknown default action: {config.default_action}", markup=False)
            sys.exit(EXIT_FAILURE)
        logger.info("No command supplied; running %s", action)
        ctx.invoke(command)


@cli.command()
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
@handle_errors
def add(app: AppContext, text):
    """Add a line to your todo.txt file.

    \b
    Examples:
      todotxt add "(A) Call mom +family @phone"
      todotxt add Review PR +work due:2024-05-01
    """
    tasks = app.repository.load()
    result = app.editor(tasks).add(" ".join(text), date_on_add=app.config.date_on_add)
    finish(app, tasks, [result])


@cli.command()
@click.argument("text", required=True)
@click.pass_obj
@handle_errors
def addm(app: AppContext, text):
    """Add multiple lines (newline separated) to todo.txt."""
    tasks = app.repository.load()
    results = app.editor(tasks).add_many(text.splitlines(), date_on_add=app.config.date_on_add)
    finish(app, tasks, results)


@cli.command()
@click.argument("item", type=int)
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
@handle_errors
def append(app: AppContext, item, text):
    """Add TEXT to the end of task ITEM."""
    tasks = app.repository.load()
    finish(app, tasks, [app.editor(tasks).append(item, " ".join(text))])


@cli.command()
@click.argument("item", type=int)
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
@handle_errors
def prepend(app: AppContext, item, text):
    """Add TEXT to the beginning of task ITEM."""
    tasks = app.repository.load()
    finish(app, tasks, [app.editor(tasks).prepend(item, " ".join(text))])


@cli.command()
@click.argument("item", type=int)
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
@handle_errors
def replace(app: AppContext, item, text):
    """Replace task ITEM with TEXT."""
    tasks = app.repository.load()
    finish(app, tasks, [app.editor(tasks).replace(item, " ".join(text))])


@cli.command("del")
@click.argument("items", type=int, nargs=-1, required=True)
@click.option("--term", help="Remove only this regular expression from the task")
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@handle_errors
def delete(app: AppContext, items, term, force):
    """Delete tasks by number, or remove TERM from a single task."""
    tasks = app.repository.load()
    editor = app.editor(tasks)

    if term is not None:
        if len(items) != 1:
            raise InvalidInput("--term works on exactly one task.")
        finish(app, tasks, [editor.remove_term(items[0], term)])
        return

    if not force:
        targets = [t for t in (tasks.get(n) for n in items) if t is not None and not t.is_blank]
        if targets:
            lines = "\n".join(display_line(t) for t in targets)
            if not click.confirm(f"Delete these tasks?\n{lines}\n"):
                app.console.print("TODO: No tasks were deleted.")
                return

    finish(app, tasks, editor.delete(items, preserve_line_numbers=app.config.preserve_line_numbers))


@cli.command("do")
@click.argument("items", type=int, nargs=-1, required=True)
@click.option("--strip-priority/--keep-priority", default=None,
              help="Remove the priority of completed tasks")
@click.pass_obj
@handle_errors
def do_command(app: AppContext, items, strip_priority):
    """Mark tasks ITEMS as done."""
    if strip_priority is None:
        strip_priority = app.config.strip_priority_on_complete
    tasks = app.repository.load()
    results = app.editor(tasks).complete(items, strip_priority=strip_priority)
    finish(app, tasks, results)
    if app.config.auto_archive and any(r.status is ResultStatus.OK for r in results):
        _, moved = app.repository.archive(app.repository.load())
        app.console.print(f"TODO: {len(moved)} tasks archived to {app.config.done_file}.", markup=False)


@cli.command()
@click.argument("items", type=int, nargs=-1, required=True)
@click.pass_obj
@handle_errors
def undo(app: AppContext, items):
    """Mark tasks ITEMS as not done."""
    tasks = app.repository.load()
    finish(app, tasks, app.editor(tasks).uncomplete(items))


@cli.command()
@click.argument("items", type=int, nargs=-1, required=True)
@click.argument("priority")
@click.pass_obj
@handle_errors
def pri(app: AppContext, items, priority):
    """Give tasks ITEMS the PRIORITY letter (A-Z)."""
    tasks = app.repository.load()
    finish(app, tasks, app.editor(tasks).prioritize(items, priority.upper()))


@cli.command()
@click.argument("items", type=int, nargs=-1, required=True)
@click.pass_obj
@handle_errors
def depri(app: AppContext, items):
    """Remove the priority from tasks ITEMS."""
    tasks = app.repository.load()
    finish(app, tasks, app.editor(tasks).deprioritize(items))


@cli.command()
@click.pass_obj
@handle_errors
def archive(app: AppContext):
    """Move done tasks from todo.txt to done.txt."""
    repository = app.repository
    _, moved = repository.archive(repository.load())
    for task in moved:
        app.console.print(render_task(task, number_width(len(moved)), app.config))
    app.console.print(f"TODO: {repository.todo_path} archived.", markup=False)


@cli.command()
@click.pass_obj
@handle_errors
def deduplicate(app: AppContext):
    """Remove duplicate lines from todo.txt."""
    tasks = app.repository.load()
    removed = app.editor(tasks).deduplicate(preserve_line_numbers=app.config.preserve_line_numbers)
    if removed:
        app.repository.save(tasks)
        app.console.print(f"TODO: {len(removed)} duplicate task(s) removed")
    else:
        app.console.print("TODO: No duplicate tasks found")


def _query_engine(app: AppContext, sort: Iterable[str]) -> QueryEngine:
    sort_keys = parse_sort_keys(sort) if sort else app.config.sort_keys()
    return QueryEngine(sort_keys=sort_keys, default_filter=app.config.default_filter(),
                       today=app.config.today)


def _list(app: AppContext, terms: Sequence[str], sort: Sequence[str],
          task_filter: Optional[TaskFilter] = None, include_done: bool = False) -> None:
    tasks = app.repository.load()
    engine = _query_engine(app, sort)
    total = len([t for t in tasks if not t.is_blank])
    shown = engine.search(tasks, terms, task_filter)

    done_shown: List = []
    done_total = 0
    if include_done:
        done = app.repository.load_done()
        for task in done:
            task.line_number = 0
        done_total = len([t for t in done if not t.is_blank])
        done_shown = engine.search(done, terms, task_filter)

    print_tasks(app.console, shown + done_shown, len(tasks), app.config)
    app.console.print("--")
    print_footer(app.console, "TODO", len(shown), total)
    if include_done:
        print_footer(app.console, "DONE", len(done_shown), done_total)
        print_footer(app.console, "total", len(shown) + len(done_shown), total + done_total)
    logger.debug("Listed %d of %d tasks", len(shown), total)


sort_option = click.option("--sort", "-s", multiple=True,
                           help="Sort key, e.g. priority, -created, due:desc (repeatable)")


@cli.command("list")
@click.argument("terms", nargs=-1)
@sort_option
@click.pass_obj
@handle_errors
def list_command(app: AppContext, terms, sort):
    """Display tasks matching all TERMS.

    \b
    Terms: +project @context -exclude pri:A pri:any is:done
           has:key key:value created:>2024-01-01 due:..today
    """
    _list(app, terms, sort)


@cli.command()
@click.argument("terms", nargs=-1)
@sort_option
@click.pass_obj
@handle_errors
def listall(app: AppContext, terms, sort):
    """Display tasks from both todo.txt and done.txt."""
    _list(app, terms, sort, include_done=True)


@cli.command()
@click.argument("terms", nargs=-1)
@sort_option
@click.pass_obj
@handle_errors
def listpri(app: AppContext, terms, sort):
    """Display prioritized tasks matching TERMS.

    A first term shaped like A, A-C or A,B restricts the priorities shown.
    """
    priorities = "any"
    if terms and PRIORITY_SPEC_RE.match(terms[0]):
        priorities, terms = terms[0], terms[1:]
    _list(app, (f"pri:{priorities}",) + tuple(terms), sort)


def _list_tags(app: AppContext, terms: Sequence[str], attribute: str, sigil: str) -> None:
    tasks = app.repository.load()
    engine = _query_engine(app, ())
    names = set()
    for task in engine.search(tasks, terms):
        names.update(getattr(task, attribute))
    for name in sorted(names, key=str.lower):
        app.console.print(printable(f"{sigil}{name}"), style="project" if sigil == "+" else "context",
                          markup=False)


@cli.command()
@click.argument("terms", nargs=-1)
@click.pass_obj
@handle_errors
def listproj(app: AppContext, terms):
    """List the projects used in todo.txt."""
    _list_tags(app, terms, "projects", "+")


@cli.command()
@click.argument("terms", nargs=-1)
@click.pass_obj
@handle_errors
def listcon(app: AppContext, terms):
    """List the contexts used in todo.txt."""
    _list_tags(app, terms, "contexts", "@")


@cli.command()
@click.pass_obj
@handle_errors
def report(app: AppContext):
    """Archive done tasks and append a pending/done count line to report.txt."""
    repository = app.repository
    tasks = repository.load()
    repository.archive(tasks)
    line = repository.report(tasks)
    app.console.print(line, markup=False)
    app.console.print("TODO: Report file updated.")


def main(args: Optional[List[str]] = None):
    """Entry point for the todotxt command."""
    return cli.main(args=args, prog_name="todotxt")


if __name__ == "__main__":
    main()
