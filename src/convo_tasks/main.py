"""CLI entrypoint for convo-tasks."""

from pathlib import Path

import rich_click as click

from convo_tasks import __version__
from convo_tasks.controllers import GroupInspectCommand, GroupRunCommand, TaskGroupCliController
from convo_tasks.tasks.scripted import ScriptError

click.rich_click.USE_MARKDOWN = True
GROUP_CONTROLLER = TaskGroupCliController()


@click.group()
@click.version_option(version=__version__, prog_name="convo-tasks")
def convo_tasks() -> None:
    """Conversational task group runner."""


@convo_tasks.command("run")
@click.argument(
    "script_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--summarize/--no-summarize",
    "summarize_history",
    default=None,
    help="Compress the conversation after the run. Overrides the script and env.",
)
@click.option(
    "--collect-failures/--fail-fast",
    "collect_failures",
    default=None,
    help="Store task errors as results instead of aborting the run.",
)
@click.option(
    "--summarizer-command",
    default=None,
    help=(
        "Run template for the summarizer CLI. Supports {prompt}, {prompt_file} and {model}. "
        "If omitted, CONVO_TASKS_SUMMARIZER_COMMAND is used."
    ),
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. If omitted, CONVO_TASKS_LOG_LEVEL is used.",
)
@click.option("--show-history", is_flag=True, help="Print the final group history.")
def run_group(  # noqa: PLR0913
    script_path: Path,
    summarize_history: bool | None,
    collect_failures: bool | None,
    summarizer_command: str | None,
    log_level: str | None,
    show_history: bool,
) -> None:
    """Run a scripted task group and print the results."""

    try:
        result = GROUP_CONTROLLER.run(
            GroupRunCommand(
                script_path=script_path,
                summarize_history=summarize_history,
                collect_failures=collect_failures,
                summarizer_command=summarizer_command,
                log_level=log_level,
                show_history=show_history,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Task group run failed.")


@convo_tasks.command("inspect")
@click.argument(
    "script_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def inspect_script(script_path: Path) -> None:
    """Show the tasks and scripted turns declared by a script."""

    try:
        lines = GROUP_CONTROLLER.inspect(GroupInspectCommand(script_path=script_path))
    except ScriptError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    convo_tasks()
