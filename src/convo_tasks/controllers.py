"""Controllers for task group CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from convo_tasks.chat.history import AgentHandoff, ChatMessage, FunctionCall, FunctionCallOutput
from convo_tasks.config import Settings
from convo_tasks.group.models import TaskCompletedEvent
from convo_tasks.group.task_group import TaskGroup
from convo_tasks.tasks.scripted import (
    GroupScript,
    ScriptedActor,
    load_script,
    register_scripted_tasks,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GroupRunCommand:
    """CLI input for a scripted group run."""

    script_path: Path
    summarize_history: bool | None = None
    collect_failures: bool | None = None
    summarizer_command: str | None = None
    log_level: str | None = None
    show_history: bool = False


@dataclass(slots=True)
class GroupInspectCommand:
    """CLI input for script inspection."""

    script_path: Path


@dataclass(slots=True)
class GroupRunResult:
    """Rendered outcome of a CLI group run."""

    success: bool
    lines: list[str]


class TaskGroupCliController:
    """CLI controller for scripted task group runs."""

    def run(self, command: GroupRunCommand) -> GroupRunResult:
        """Run a scripted group; flags override the script, the script overrides env."""

        script = load_script(command.script_path)
        settings = _resolve_settings(command, script)
        settings.validate()
        settings.configure_logging()

        actor = ScriptedActor.from_script(script)
        completed: list[str] = []

        async def _on_completed(event: TaskCompletedEvent) -> None:
            completed.append(event.task_id)

        group = TaskGroup.from_settings(
            settings,
            history=script.initial_history(),
            on_task_completed=_on_completed,
        )
        register_scripted_tasks(group, script, actor)

        lines = [
            f"Tasks: {', '.join(group.registry.keys())}",
            (
                f"Policy: summarize_history={settings.group.summarize_history} "
                f"collect_failures={settings.group.collect_failures}"
            ),
        ]
        try:
            result = asyncio.run(group.run())
        except Exception as error:  # noqa: BLE001
            logger.debug("Task group run failed", exc_info=True)
            lines.append(f"Execution order: {' -> '.join(actor.entries)}")
            lines.extend(_tool_error_lines(actor))
            lines.append(f"Group failed: {type(error).__name__}: {error}")
            return GroupRunResult(success=False, lines=lines)

        lines.append(f"Execution order: {' -> '.join(actor.entries)}")
        lines.append(f"Completed order: {' -> '.join(completed)}")
        lines.extend(_tool_error_lines(actor))
        lines.append("Results:")
        lines.extend(
            f"  {task_id}: {_format_value(value)}" for task_id, value in result.task_results.items()
        )
        if command.show_history or settings.group.summarize_history:
            lines.append("History:")
            lines.extend(f"  {_format_item(item)}" for item in group.history)
        return GroupRunResult(success=True, lines=lines)

    def inspect(self, command: GroupInspectCommand) -> list[str]:
        """Describe the tasks and turns declared by a script."""

        script = load_script(command.script_path)
        lines = [f"Script: {command.script_path}"]
        for position, task in enumerate(script.tasks, start=1):
            lines.append(
                f"{position}. {task.task_id}: {task.description} (turns={len(task.turns)})",
            )
            lines.extend(
                f"     - {_format_turn(turn.user, turn.call, turn.args)}" for turn in task.turns
            )
        return lines


def _resolve_settings(command: GroupRunCommand, script: GroupScript) -> Settings:
    settings = Settings.from_env()
    group = settings.group
    if script.summarize_history is not None:
        group = replace(group, summarize_history=script.summarize_history)
    if script.collect_failures is not None:
        group = replace(group, collect_failures=script.collect_failures)
    if command.summarize_history is not None:
        group = replace(group, summarize_history=command.summarize_history)
    if command.collect_failures is not None:
        group = replace(group, collect_failures=command.collect_failures)

    summarizer = settings.summarizer
    if command.summarizer_command:
        summarizer = replace(summarizer, command_template=command.summarizer_command)

    log_level = command.log_level.upper() if command.log_level else settings.log_level
    return replace(settings, group=group, summarizer=summarizer, log_level=log_level)


def _tool_error_lines(actor: ScriptedActor) -> list[str]:
    return [f"Rejected tool call in {task_id}: {message}" for task_id, message in actor.tool_errors]


def _format_value(value: Any) -> str:
    if isinstance(value, BaseException):
        return f"error {type(value).__name__}: {value}"
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return repr(value)


def _format_item(item: Any) -> str:
    if isinstance(item, ChatMessage):
        return f"[{item.role}] {item.content}"
    if isinstance(item, FunctionCall):
        return f"[call] {item.name}({json.dumps(item.arguments, ensure_ascii=False)})"
    if isinstance(item, FunctionCallOutput):
        marker = "error" if item.is_error else "output"
        return f"[{marker}] {item.name}: {item.output}"
    if isinstance(item, AgentHandoff):
        return f"[handoff] {item.old_task_id or '-'} -> {item.new_task_id}"
    return repr(item)


def _format_turn(user: str, call: str | None, args: dict[str, Any]) -> str:
    parts = []
    if user:
        parts.append(f"user={user!r}")
    if call:
        parts.append(f"call={call}({json.dumps(args, ensure_ascii=False)})")
    return " ".join(parts) or "(empty turn)"
