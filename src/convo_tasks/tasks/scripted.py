"""Scripted actor: replays canned conversation turns against tasks.

Scripts are keyed by task id. Each turn may add a user message, call one tool
and add an assistant reply. Turns are consumed in order across every
instantiation of a task id, so a task that is re-run after a regression picks
up where the script left off.

Script file format (JSON)::

    {
      "summarize_history": false,
      "collect_failures": false,
      "history": [{"role": "system", "content": "You are an onboarding assistant."}],
      "tasks": [
        {
          "id": "name_task",
          "description": "Collect the user name",
          "turns": [
            {"user": "My name is Alice.", "call": "record", "args": {"value": "Alice"}}
          ]
        }
      ]
    }
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from convo_tasks.chat.history import ChatHistory, FunctionCall, FunctionCallOutput
from convo_tasks.group.errors import TaskFailedError
from convo_tasks.group.task_group import TaskGroup
from convo_tasks.tasks.agent_task import AgentTask
from convo_tasks.tasks.tools import FunctionTool, ToolError

logger = logging.getLogger(__name__)

_TURN_KEYS = frozenset({"user", "call", "args", "reply"})


class ScriptError(ValueError):
    """Malformed script file."""


class ScriptExhaustedError(TaskFailedError):
    """A task ran out of scripted turns before completing."""


@dataclass(slots=True)
class ScriptTurn:
    """One actor turn."""

    user: str = ""
    call: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
    reply: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ScriptTurn:
        unknown = set(payload) - _TURN_KEYS
        if unknown:
            raise ScriptError(f"Unknown turn keys: {', '.join(sorted(unknown))}")
        args = payload.get("args", {})
        if not isinstance(args, dict):
            raise ScriptError(f"Turn args must be an object, got {type(args).__name__}")
        return cls(
            user=str(payload.get("user", "")),
            call=payload.get("call"),
            args=args,
            reply=str(payload.get("reply", "")),
        )


@dataclass(slots=True)
class TaskScript:
    """Registration data and turns for one task id."""

    task_id: str
    description: str
    instructions: str = ""
    turns: list[ScriptTurn] = field(default_factory=list)


@dataclass(slots=True)
class GroupScript:
    """Whole scripted workflow."""

    tasks: list[TaskScript]
    history: list[dict[str, str]] = field(default_factory=list)
    summarize_history: bool | None = None
    collect_failures: bool | None = None

    def initial_history(self) -> ChatHistory:
        history = ChatHistory()
        for entry in self.history:
            history.add_message(role=entry["role"], content=entry["content"])
        return history


def load_script(path: Path) -> GroupScript:
    """Parse a JSON script file."""

    try:
        text = path.read_text("utf-8")
    except UnicodeDecodeError as error:
        raise ScriptError(f"Script is not valid UTF-8: {path}: {error}") from error
    except OSError as error:
        raise ScriptError(f"Unable to read script {path}: {error}") from error
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as error:
        raise ScriptError(f"Invalid JSON in {path}: {error}") from error
    if not isinstance(raw, dict):
        raise ScriptError("Script root must be a JSON object")

    tasks_raw = raw.get("tasks")
    if not isinstance(tasks_raw, list) or not tasks_raw:
        raise ScriptError("Script must declare a non-empty 'tasks' list")

    tasks: list[TaskScript] = []
    for entry in tasks_raw:
        if not isinstance(entry, dict) or "id" not in entry:
            raise ScriptError("Every task entry needs an 'id'")
        tasks.append(
            TaskScript(
                task_id=str(entry["id"]),
                description=str(entry.get("description", entry["id"])),
                instructions=str(entry.get("instructions", "")),
                turns=[ScriptTurn.from_dict(turn) for turn in entry.get("turns", [])],
            ),
        )

    history = raw.get("history", [])
    for message in history:
        if not isinstance(message, dict) or {"role", "content"} - set(message):
            raise ScriptError("History entries need 'role' and 'content'")

    return GroupScript(
        tasks=tasks,
        history=history,
        summarize_history=raw.get("summarize_history"),
        collect_failures=raw.get("collect_failures"),
    )


class ScriptedActor:
    """Feeds scripted turns to tasks and records what happened."""

    def __init__(self, turns_by_task: dict[str, list[ScriptTurn]]) -> None:
        self._turns = {task_id: deque(turns) for task_id, turns in turns_by_task.items()}
        self.entries: list[str] = []
        self.tool_errors: list[tuple[str, str]] = []

    @classmethod
    def from_script(cls, script: GroupScript) -> ScriptedActor:
        turns: dict[str, list[ScriptTurn]] = {}
        for task in script.tasks:
            turns.setdefault(task.task_id, []).extend(task.turns)
        return cls(turns)

    def next_turn(self, task_id: str) -> ScriptTurn | None:
        pending = self._turns.get(task_id)
        if not pending:
            return None
        return pending.popleft()

    def remaining(self, task_id: str) -> int:
        return len(self._turns.get(task_id, ()))


class ScriptedTask(AgentTask[Any]):
    """Task driven by a ``ScriptedActor``; completes through ``record`` or ``fail``."""

    def __init__(self, *, task_id: str, actor: ScriptedActor, instructions: str = "") -> None:
        super().__init__(
            instructions=instructions,
            tools=[
                FunctionTool(
                    name="record",
                    description="Record the collected value and finish the task.",
                    handler=self._record,
                    parameters={
                        "type": "object",
                        "properties": {"value": {"description": "Collected value"}},
                        "required": ["value"],
                    },
                ),
                FunctionTool(
                    name="fail",
                    description="Give up on the task with an error message.",
                    handler=self._fail,
                    parameters={
                        "type": "object",
                        "properties": {"message": {"type": "string"}},
                        "required": ["message"],
                    },
                ),
            ],
        )
        self.task_id = task_id
        self._actor = actor

    async def on_enter(self) -> None:
        self._actor.entries.append(self.task_id)
        while not self.done:
            turn = self._actor.next_turn(self.task_id)
            if turn is None:
                self.complete(
                    ScriptExhaustedError(f"No scripted turns left for task {self.task_id}"),
                )
                return
            await self._play(turn)

    async def _play(self, turn: ScriptTurn) -> None:
        if turn.user:
            self.history.add_message(role="user", content=turn.user)
        if turn.call:
            call_id = f"call_{uuid4().hex[:8]}"
            self.history.insert(FunctionCall(call_id=call_id, name=turn.call, arguments=turn.args))
            try:
                output = await self.call_tool(turn.call, turn.args)
                is_error = False
            except ToolError as error:
                logger.info(
                    "Tool call rejected: task_id=%s tool=%s error=%s",
                    self.task_id,
                    turn.call,
                    error,
                )
                self._actor.tool_errors.append((self.task_id, str(error)))
                output = str(error)
                is_error = True
            self.history.insert(
                FunctionCallOutput(
                    call_id=call_id,
                    name=turn.call,
                    output=str(output),
                    is_error=is_error,
                ),
            )
        if turn.reply:
            self.history.add_message(role="assistant", content=turn.reply)

    async def _record(self, value: Any) -> str:
        self.complete(value)
        return "recorded"

    async def _fail(self, message: str) -> str:
        self.complete(TaskFailedError(message))
        return "failed"


def register_scripted_tasks(group: TaskGroup, script: GroupScript, actor: ScriptedActor) -> TaskGroup:
    """Register one ``ScriptedTask`` factory per scripted task."""

    for task_script in script.tasks:
        group.add(
            lambda task_script=task_script: ScriptedTask(
                task_id=task_script.task_id,
                actor=actor,
                instructions=task_script.instructions,
            ),
            task_id=task_script.task_id,
            description=task_script.description,
        )
    return group
