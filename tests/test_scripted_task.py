from __future__ import annotations

import asyncio
import json
from pathlib import Path

import allure
import pytest

from convo_tasks.chat.history import FunctionCall, FunctionCallOutput
from convo_tasks.group import TaskFailedError, TaskGroup
from convo_tasks.tasks.scripted import (
    ScriptedActor,
    ScriptedTask,
    ScriptError,
    ScriptExhaustedError,
    ScriptTurn,
    load_script,
    register_scripted_tasks,
)

pytestmark = [
    allure.epic("Scripted Actor"),
    allure.feature("Script Loading & Replay"),
]

ONBOARDING_SCRIPT = Path(__file__).parents[1] / "examples" / "onboarding.json"


def _write_script(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "script.json"
    path.write_text(json.dumps(payload), "utf-8")
    return path


def test_load_script_parses_onboarding_example() -> None:
    script = load_script(ONBOARDING_SCRIPT)

    assert [task.task_id for task in script.tasks] == ["name_task", "email_task"]
    assert script.summarize_history is True
    assert script.collect_failures is False
    assert script.tasks[1].turns[0].call == "out_of_scope"
    assert script.tasks[1].turns[0].args == {"task_ids": ["name_task"]}
    history = script.initial_history()
    assert [(m.role, m.content) for m in history.messages()] == [
        ("system", "You are an onboarding assistant."),
    ]


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "Script root must be a JSON object"),
        ({"tasks": []}, "non-empty 'tasks' list"),
        ({"tasks": [{"description": "no id"}]}, "needs an 'id'"),
        ({"tasks": [{"id": "a", "turns": [{"say": "hi"}]}]}, "Unknown turn keys: say"),
        ({"tasks": [{"id": "a", "turns": [{"args": [1]}]}]}, "Turn args must be an object"),
        ({"tasks": [{"id": "a"}], "history": [{"role": "system"}]}, "'role' and 'content'"),
    ],
)
def test_load_script_rejects_malformed_scripts(
    tmp_path: Path,
    payload: object,
    message: str,
) -> None:
    with pytest.raises(ScriptError, match=message):
        load_script(_write_script(tmp_path, payload))


def test_load_script_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", "utf-8")

    with pytest.raises(ScriptError, match="Invalid JSON"):
        load_script(path)


def test_load_script_rejects_non_utf8_file(tmp_path: Path) -> None:
    path = tmp_path / "latin1.json"
    path.write_bytes(b"\xff\xfe{")

    with pytest.raises(ScriptError, match="not valid UTF-8"):
        load_script(path)


def test_scripted_task_records_calls_in_history() -> None:
    actor = ScriptedActor(
        {
            "a": [
                ScriptTurn(user="hello"),
                ScriptTurn(user="value is 5", call="record", args={"value": 5}, reply="done"),
            ],
        },
    )

    async def _run() -> tuple[ScriptedTask, int]:
        task = ScriptedTask(task_id="a", actor=actor)
        return task, await task.run()

    task, value = asyncio.run(_run())

    assert value == 5
    assert actor.entries == ["a"]
    assert actor.remaining("a") == 0
    assert [m.content for m in task.history.messages()] == ["hello", "value is 5", "done"]
    call = next(item for item in task.history if isinstance(item, FunctionCall))
    output = next(item for item in task.history if isinstance(item, FunctionCallOutput))
    assert call.arguments == {"value": 5}
    assert output.call_id == call.call_id
    assert output.output == "recorded"
    assert not output.is_error


def test_scripted_task_records_rejected_tool_calls() -> None:
    actor = ScriptedActor(
        {
            "a": [
                ScriptTurn(call="record", args={"wrong": 1}),
                ScriptTurn(call="record", args={"value": 1}),
            ],
        },
    )

    async def _run() -> ScriptedTask:
        task = ScriptedTask(task_id="a", actor=actor)
        await task.run()
        return task

    task = asyncio.run(_run())

    assert len(actor.tool_errors) == 1
    assert actor.tool_errors[0][0] == "a"
    assert actor.tool_errors[0][1].startswith("Invalid arguments for record")
    outputs = [item for item in task.history if isinstance(item, FunctionCallOutput)]
    assert [output.is_error for output in outputs] == [True, False]


def test_fail_tool_completes_task_with_error() -> None:
    actor = ScriptedActor({"a": [ScriptTurn(call="fail", args={"message": "user refused"})]})

    with pytest.raises(TaskFailedError, match="user refused"):
        asyncio.run(ScriptedTask(task_id="a", actor=actor).run())


def test_exhausted_script_fails_task() -> None:
    actor = ScriptedActor({"a": [ScriptTurn(user="no tool call")]})

    with pytest.raises(ScriptExhaustedError, match="No scripted turns left for task a"):
        asyncio.run(ScriptedTask(task_id="a", actor=actor).run())


def test_onboarding_example_runs_through_group() -> None:
    script = load_script(ONBOARDING_SCRIPT)
    actor = ScriptedActor.from_script(script)
    group = register_scripted_tasks(
        TaskGroup(summarize_history=False, history=script.initial_history()),
        script,
        actor,
    )

    result = asyncio.run(group.run())

    assert actor.entries == ["name_task", "email_task", "name_task", "email_task"]
    assert result.task_results == {"name_task": "Bob", "email_task": "bob@test.com"}
