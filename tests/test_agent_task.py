from __future__ import annotations

import asyncio

import allure
import pytest

from convo_tasks.chat.history import ChatHistory
from convo_tasks.tasks import AgentTask, FunctionTool, ToolError

pytestmark = [
    allure.epic("Tasks"),
    allure.feature("Task Lifecycle & Tools"),
]


class WaitingTask(AgentTask[str]):
    """Completes from a tool call, then keeps ``on_enter`` busy until cancelled."""

    def __init__(self) -> None:
        super().__init__(
            tools=[FunctionTool(name="finish", description="Finish", handler=self._finish)],
        )
        self.cancelled = False

    async def _finish(self, value: str) -> str:
        self.complete(value)
        return "ok"

    async def on_enter(self) -> None:
        await self.call_tool("finish", {"value": "finished"})
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class ExternallyCompletedTask(AgentTask[int]):
    async def on_enter(self) -> None:
        asyncio.get_running_loop().call_later(0.01, self.complete, 42)


def test_run_returns_completion_and_cancels_on_enter() -> None:
    task = WaitingTask()

    assert asyncio.run(task.run()) == "finished"
    assert task.done
    assert task.cancelled


def test_run_waits_for_completion_after_on_enter_returns() -> None:
    assert asyncio.run(ExternallyCompletedTask().run()) == 42


def test_complete_twice_is_rejected() -> None:
    async def _scenario() -> None:
        task = AgentTask[str]()
        task.complete("first")
        task.complete("second")

    with pytest.raises(RuntimeError, match="already done"):
        asyncio.run(_scenario())


def test_call_tool_rejects_unknown_tool_and_bad_arguments() -> None:
    task = WaitingTask()

    with pytest.raises(ToolError, match="Unknown tool 'missing'"):
        asyncio.run(task.call_tool("missing"))
    with pytest.raises(ToolError, match="Invalid arguments for finish"):
        asyncio.run(task.call_tool("finish", {"result": "x"}))


def test_install_tool_and_tools_view() -> None:
    async def _noop() -> str:
        return "noop"

    task = AgentTask[str]()
    asyncio.run(task.install_tool(FunctionTool(name="noop", description="No-op", handler=_noop)))

    tools = task.tools
    tools.pop("noop")
    assert "noop" in task.tools
    assert task.tools["noop"].to_schema()["name"] == "noop"
    assert asyncio.run(task.call_tool("noop")) == "noop"


def test_constructor_copies_history() -> None:
    history = ChatHistory()
    history.add_message(role="user", content="hello")

    task = AgentTask[str](history=history)
    task.history.add_message(role="assistant", content="hi")

    assert len(history) == 1
    assert len(task.history) == 2
