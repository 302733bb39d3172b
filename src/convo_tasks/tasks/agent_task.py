"""Unit of work driven by an external actor until it completes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from convo_tasks.chat.history import ChatHistory
from convo_tasks.tasks.tools import FunctionTool, ToolError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AgentTask(Generic[T]):
    """Base class for conversational tasks.

    ``run()`` starts ``on_enter()`` and resolves once somebody calls
    ``complete()``: typically a tool handler invoked by the actor. Completing
    with an exception makes ``run()`` raise it. A still-running ``on_enter()``
    is cancelled as soon as the task completes.
    """

    def __init__(
        self,
        *,
        instructions: str = "",
        tools: Iterable[FunctionTool] | None = None,
        history: ChatHistory | None = None,
    ) -> None:
        self.instructions = instructions
        self._tools: dict[str, FunctionTool] = {tool.name: tool for tool in tools or ()}
        self._history = history.copy() if history is not None else ChatHistory()
        self._completion: asyncio.Future[T] | None = None
        self._started = False

    @property
    def history(self) -> ChatHistory:
        return self._history

    @property
    def tools(self) -> dict[str, FunctionTool]:
        return dict(self._tools)

    @property
    def done(self) -> bool:
        return self._completion is not None and self._completion.done()

    async def update_history(self, history: ChatHistory) -> None:
        """Replace the task history; callers pass a copy they no longer touch."""

        self._history = history

    async def install_tool(self, tool: FunctionTool) -> None:
        self._tools[tool.name] = tool

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Invoke a tool on behalf of the actor; ``ToolError`` goes back to the caller."""

        tool = self._tools.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool {name!r}")
        return await tool.invoke(arguments or {})

    def complete(self, result: T | BaseException) -> None:
        completion = self._ensure_completion()
        if completion.done():
            raise RuntimeError(f"{type(self).__name__} is already done")
        if isinstance(result, BaseException):
            completion.set_exception(result)
        else:
            completion.set_result(result)

    async def on_enter(self) -> None:
        """Hook executed when the task starts; override to drive the conversation."""

    async def run(self) -> T:
        if self._started:
            raise RuntimeError(f"{type(self).__name__} can only run once")
        self._started = True
        completion = self._ensure_completion()
        enter = asyncio.create_task(self.on_enter(), name=f"{type(self).__name__}.on_enter")
        try:
            await asyncio.wait({enter, completion}, return_when=asyncio.FIRST_COMPLETED)
            if not completion.done():
                # on_enter returned (or failed) before completion: surface its error,
                # otherwise keep waiting for an external complete().
                enter.result()
                return await completion
            return completion.result()
        finally:
            if not enter.done():
                enter.cancel()
            (enter_outcome,) = await asyncio.gather(enter, return_exceptions=True)
            if completion.done() and isinstance(enter_outcome, Exception):
                logger.warning(
                    "%s.on_enter failed after completion: %s",
                    type(self).__name__,
                    enter_outcome,
                )

    def _ensure_completion(self) -> asyncio.Future[T]:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion
