"""Sequential task group with regression to previously visited tasks.

A group runs its registered tasks one at a time in registration order. While
a task is active its actor may call the ``out_of_scope`` tool to jump back to
tasks that already ran; the group then re-runs those tasks (in the requested
order) and resumes the interrupted one. Once the queue drains, the group can
compress the accumulated conversation into a summary.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from convo_tasks.chat.history import INSTRUCTION_ROLES, AgentHandoff, ChatHistory
from convo_tasks.chat.summary import summarize_history
from convo_tasks.config import Settings
from convo_tasks.group.errors import RegressionSignal, TaskGroupError
from convo_tasks.group.models import (
    OnTaskCompleted,
    OutcomeKind,
    TaskCompletedEvent,
    TaskFactory,
    TaskGroupResult,
    TaskOutcome,
)
from convo_tasks.group.regression import RegressionHandle, build_regression_handle
from convo_tasks.group.registry import TaskRegistry
from convo_tasks.llm.base import Summarizer
from convo_tasks.llm.cli_summarizer import CliSummarizer
from convo_tasks.tasks.agent_task import AgentTask

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _RunState:
    """Mutable state of one group run."""

    queue: deque[str]
    visited: set[str] = field(default_factory=set)
    results: dict[str, Any] = field(default_factory=dict)
    active_task: AgentTask[Any] | None = None
    active_task_id: str | None = None


class TaskGroup(AgentTask[TaskGroupResult]):
    """Run registered tasks sequentially and collect their results."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        summarize_history: bool = True,
        collect_failures: bool = False,
        history: ChatHistory | None = None,
        summarizer: Summarizer | None = None,
        on_task_completed: OnTaskCompleted | None = None,
        summary_keep_last_turns: int = 0,
    ) -> None:
        if summarize_history and summarizer is None:
            raise ValueError("summarize_history requires a summarizer; pass one or disable it")
        super().__init__(history=history)
        self._summarize_history = summarize_history
        self._collect_failures = collect_failures
        self._summarizer = summarizer
        self._on_task_completed = on_task_completed
        self._summary_keep_last_turns = summary_keep_last_turns
        self._registry = TaskRegistry()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        history: ChatHistory | None = None,
        summarizer: Summarizer | None = None,
        on_task_completed: OnTaskCompleted | None = None,
    ) -> TaskGroup:
        """Build a group using configured policies and the CLI summarizer."""

        if summarizer is None and settings.group.summarize_history:
            summarizer = CliSummarizer(
                command_template=settings.summarizer.command_template,
                model=settings.summarizer.model,
                timeout_seconds=settings.summarizer.timeout_seconds,
            )
        return cls(
            summarize_history=settings.group.summarize_history,
            collect_failures=settings.group.collect_failures,
            history=history,
            summarizer=summarizer,
            on_task_completed=on_task_completed,
            summary_keep_last_turns=settings.summarizer.keep_last_turns,
        )

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    def add(self, factory: TaskFactory, *, task_id: str, description: str) -> TaskGroup:
        self._registry.add(factory, task_id=task_id, description=description)
        return self

    async def on_enter(self) -> None:
        results = await self._drive()
        await self._finalize()
        self.complete(TaskGroupResult(task_results=results))

    async def _drive(self) -> dict[str, Any]:
        state = _RunState(queue=deque(self._registry.keys()))
        logger.info("Task group started: tasks=%s", ",".join(state.queue))

        while state.queue:
            task_id = state.queue.popleft()
            task = self._activate(state, task_id)

            await task.update_history(self.history.copy())
            handle = build_regression_handle(
                task=task,
                active_task_id=task_id,
                visited=state.visited,
                registry=self._registry,
            )
            if handle is not None:
                await task.install_tool(handle.build_tool())
            state.visited.add(task_id)

            outcome = await self._execute(task, handle)
            self.history.merge(task.history)

            if outcome.kind is OutcomeKind.SUCCEEDED:
                _record(state.results, task_id, outcome.value)
                logger.info("Task completed: task_id=%s", task_id)
                if self._on_task_completed is not None:
                    await self._on_task_completed(
                        TaskCompletedEvent(task=task, task_id=task_id, result=outcome.value),
                    )
                continue

            if outcome.kind is OutcomeKind.REGRESSED:
                state.queue.appendleft(task_id)
                state.queue.extendleft(reversed(outcome.target_task_ids))
                logger.info(
                    "Task regressed: task_id=%s targets=%s queue=%s",
                    task_id,
                    ",".join(outcome.target_task_ids),
                    ",".join(state.queue),
                )
                continue

            error = outcome.error
            if error is None:
                raise TaskGroupError(f"task {task_id} failed without an error")
            if self._collect_failures:
                _record(state.results, task_id, error)
                logger.warning("Task failed, continuing: task_id=%s error=%s", task_id, error)
                continue
            logger.error("Task failed, aborting group: task_id=%s error=%s", task_id, error)
            raise error

        return state.results

    def _activate(self, state: _RunState, task_id: str) -> AgentTask[Any]:
        task = self._registry.get(task_id).factory()
        self.history.insert(AgentHandoff(old_task_id=state.active_task_id, new_task_id=task_id))
        state.active_task = task
        state.active_task_id = task_id
        logger.debug("Task activated: task_id=%s", task_id)
        return task

    async def _execute(
        self,
        task: AgentTask[Any],
        handle: RegressionHandle | None,
    ) -> TaskOutcome:
        try:
            value = await task.run()
        except Exception as error:
            if handle is not None and handle.owns(error):
                return TaskOutcome.regressed(handle.signal.target_task_ids)
            if isinstance(error, RegressionSignal):
                raise TaskGroupError(
                    "regression signal escaped its task group iteration",
                ) from error
            return TaskOutcome.failed(error)
        finally:
            if handle is not None:
                handle.close()
        return TaskOutcome.succeeded(value)

    async def _finalize(self) -> None:
        if not self._summarize_history or self._summarizer is None:
            return

        try:
            to_summarize = self.history.copy(
                exclude_instructions=True,
                exclude_handoff=True,
                exclude_empty_message=True,
                exclude_function_call=True,
            )
            summarized = await summarize_history(
                to_summarize,
                self._summarizer,
                keep_last_turns=self._summary_keep_last_turns,
            )
        except Exception as error:
            raise TaskGroupError(f"failed to summarize the chat history: {error}") from error

        instructions = [
            message for message in self.history.messages() if message.role in INSTRUCTION_ROLES
        ]
        await self.update_history(ChatHistory([*instructions, *summarized.items]))


def _record(results: dict[str, Any], task_id: str, outcome: Any) -> None:
    # Re-insert so iteration order follows the latest completion.
    results.pop(task_id, None)
    results[task_id] = outcome
