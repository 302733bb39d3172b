"""Regression capability installed on the active task of a group."""

from __future__ import annotations

import json
import logging
from typing import Any

from convo_tasks.group.errors import RegressionSignal
from convo_tasks.group.registry import TaskRegistry
from convo_tasks.tasks.agent_task import AgentTask
from convo_tasks.tasks.tools import FunctionTool, ToolError

logger = logging.getLogger(__name__)

REGRESSION_TOOL_NAME = "out_of_scope"

_TOOL_DESCRIPTION = (
    "Call to regress to other tasks according to what the user requested to modify, "
    "return the corresponding task ids. For example, if the user wants to change their "
    'email and there is a task with id "email_task" with a description of '
    "\"Collect the user's email\", return the id (\"email_task\"). If the user requests "
    "to regress to multiple tasks, such as changing their phone number and email, return "
    "both task ids in the order they were requested. The following are the IDs and their "
    "corresponding task description. {task_repr}"
)


class RegressionHandle:
    """Regression capability bound to one scheduler iteration.

    The eligible ids are frozen when the handle is created. The handle stays
    usable only while ``open`` is true; the scheduler closes it as soon as the
    iteration's task attempt ends.
    """

    def __init__(
        self,
        *,
        task: AgentTask[Any],
        active_task_id: str,
        eligible: dict[str, str],
    ) -> None:
        self.task = task
        self.active_task_id = active_task_id
        self.eligible = dict(eligible)
        self.open = True
        self.signal: RegressionSignal | None = None

    def close(self) -> None:
        self.open = False

    def owns(self, error: BaseException) -> bool:
        return self.signal is not None and error is self.signal

    async def request(self, task_ids: list[str]) -> str:
        """Tool handler: interrupt the active task and schedule ``task_ids`` first."""

        if not self.open:
            raise ToolError(
                f"Unable to regress, task {self.active_task_id} is no longer active",
            )
        if isinstance(task_ids, str) or not isinstance(task_ids, list | tuple):
            raise ToolError("Unable to regress, task_ids must be a list of task ids")
        if not task_ids:
            raise ToolError("Unable to regress, at least one task id is required")
        for task_id in task_ids:
            if not isinstance(task_id, str) or task_id not in self.eligible:
                raise ToolError(f"Unable to regress, invalid task id {task_id}")
        if self.task.done:
            raise ToolError(f"Unable to regress, task {self.active_task_id} is already done")

        self.signal = RegressionSignal(list(task_ids))
        self.task.complete(self.signal)
        logger.info(
            "Regression requested: active=%s targets=%s",
            self.active_task_id,
            ",".join(task_ids),
        )
        return f"Returning to {', '.join(task_ids)}"

    def build_tool(self) -> FunctionTool:
        return FunctionTool(
            name=REGRESSION_TOOL_NAME,
            description=_TOOL_DESCRIPTION.format(task_repr=json.dumps(self.eligible)),
            handler=self.request,
            parameters={
                "type": "object",
                "properties": {
                    "task_ids": {
                        "type": "array",
                        "items": {"type": "string", "enum": list(self.eligible)},
                        "minItems": 1,
                        "description": "The IDs of the tasks requested",
                    },
                },
                "required": ["task_ids"],
            },
        )


def build_regression_handle(
    *,
    task: AgentTask[Any],
    active_task_id: str,
    visited: set[str],
    registry: TaskRegistry,
) -> RegressionHandle | None:
    """Return a handle for ``task`` or ``None`` when no other task has been visited."""

    eligible_ids = visited - {active_task_id}
    if not eligible_ids:
        return None
    return RegressionHandle(
        task=task,
        active_task_id=active_task_id,
        eligible=registry.describe(eligible_ids),
    )
