"""Exceptions raised by task groups and the tasks they run."""

from __future__ import annotations


class RegressionSignal(Exception):
    """Control-flow signal: re-run ``target_task_ids`` before the interrupted task.

    Only the scheduler loop that installed the regression tool consumes it; it
    is never reported to callers of ``TaskGroup.run()``.
    """

    def __init__(self, target_task_ids: list[str]) -> None:
        super().__init__("out_of_scope")
        self.target_task_ids = tuple(target_task_ids)


class TaskFailedError(RuntimeError):
    """A task gave up and completed with an error."""


class TaskGroupError(RuntimeError):
    """Fatal group-level failure (finalization, escaped regression signal)."""


class UnknownTaskError(LookupError):
    """Requested task id is not registered in the group."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Unknown task id: {task_id!r}")
        self.task_id = task_id
