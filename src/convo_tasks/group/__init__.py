"""Sequential task groups with regression to previously visited tasks."""

from convo_tasks.group.errors import (
    RegressionSignal,
    TaskFailedError,
    TaskGroupError,
    UnknownTaskError,
)
from convo_tasks.group.models import TaskCompletedEvent, TaskDescriptor, TaskGroupResult
from convo_tasks.group.regression import REGRESSION_TOOL_NAME, RegressionHandle
from convo_tasks.group.registry import TaskRegistry
from convo_tasks.group.task_group import TaskGroup

__all__ = [
    "REGRESSION_TOOL_NAME",
    "RegressionHandle",
    "RegressionSignal",
    "TaskCompletedEvent",
    "TaskDescriptor",
    "TaskFailedError",
    "TaskGroup",
    "TaskGroupError",
    "TaskGroupResult",
    "TaskRegistry",
    "UnknownTaskError",
]
