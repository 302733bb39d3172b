"""Domain models for task group registration and execution."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from convo_tasks.tasks.agent_task import AgentTask

TaskFactory = Callable[[], AgentTask[Any]]


@dataclass(frozen=True, slots=True)
class TaskDescriptor:
    """Registered task: how to build it and how to describe it to the actor."""

    task_id: str
    description: str
    factory: TaskFactory


@dataclass(slots=True)
class TaskCompletedEvent:
    """Payload passed to the per-task completion callback."""

    task: AgentTask[Any]
    task_id: str
    result: Any


OnTaskCompleted = Callable[[TaskCompletedEvent], Awaitable[None]]


@dataclass(slots=True)
class TaskGroupResult:
    """Final outcome of a group run.

    ``task_results`` maps every task id with a terminal outcome to its value or,
    when failures are collected, to the captured exception.
    """

    task_results: dict[str, Any] = field(default_factory=dict)


class OutcomeKind(str, Enum):
    """How one task attempt ended."""

    SUCCEEDED = "succeeded"
    REGRESSED = "regressed"
    FAILED = "failed"


@dataclass(slots=True)
class TaskOutcome:
    """Tagged result of running one task attempt."""

    kind: OutcomeKind
    value: Any = None
    error: Exception | None = None
    target_task_ids: tuple[str, ...] = ()

    @classmethod
    def succeeded(cls, value: Any) -> TaskOutcome:
        return cls(kind=OutcomeKind.SUCCEEDED, value=value)

    @classmethod
    def regressed(cls, target_task_ids: tuple[str, ...]) -> TaskOutcome:
        return cls(kind=OutcomeKind.REGRESSED, target_task_ids=target_task_ids)

    @classmethod
    def failed(cls, error: Exception) -> TaskOutcome:
        return cls(kind=OutcomeKind.FAILED, error=error)
