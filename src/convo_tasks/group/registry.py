"""Insertion-ordered registry of task descriptors."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from convo_tasks.group.errors import UnknownTaskError
from convo_tasks.group.models import TaskDescriptor, TaskFactory

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Map of task id to descriptor, ordered by first registration.

    Re-registering an id replaces the descriptor (last write wins) but keeps the
    position of the original registration.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, TaskDescriptor] = {}

    def add(self, factory: TaskFactory, *, task_id: str, description: str) -> TaskDescriptor:
        if not task_id or not task_id.strip():
            raise ValueError("task_id must be a non-empty string")
        if not callable(factory):
            raise TypeError(f"Task factory for {task_id!r} is not callable")
        if task_id in self._descriptors:
            logger.debug("Replacing registered task: task_id=%s", task_id)
        descriptor = TaskDescriptor(task_id=task_id, description=description, factory=factory)
        self._descriptors[task_id] = descriptor
        return descriptor

    def get(self, task_id: str) -> TaskDescriptor:
        try:
            return self._descriptors[task_id]
        except KeyError as error:
            raise UnknownTaskError(task_id) from error

    def keys(self) -> list[str]:
        return list(self._descriptors)

    def describe(self, task_ids: Iterable[str]) -> dict[str, str]:
        """Return ``{task_id: description}`` for the given ids in registration order."""

        wanted = set(task_ids)
        return {
            task_id: descriptor.description
            for task_id, descriptor in self._descriptors.items()
            if task_id in wanted
        }

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
