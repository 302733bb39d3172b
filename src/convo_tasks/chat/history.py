"""In-memory conversation history shared between a task group and its tasks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4

INSTRUCTION_ROLES = frozenset({"system", "developer"})

ChatRole = Literal["system", "developer", "user", "assistant"]


def _item_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


@dataclass(slots=True)
class ChatMessage:
    """One conversational turn."""

    role: ChatRole
    content: str
    extra: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: _item_id("msg"))
    type: Literal["message"] = "message"

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()


@dataclass(slots=True)
class FunctionCall:
    """Tool invocation issued by the actor."""

    call_id: str
    name: str
    arguments: dict[str, Any]
    id: str = field(default_factory=lambda: _item_id("fc"))
    type: Literal["function_call"] = "function_call"


@dataclass(slots=True)
class FunctionCallOutput:
    """Result (or error text) of a tool invocation."""

    call_id: str
    name: str
    output: str
    is_error: bool = False
    id: str = field(default_factory=lambda: _item_id("fco"))
    type: Literal["function_call_output"] = "function_call_output"


@dataclass(slots=True)
class AgentHandoff:
    """Marker recorded when the active task changes."""

    old_task_id: str | None
    new_task_id: str
    id: str = field(default_factory=lambda: _item_id("handoff"))
    type: Literal["agent_handoff"] = "agent_handoff"


ChatItem = ChatMessage | FunctionCall | FunctionCallOutput | AgentHandoff


class ChatHistory:
    """Ordered list of chat items.

    Instances are never shared between a group and its tasks: each side works
    on its own ``copy()`` and new items flow back through ``merge()``.
    """

    def __init__(self, items: Iterable[ChatItem] | None = None) -> None:
        self._items: list[ChatItem] = list(items or [])

    @classmethod
    def empty(cls) -> ChatHistory:
        return cls()

    @property
    def items(self) -> list[ChatItem]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ChatItem]:
        return iter(self._items)

    def add_message(
        self,
        *,
        role: ChatRole,
        content: str,
        extra: dict[str, Any] | None = None,
    ) -> ChatMessage:
        message = ChatMessage(role=role, content=content, extra=dict(extra or {}))
        self._items.append(message)
        return message

    def insert(self, item: ChatItem) -> None:
        self._items.append(item)

    def messages(self) -> list[ChatMessage]:
        return [item for item in self._items if isinstance(item, ChatMessage)]

    def copy(
        self,
        *,
        exclude_instructions: bool = False,
        exclude_handoff: bool = False,
        exclude_empty_message: bool = False,
        exclude_function_call: bool = False,
    ) -> ChatHistory:
        """Return an independent history, optionally filtered.

        Items are copied shallowly; their ids are preserved so that a copy can
        later be merged back without duplicating entries.
        """

        kept: list[ChatItem] = []
        for item in self._items:
            if isinstance(item, ChatMessage):
                if exclude_instructions and item.role in INSTRUCTION_ROLES:
                    continue
                if exclude_empty_message and item.is_empty:
                    continue
                kept.append(
                    ChatMessage(
                        role=item.role,
                        content=item.content,
                        extra=dict(item.extra),
                        id=item.id,
                    ),
                )
                continue
            if isinstance(item, AgentHandoff):
                if exclude_handoff:
                    continue
            elif exclude_function_call:
                continue
            kept.append(item)
        return ChatHistory(kept)

    def merge(self, other: ChatHistory) -> int:
        """Append items from ``other`` not yet present here; returns the count added."""

        known = {item.id for item in self._items}
        added = 0
        for item in other.items:
            if item.id in known:
                continue
            if isinstance(item, ChatMessage) and item.role in INSTRUCTION_ROLES:
                continue
            self._items.append(item)
            known.add(item.id)
            added += 1
        return added

    def to_transcript(self) -> str:
        """Render user/assistant messages as ``role: text`` lines."""

        lines = [
            f"{message.role}: {message.content.strip()}"
            for message in self.messages()
            if message.role in {"user", "assistant"} and not message.is_empty
        ]
        return "\n".join(lines)
