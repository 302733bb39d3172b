"""Function tools exposed by a task to its external actor."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any


class ToolError(Exception):
    """Error reported back to the actor that invoked a tool."""


ToolHandler = Callable[..., Awaitable[Any]]


@dataclass(slots=True)
class FunctionTool:
    """Named callable with a JSON-schema description of its arguments."""

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}},
    )

    async def invoke(self, arguments: dict[str, Any]) -> Any:
        try:
            inspect.signature(self.handler).bind(**arguments)
        except TypeError as error:
            raise ToolError(f"Invalid arguments for {self.name}: {error}") from error
        return await self.handler(**arguments)

    def to_schema(self) -> dict[str, Any]:
        """Serialize as an LLM function definition."""

        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
