"""Task abstraction and actor-facing tools."""

from convo_tasks.tasks.agent_task import AgentTask
from convo_tasks.tasks.tools import FunctionTool, ToolError

__all__ = [
    "AgentTask",
    "FunctionTool",
    "ToolError",
]
