"""Conversation history model and compression helpers."""

from convo_tasks.chat.history import (
    AgentHandoff,
    ChatHistory,
    ChatItem,
    ChatMessage,
    FunctionCall,
    FunctionCallOutput,
)
from convo_tasks.chat.summary import summarize_history

__all__ = [
    "AgentHandoff",
    "ChatHistory",
    "ChatItem",
    "ChatMessage",
    "FunctionCall",
    "FunctionCallOutput",
    "summarize_history",
]
