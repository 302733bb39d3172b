"""Summarizer interface used for post-run history compression."""

from __future__ import annotations

from typing import Protocol


class SummarizerError(RuntimeError):
    """Summarization failed (transport, timeout or unusable model output)."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class Summarizer(Protocol):
    """Protocol implemented by summarization backends."""

    async def summarize(self, prompt: str) -> str:
        """Return condensed text for the given summarization prompt."""
