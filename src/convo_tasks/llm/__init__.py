"""Summarization backends."""

from convo_tasks.llm.base import Summarizer, SummarizerError
from convo_tasks.llm.cli_summarizer import CliSummarizer

__all__ = [
    "CliSummarizer",
    "Summarizer",
    "SummarizerError",
]
