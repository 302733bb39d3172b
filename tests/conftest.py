"""Shared test fixtures."""

from __future__ import annotations

import os
import sys

import pytest

ECHO_SUMMARIZER_COMMAND = (
    f"{sys.executable} -m convo_tasks.llm.echo_summarizer --prompt-file {{prompt_file}}"
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Drop CONVO_TASKS_* variables inherited from the developer shell."""
    for name in list(os.environ):
        if name.startswith("CONVO_TASKS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def echo_summarizer_command() -> str:
    return ECHO_SUMMARIZER_COMMAND
