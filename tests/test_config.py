from __future__ import annotations

import allure
import pytest

from convo_tasks.config import (
    DEFAULT_SUMMARIZER_COMMAND,
    GroupSettings,
    Settings,
    SummarizerSettings,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.group.summarize_history is True
    assert settings.group.collect_failures is False
    assert settings.summarizer.command_template == DEFAULT_SUMMARIZER_COMMAND
    assert settings.summarizer.timeout_seconds == 120
    assert settings.summarizer.keep_last_turns == 0
    assert settings.log_level == "WARNING"
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONVO_TASKS_SUMMARIZE_HISTORY", "off")
    monkeypatch.setenv("CONVO_TASKS_COLLECT_FAILURES", "yes")
    monkeypatch.setenv("CONVO_TASKS_SUMMARIZER_COMMAND", "agent --model {model} {prompt}")
    monkeypatch.setenv("CONVO_TASKS_SUMMARIZER_MODEL", "small")
    monkeypatch.setenv("CONVO_TASKS_SUMMARIZER_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("CONVO_TASKS_SUMMARY_KEEP_LAST_TURNS", "2")
    monkeypatch.setenv("CONVO_TASKS_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.group == GroupSettings(summarize_history=False, collect_failures=True)
    assert settings.summarizer == SummarizerSettings(
        command_template="agent --model {model} {prompt}",
        model="small",
        timeout_seconds=15,
        keep_last_turns=2,
    )
    assert settings.log_level == "DEBUG"


def test_from_env_rejects_invalid_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONVO_TASKS_COLLECT_FAILURES", "sometimes")

    with pytest.raises(ValueError, match="Invalid boolean value for CONVO_TASKS_COLLECT_FAILURES"):
        Settings.from_env()


def test_from_env_rejects_invalid_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONVO_TASKS_SUMMARIZER_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ValueError, match="Invalid integer value"):
        Settings.from_env()


def test_validate_rejects_non_positive_timeout() -> None:
    settings = Settings(summarizer=SummarizerSettings(timeout_seconds=0))

    with pytest.raises(ValueError, match="TIMEOUT_SECONDS"):
        settings.validate()


def test_validate_rejects_negative_keep_last_turns() -> None:
    settings = Settings(summarizer=SummarizerSettings(keep_last_turns=-1))

    with pytest.raises(ValueError, match="KEEP_LAST_TURNS"):
        settings.validate()


def test_validate_requires_command_only_when_summarizing() -> None:
    settings = Settings(summarizer=SummarizerSettings(command_template=" "))

    with pytest.raises(ValueError, match="CONVO_TASKS_SUMMARIZER_COMMAND is required"):
        settings.validate()

    Settings(
        group=GroupSettings(summarize_history=False),
        summarizer=SummarizerSettings(command_template=""),
    ).validate()


def test_validate_rejects_unknown_log_level() -> None:
    with pytest.raises(ValueError, match="Invalid CONVO_TASKS_LOG_LEVEL"):
        Settings(log_level="CHATTY").validate()
