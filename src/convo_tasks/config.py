"""Runtime configuration for task groups and history summarization."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

DEFAULT_SUMMARIZER_COMMAND = (
    f"{sys.executable} -m convo_tasks.llm.echo_summarizer --prompt-file {{prompt_file}}"
)
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class GroupSettings:
    """Defaults applied to task groups built from settings."""

    summarize_history: bool = True
    collect_failures: bool = False


@dataclass(slots=True)
class SummarizerSettings:
    """External CLI summarizer settings."""

    command_template: str = DEFAULT_SUMMARIZER_COMMAND
    model: str = ""
    timeout_seconds: int = 120
    keep_last_turns: int = 0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    group: GroupSettings = field(default_factory=GroupSettings)
    summarizer: SummarizerSettings = field(default_factory=SummarizerSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from ``CONVO_TASKS_*`` environment variables."""

        return cls(
            group=GroupSettings(
                summarize_history=_env_bool("CONVO_TASKS_SUMMARIZE_HISTORY", default=True),
                collect_failures=_env_bool("CONVO_TASKS_COLLECT_FAILURES", default=False),
            ),
            summarizer=SummarizerSettings(
                command_template=os.getenv(
                    "CONVO_TASKS_SUMMARIZER_COMMAND",
                    DEFAULT_SUMMARIZER_COMMAND,
                ),
                model=os.getenv("CONVO_TASKS_SUMMARIZER_MODEL", ""),
                timeout_seconds=_env_int("CONVO_TASKS_SUMMARIZER_TIMEOUT_SECONDS", default=120),
                keep_last_turns=_env_int("CONVO_TASKS_SUMMARY_KEEP_LAST_TURNS", default=0),
            ),
            log_level=os.getenv("CONVO_TASKS_LOG_LEVEL", "WARNING").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.summarizer.timeout_seconds <= 0:
            raise ValueError("CONVO_TASKS_SUMMARIZER_TIMEOUT_SECONDS must be > 0.")
        if self.summarizer.keep_last_turns < 0:
            raise ValueError("CONVO_TASKS_SUMMARY_KEEP_LAST_TURNS must be >= 0.")
        if self.group.summarize_history and not self.summarizer.command_template.strip():
            raise ValueError(
                "CONVO_TASKS_SUMMARIZER_COMMAND is required when history summarization is on.",
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid CONVO_TASKS_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(_LOG_LEVELS)}.",
            )

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
