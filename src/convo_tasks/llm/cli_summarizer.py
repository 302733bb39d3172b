"""Subprocess-based summarizer running an external CLI agent."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory

from convo_tasks.llm.base import SummarizerError

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.05


@dataclass(slots=True)
class CliRunResult:
    """Outcome of one agent subprocess."""

    exit_code: int
    timed_out: bool
    stdout: str
    stderr: str


class CliSummarizer:
    """Render a command template and read the summary from the agent's stdout.

    Supported placeholders: ``{prompt}``, ``{prompt_file}`` and ``{model}``.
    """

    def __init__(
        self,
        *,
        command_template: str,
        model: str = "",
        timeout_seconds: int = 120,
    ) -> None:
        self.command_template = command_template
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def summarize(self, prompt: str) -> str:
        return await asyncio.to_thread(self._summarize_blocking, prompt)

    def _summarize_blocking(self, prompt: str) -> str:
        with TemporaryDirectory(prefix="convo-tasks-summary-") as workdir:
            prompt_file = Path(workdir) / "summary_prompt.txt"
            prompt_file.write_text(prompt, "utf-8")
            run_args = _build_run_args(
                command_template=self.command_template,
                model=self.model,
                prompt=prompt,
                prompt_file=prompt_file,
            )

            env = os.environ.copy()
            env["CONVO_TASKS_SUMMARIZER_MODEL"] = self.model

            start = time.monotonic()
            try:
                result = _run_subprocess(
                    run_args=run_args,
                    env=env,
                    timeout_seconds=self.timeout_seconds,
                    workdir=Path(workdir),
                )
            except FileNotFoundError as error:
                raise SummarizerError(
                    f"Summarizer command not found: {run_args[0]}",
                ) from error
            except OSError as error:
                raise SummarizerError(
                    f"Summarizer failed to start: {error}",
                    transient=True,
                ) from error
            elapsed = time.monotonic() - start

        if result.timed_out:
            raise SummarizerError(
                f"Summarizer timed out after {elapsed:.1f}s",
                transient=True,
            )
        if result.exit_code != 0:
            message = f"Summarizer exit code {result.exit_code}"
            stderr_lines = result.stderr.strip().splitlines()
            if stderr_lines:
                message = f"{message}: {stderr_lines[-1]}"
            raise SummarizerError(message)
        summary = result.stdout.strip()
        if not summary:
            raise SummarizerError("Summarizer returned empty output")

        logger.info("History summarized: chars=%d elapsed=%.1fs", len(summary), elapsed)
        return summary


def _build_run_args(
    *,
    command_template: str,
    model: str,
    prompt: str,
    prompt_file: Path,
) -> list[str]:
    stripped = command_template.strip()
    if not stripped:
        raise SummarizerError("Summarizer command template is empty.")
    if "{prompt}" not in stripped and "{prompt_file}" not in stripped:
        raise SummarizerError(
            "Summarizer command template must include {prompt} or {prompt_file}.",
        )

    try:
        rendered = stripped.format(
            model=shlex.quote(model),
            prompt=shlex.quote(prompt),
            prompt_file=shlex.quote(str(prompt_file)),
        )
    except KeyError as error:
        raise SummarizerError(
            f"Unsupported command template placeholder: {error}",
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise SummarizerError("Summarizer command template rendered empty command.")
    return argv


def _run_subprocess(
    *,
    run_args: list[str],
    env: dict[str, str],
    timeout_seconds: int,
    workdir: Path,
) -> CliRunResult:
    stdout_path = workdir / "stdout.log"
    stderr_path = workdir / "stderr.log"
    with (
        stdout_path.open("w", encoding="utf-8") as stdout_handle,
        stderr_path.open("w", encoding="utf-8") as stderr_handle,
    ):
        process = subprocess.Popen(  # noqa: S603
            run_args,
            env=env,
            stdout=stdout_handle,
            stderr=stderr_handle,
            text=True,
        )
        start_monotonic = time.monotonic()
        timed_out = False
        while process.poll() is None:
            if time.monotonic() - start_monotonic >= timeout_seconds:
                _terminate_process(process)
                timed_out = True
                break
            time.sleep(_POLL_INTERVAL_SECONDS)

    return CliRunResult(
        exit_code=124 if timed_out else process.returncode,
        timed_out=timed_out,
        stdout=stdout_path.read_text("utf-8"),
        stderr=stderr_path.read_text("utf-8"),
    )


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)
