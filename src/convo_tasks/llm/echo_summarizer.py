"""Local deterministic summarizer agent for demos and integration tests."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from convo_tasks.chat.summary import SUMMARY_PROMPT_HEADER


def condense(prompt: str) -> str:
    """Collapse the transcript section of a summary prompt into one line."""

    _, _, transcript = prompt.partition(SUMMARY_PROMPT_HEADER)
    turns = [line.strip() for line in transcript.splitlines() if line.strip()]
    if not turns:
        return "Summary: (no conversation)"
    return "Summary: " + "; ".join(turns)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--prompt-file", required=True)
    parser.add_argument("--fail", action="store_true", help="Exit non-zero for failure tests.")
    args = parser.parse_args(argv)

    if args.fail:
        print("echo summarizer asked to fail", file=sys.stderr)
        return 3

    prompt = Path(args.prompt_file).read_text("utf-8")
    print(condense(prompt))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
