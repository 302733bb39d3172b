"""History compression: condense a conversation into one summary message."""

from __future__ import annotations

import logging

from convo_tasks.chat.history import INSTRUCTION_ROLES, ChatHistory, ChatMessage
from convo_tasks.llm.base import Summarizer

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTIONS = (
    "Compress the conversation below into a short factual summary. "
    "Keep every value the user provided or confirmed, prefer the latest value "
    "when the user changed their mind, and drop small talk. "
    "Reply with the summary text only."
)
SUMMARY_PROMPT_HEADER = "Conversation to summarize:\n\n"
SUMMARY_PREFIX = "[history summary]"


def build_summary_prompt(history: ChatHistory) -> str:
    return f"{SUMMARY_INSTRUCTIONS}\n\n{SUMMARY_PROMPT_HEADER}{history.to_transcript()}"


async def summarize_history(
    history: ChatHistory,
    summarizer: Summarizer,
    *,
    keep_last_turns: int = 0,
) -> ChatHistory:
    """Return a new history where older turns are replaced by a summary message.

    Instruction messages are kept in front, followed by one assistant message
    flagged ``extra["is_summary"]`` and then the last ``keep_last_turns``
    user/assistant pairs verbatim.
    """

    if keep_last_turns < 0:
        raise ValueError("keep_last_turns must be >= 0")

    instructions: list[ChatMessage] = []
    turns: list[ChatMessage] = []
    for message in history.messages():
        if message.role in INSTRUCTION_ROLES:
            instructions.append(message)
        elif not message.is_empty:
            turns.append(message)

    split_at = max(0, len(turns) - keep_last_turns * 2)
    to_summarize, kept = turns[:split_at], turns[split_at:]
    if not to_summarize:
        logger.debug("Nothing to summarize: turns=%d", len(turns))
        return history.copy()

    summary_text = await summarizer.summarize(build_summary_prompt(ChatHistory(to_summarize)))

    summarized = ChatHistory(instructions)
    summarized.add_message(
        role="assistant",
        content=f"{SUMMARY_PREFIX}\n{summary_text.strip()}",
        extra={"is_summary": True},
    )
    for message in kept:
        summarized.insert(message)
    logger.info(
        "Summarized history: summarized_turns=%d kept_turns=%d",
        len(to_summarize),
        len(kept),
    )
    return summarized
