"""Bound prompt size by collapsing the middle of long transcripts."""

from sessions.models import Message
from shared_types import Role

DEFAULT_KEEP = 10
CLAUSE_CHARS = 50


def leading_clause(text: str) -> str:
    """First sentence of text, at most 50 characters."""
    return text.split(".")[0][:CLAUSE_CHARS]


def summarize(dropped: list[Message]) -> Message:
    points = [leading_clause(m.content) for m in dropped if m.role == Role.USER]
    if points:
        body = "User mentioned: " + "; ".join(points)
    else:
        body = "no user answers in this stretch"
    return Message(role=Role.ASSISTANT, content=f"[Previous conversation summary: {body}]")


def compress(messages: list[Message], keep: int = DEFAULT_KEEP) -> list[Message]:
    """Keep the first message and the last ``keep - 1``; summarize the rest.

    Returns the input unchanged when ``len(messages) <= keep``; otherwise the
    result always has ``keep + 1`` messages. Only the prompt sees this; the
    stored transcript is never compressed.
    """
    if keep < 1:
        raise ValueError("keep must be at least 1")
    if len(messages) <= keep:
        return list(messages)

    tail_start = len(messages) - (keep - 1)
    dropped = messages[1:tail_start]
    return [messages[0], summarize(dropped), *messages[tail_start:]]
