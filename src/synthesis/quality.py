"""Conversation quality and profile confidence scores.

Pure functions of the transcript; recompute on every read.
"""

from conversation.rules import COVERAGE_TERMS, DOMAIN_TERMS
from sessions.models import Message
from shared_types import Role


def _user_texts(messages: list[Message]) -> list[str]:
    return [m.content for m in messages if m.role == Role.USER]


def conversation_quality(messages: list[Message]) -> float:
    """Weighted 0..1 score: turns 35%, detail 30%, vocabulary 25%, consistency 10%."""
    texts = _user_texts(messages)
    if not texts:
        return 0.0

    turn_score = min(len(texts) / 10, 1.0)
    avg_length = sum(len(t) for t in texts) / len(texts)
    detail_score = min(avg_length / 80, 1.0)

    mentioned = {term for t in texts for term in DOMAIN_TERMS if term in t.lower()}
    depth_score = min(len(mentioned) / 10, 1.0)

    lengths = [len(t) for t in texts]
    shortest, longest = min(lengths), max(lengths)
    if shortest > 10:
        consistency = (1 - (longest - shortest) / longest) * 0.5 + 0.5
    else:
        consistency = 0.5

    score = turn_score * 0.35 + detail_score * 0.30 + depth_score * 0.25 + consistency * 0.10
    return round(score, 2)


def topic_coverage(messages: list[Message]) -> dict[str, float]:
    said = " ".join(t.lower() for t in _user_texts(messages))
    coverage = {}
    for topic, (terms, needed) in COVERAGE_TERMS.items():
        hits = sum(1 for term in terms if term in said)
        coverage[topic] = min(hits / needed, 1.0)
    return coverage


def profile_confidence(messages: list[Message], quality: float | None = None) -> dict[str, float]:
    """Per-topic coverage plus an overall blend (60% coverage, 40% quality)."""
    if quality is None:
        quality = conversation_quality(messages)
    coverage = topic_coverage(messages)
    mean_coverage = sum(coverage.values()) / len(coverage)
    overall = quality * 0.4 + mean_coverage * 0.6

    return {
        "overall": round(overall, 2),
        **{topic: round(score, 2) for topic, score in coverage.items()},
    }
