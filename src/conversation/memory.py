"""Conversation memory: facts and engagement signals pulled from the transcript.

Everything here is a pure function of the message list. Facts are recomputed
from the full transcript every turn, never patched incrementally.
"""

from dataclasses import dataclass, field

from sessions.models import Message
from shared_types import Confidence, ConversationTone, EngagementLevel, Role

from .rules import FACT_RULES, TOPIC_RULES, word_count

_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}
RECENT_TURNS = 3


@dataclass(frozen=True)
class ConversationFact:
    topic: str
    statement: str
    message_index: int  # position in the full transcript
    confidence: Confidence


@dataclass
class ConversationMemory:
    facts: list[ConversationFact] = field(default_factory=list)
    recent_topics: list[str] = field(default_factory=list)
    engagement_level: EngagementLevel = EngagementLevel.LOW
    tone: ConversationTone = ConversationTone.BRIEF

    def facts_by_topic(self) -> dict[str, list[ConversationFact]]:
        grouped: dict[str, list[ConversationFact]] = {}
        for fact in self.facts:
            grouped.setdefault(fact.topic, []).append(fact)
        return grouped


def extract_facts(text: str, message_index: int) -> list[ConversationFact]:
    """Facts for one user turn, at most one per topic.

    Several rules of the same topic firing in one turn merge into a single
    fact: statements joined with "; ", confidence is the highest seen.
    """
    lowered = text.lower()
    merged: dict[str, tuple[list[str], Confidence]] = {}
    for rule in FACT_RULES:
        statement = rule.apply(lowered)
        if statement is None:
            continue
        if rule.topic not in merged:
            merged[rule.topic] = ([statement], rule.confidence)
            continue
        statements, best = merged[rule.topic]
        statements.append(statement)
        if _CONFIDENCE_RANK[rule.confidence] > _CONFIDENCE_RANK[best]:
            merged[rule.topic] = (statements, rule.confidence)

    return [
        ConversationFact(
            topic=topic,
            statement="; ".join(statements),
            message_index=message_index,
            confidence=confidence,
        )
        for topic, (statements, confidence) in merged.items()
    ]


def identify_topics(text: str) -> list[str]:
    return [topic for topic, pattern in TOPIC_RULES if pattern.search(text)]


def analyze_engagement(user_texts: list[str]) -> EngagementLevel:
    if not user_texts:
        return EngagementLevel.LOW

    n = len(user_texts)
    avg_length = sum(len(t) for t in user_texts) / n
    detailed_share = sum(1 for t in user_texts if word_count(t) > 15) / n

    if avg_length > 100 or detailed_share > 0.6:
        return EngagementLevel.HIGH
    if avg_length > 50 or detailed_share > 0.3:
        return EngagementLevel.MEDIUM
    return EngagementLevel.LOW


def analyze_tone(user_texts: list[str]) -> ConversationTone:
    if not user_texts:
        return ConversationTone.BRIEF

    n = len(user_texts)
    avg_length = sum(len(t) for t in user_texts) / n
    avg_words = sum(word_count(t) for t in user_texts) / n

    if avg_length > 120 and avg_words > 20:
        return ConversationTone.DETAILED
    if avg_length > 40 and avg_words > 8:
        return ConversationTone.CASUAL
    return ConversationTone.BRIEF


def extract_memory(messages: list[Message]) -> ConversationMemory:
    """Build conversation memory from the uncompressed transcript."""
    user_turns = [(i, m) for i, m in enumerate(messages) if m.role == Role.USER]
    user_texts = [m.content for _, m in user_turns]

    facts: list[ConversationFact] = []
    for index, msg in user_turns:
        facts.extend(extract_facts(msg.content, index))

    recent_topics: list[str] = []
    for _, msg in user_turns[-RECENT_TURNS:]:
        for topic in identify_topics(msg.content.lower()):
            if topic not in recent_topics:
                recent_topics.append(topic)

    return ConversationMemory(
        facts=facts,
        recent_topics=recent_topics,
        engagement_level=analyze_engagement(user_texts),
        tone=analyze_tone(user_texts),
    )


_ENGAGEMENT_NOTES = {
    EngagementLevel.HIGH: [
        "- User is highly engaged, giving detailed responses",
        "- Feel free to dive deeper and ask follow-up questions",
    ],
    EngagementLevel.MEDIUM: [
        "- User provides moderate detail",
        "- Gently encourage elaboration when needed",
    ],
    EngagementLevel.LOW: [
        "- User tends to give brief responses",
        "- Keep questions simple and specific",
        "- Provide examples to help them respond",
    ],
}


def build_memory_context(memory: ConversationMemory) -> str:
    """Render memory as a prompt block; empty when nothing is known yet."""
    if not memory.facts:
        return ""

    lines = ["CONVERSATION MEMORY (Reference naturally):", ""]
    for topic, facts in memory.facts_by_topic().items():
        lines.append(f"{topic}:")
        lines.extend(f"  - {fact.statement}" for fact in facts)
        lines.append("")

    lines.append("USER ENGAGEMENT:")
    lines.extend(_ENGAGEMENT_NOTES[memory.engagement_level])
    lines.append(f"- Conversation tone: {memory.tone}")
    lines.append("")

    if memory.recent_topics:
        lines.append("RECENT TOPICS (for natural transitions):")
        lines.extend(f"  - {topic}" for topic in memory.recent_topics)

    return "\n".join(lines).rstrip()
