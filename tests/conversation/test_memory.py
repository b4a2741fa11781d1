"""Tests for heuristic conversation memory."""

from conftest import make_messages
from conversation.memory import (
    analyze_engagement,
    analyze_tone,
    build_memory_context,
    extract_facts,
    extract_memory,
    identify_topics,
)
from shared_types import Confidence, ConversationTone, EngagementLevel


class TestExtractFacts:
    def test_facts_per_topic(self):
        facts = extract_facts("My skin gets oily by midday, and I have acne.", 4)
        by_topic = {f.topic: f for f in facts}
        assert set(by_topic) == {"Skin Type", "Concerns", "Patterns"}
        assert by_topic["Skin Type"].statement == "They mentioned having oily/shiny skin"
        assert by_topic["Patterns"].statement == "They mentioned skin changes during midday"
        assert by_topic["Patterns"].confidence == Confidence.MEDIUM
        assert all(f.message_index == 4 for f in facts)

    def test_same_topic_merges(self):
        facts = extract_facts("My skin is oily but also feels tight", 0)
        assert len(facts) == 1
        assert facts[0].statement == (
            "They mentioned having oily/shiny skin; They mentioned experiencing dryness"
        )
        assert facts[0].confidence == Confidence.HIGH

    def test_merge_keeps_highest_confidence(self):
        facts = extract_facts("I'm on a budget and want fragrance-free things", 0)
        assert len(facts) == 1
        assert facts[0].topic == "Preferences"
        assert facts[0].confidence == Confidence.HIGH

    def test_minimal_routine_needs_routine_word(self):
        assert extract_facts("My routine is pretty minimal", 0)[0].statement == (
            "They keep their routine minimal or are just starting"
        )
        assert extract_facts("I put in minimal effort", 0) == []

    def test_word_boundaries(self):
        # "dryer" is not "dry"
        assert extract_facts("I use a hair dryer", 0) == []

    def test_nothing_matched(self):
        assert extract_facts("hello there", 0) == []


class TestEngagementAndTone:
    def test_empty_is_low_and_brief(self):
        assert analyze_engagement([]) == EngagementLevel.LOW
        assert analyze_tone([]) == ConversationTone.BRIEF

    def test_long_answers_high(self):
        assert analyze_engagement(["x" * 150]) == EngagementLevel.HIGH

    def test_short_answers_low(self):
        assert analyze_engagement(["ok", "yes", "no"]) == EngagementLevel.LOW

    def test_detailed_tone(self):
        text = " ".join(["word"] * 30) + " " + "y" * 10
        assert analyze_tone([text]) == ConversationTone.DETAILED

    def test_casual_tone(self):
        assert analyze_tone(["my skin is a bit oily around the nose lately"]) == (
            ConversationTone.CASUAL
        )


class TestExtractMemory:
    def test_indexes_are_transcript_positions(self):
        msgs = make_messages(
            ("user", "hi"),
            ("assistant", "What bothers you?"),
            ("user", "I have acne"),
        )
        memory = extract_memory(msgs)
        assert [f.message_index for f in memory.facts] == [2]

    def test_assistant_text_ignored(self):
        msgs = make_messages(("user", "hello"), ("assistant", "Is your skin oily or dry?"))
        assert extract_memory(msgs).facts == []

    def test_recent_topics_from_last_three_user_turns(self):
        msgs = make_messages(
            ("user", "I get stressed a lot"),
            ("assistant", "q"),
            ("user", "ok"),
            ("assistant", "q"),
            ("user", "ok"),
            ("assistant", "q"),
            ("user", "My routine is a cleanser"),
        )
        memory = extract_memory(msgs)
        assert memory.recent_topics == ["routine"]

    def test_identify_topics_order(self):
        assert identify_topics("i want a routine for dry skin") == [
            "skin type",
            "routine",
            "goals",
        ]


class TestBuildMemoryContext:
    def test_empty_when_no_facts(self):
        assert build_memory_context(extract_memory(make_messages(("user", "hi")))) == ""

    def test_renders_topics_and_engagement(self):
        memory = extract_memory(make_messages(("user", "I have acne and I'm stressed")))
        text = build_memory_context(memory)
        assert text.startswith("CONVERSATION MEMORY (Reference naturally):")
        assert "Concerns:\n  - They deal with acne/breakouts" in text
        assert "Lifestyle:\n  - They experience stress/anxiety" in text
        assert "USER ENGAGEMENT:" in text
        assert "- Conversation tone: brief" in text
        assert "RECENT TOPICS" in text
