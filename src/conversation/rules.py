"""Keyword rule tables for heuristic signal extraction.

Every lexical heuristic in the interview pipeline reads from this module:
fact extraction, recent-topic tagging, quality scoring and profile
confidence. Patterns are matched case-insensitively against lower-cased text.
"""

import re
from dataclasses import dataclass

from shared_types import Confidence


@dataclass(frozen=True)
class FactRule:
    """One keyword pattern that yields a fact about the user.

    ``statement`` may contain ``{match}``, filled with the matched word.
    ``requires`` is an extra pattern that must also appear in the turn.
    """

    topic: str
    pattern: re.Pattern
    statement: str
    confidence: Confidence = Confidence.HIGH
    requires: re.Pattern | None = None

    def apply(self, text: str) -> str | None:
        m = self.pattern.search(text)
        if not m:
            return None
        if self.requires is not None and not self.requires.search(text):
            return None
        return self.statement.format(match=m.group(0))


def _words(*alternatives: str) -> re.Pattern:
    return re.compile(r"\b(" + "|".join(alternatives) + r")\b", re.IGNORECASE)


SKIN_TYPE = "Skin Type"
CONCERNS = "Concerns"
PATTERNS = "Patterns"
ROUTINE = "Routine"
LIFESTYLE = "Lifestyle"
PREFERENCES = "Preferences"

FACT_RULES: tuple[FactRule, ...] = (
    FactRule(SKIN_TYPE, _words("oily", "greasy", "shiny"), "They mentioned having oily/shiny skin"),
    FactRule(
        SKIN_TYPE,
        _words("dry", "tight", "flaky", "dehydrated"),
        "They mentioned experiencing dryness",
    ),
    FactRule(
        SKIN_TYPE,
        _words("t-zone", "combination"),
        "They have combination skin with oily T-zone",
    ),
    FactRule(
        SKIN_TYPE,
        _words("sensitive", "reactive", "irritate"),
        "They have sensitive/reactive skin",
    ),
    FactRule(
        CONCERNS,
        _words("acne", "breakout", "pimple", "blemish"),
        "They deal with acne/breakouts",
    ),
    FactRule(
        CONCERNS,
        _words("wrinkle", "fine line", "aging"),
        "They are concerned about aging/wrinkles",
    ),
    FactRule(
        CONCERNS,
        _words("dark spot", "hyperpigmentation", "uneven tone"),
        "They want to address dark spots/uneven tone",
    ),
    FactRule(
        CONCERNS,
        _words("pore", "enlarged pore", "blackhead"),
        "They mentioned pore concerns",
    ),
    FactRule(
        PATTERNS,
        _words("morning", "evening", "night", "midday", "afternoon"),
        "They mentioned skin changes during {match}",
        Confidence.MEDIUM,
    ),
    FactRule(
        PATTERNS,
        _words("winter", "summer", "spring", "fall", "season"),
        "They mentioned seasonal skin changes",
        Confidence.MEDIUM,
    ),
    FactRule(ROUTINE, _words("cleanser", "wash"), "They use a cleanser"),
    FactRule(ROUTINE, _words("moisturizer", "cream", "lotion"), "They use a moisturizer"),
    FactRule(ROUTINE, _words("retinol", "retinoid"), "They use retinol/retinoids"),
    FactRule(ROUTINE, _words("spf", "sunscreen", "sun protection"), "They use SPF/sunscreen"),
    FactRule(ROUTINE, _words("vitamin c", "ascorbic"), "They use vitamin C"),
    FactRule(
        ROUTINE,
        _words("minimal", "nothing", "no routine"),
        "They keep their routine minimal or are just starting",
        requires=_words("routine"),
    ),
    FactRule(
        LIFESTYLE,
        _words("stress", "stressed", "anxiety", "anxious"),
        "They experience stress/anxiety",
    ),
    FactRule(
        LIFESTYLE,
        _words("sleep", "tired", "exhausted"),
        "They mentioned sleep patterns/tiredness",
        Confidence.MEDIUM,
    ),
    FactRule(
        LIFESTYLE,
        _words("exercise", "gym", "workout", "active"),
        "They exercise regularly",
        Confidence.MEDIUM,
    ),
    FactRule(
        LIFESTYLE,
        _words("outdoor", "sun", "outside"),
        "They spend time outdoors",
        Confidence.MEDIUM,
    ),
    FactRule(
        PREFERENCES,
        _words("budget", "afford", "cheap", "expensive", "price"),
        "They mentioned budget considerations",
        Confidence.MEDIUM,
    ),
    FactRule(
        PREFERENCES,
        _words("fragrance-free", "unscented", "no fragrance"),
        "They prefer fragrance-free products",
    ),
)

# Tags for "what we just talked about", read from the latest user turns
TOPIC_RULES: tuple[tuple[str, re.Pattern], ...] = (
    ("skin type", _words("skin type", "oily", "dry", "combination", "sensitive")),
    ("routine", _words("routine", "product", "cleanser", "moisturizer", "serum")),
    ("concerns", _words("acne", "breakout", "wrinkle", "aging", "concern")),
    ("lifestyle", _words("stress", "sleep", "exercise", "lifestyle")),
    ("goals", _words("goal", "want", "hope", "improve")),
)

# Substring vocabularies for scoring (matched with ``in``, not word boundaries)
DOMAIN_TERMS: tuple[str, ...] = (
    "oily", "dry", "sensitive", "acne", "breakout", "pores", "wrinkle", "fine line",
    "cleanser", "moisturizer", "serum", "retinol", "vitamin", "spf", "sunscreen",
    "morning", "evening", "night", "routine", "product", "skin", "face",
)  # fmt: skip

COVERAGE_TERMS: dict[str, tuple[tuple[str, ...], int]] = {
    "skin_type": (
        ("oily", "dry", "combination", "normal", "sensitive", "t-zone", "shiny", "tight", "flaky"),
        3,
    ),
    "concerns": (
        ("acne", "breakout", "wrinkle", "fine line", "dark spot", "pore", "redness",
         "irritation", "dull"),
        3,
    ),  # fmt: skip
    "routine": (
        ("cleanser", "moisturizer", "serum", "toner", "spf", "sunscreen", "retinol",
         "vitamin", "morning", "evening"),
        4,
    ),  # fmt: skip
    "lifestyle": (
        ("stress", "sleep", "diet", "exercise", "water", "work", "outdoor", "climate"),
        3,
    ),
}


def count_terms(text: str, terms: tuple[str, ...]) -> int:
    """Number of distinct terms that occur as substrings of text."""
    lowered = text.lower()
    return sum(1 for term in terms if term in lowered)


def word_count(text: str) -> int:
    return len(text.split())
