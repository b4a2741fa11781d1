"""Reply parsing and suggested-answer fallbacks.

The assistant is asked to end each question with a block of example answers::

    [SUGGESTIONS]
    - short answer
    - detailed answer
    [/SUGGESTIONS]

When that block is missing or degenerate, suggestions come from a rule table
keyed on conversation stage, the question's keywords and what the user has
said so far.
"""

import re
from dataclasses import dataclass, field

import structlog

from sessions.models import Message
from shared_types import Role

logger = structlog.get_logger()

SUGGESTION_BLOCK = re.compile(r"\[SUGGESTIONS\](.*?)\[/SUGGESTIONS\]", re.DOTALL)
MIN_SUGGESTION_CHARS = 10


@dataclass
class ParsedReply:
    message: str
    suggestions: list[str] = field(default_factory=list)
    completion_signaled: bool = False
    had_suggestion_block: bool = False


def parse_reply(text: str, sentinel: str = "PROFILE_READY") -> ParsedReply:
    """Split a raw reply into display text, suggestions and the completion flag."""
    completion = sentinel in text
    suggestions: list[str] = []

    match = SUGGESTION_BLOCK.search(text)
    if match:
        for line in match.group(1).splitlines():
            line = line.strip()
            if line.startswith("-"):
                item = line[1:].strip()
                if item:
                    suggestions.append(item)
        text = SUGGESTION_BLOCK.sub("", text, count=1)

    message = text.replace(sentinel, "").strip()
    return ParsedReply(
        message=message,
        suggestions=suggestions,
        completion_signaled=completion,
        had_suggestion_block=match is not None,
    )


# What the user has revealed so far: flag -> substrings
SIGNAL_FLAGS: dict[str, tuple[str, ...]] = {
    "oily": ("oily", "shiny", "greasy"),
    "dry": ("dry", "tight", "flaky"),
    "sensitive": ("sensitive", "irritat", "react"),
    "acne": ("acne", "breakout", "pimple"),
    "aging": ("wrinkle", "fine line", "aging"),
}

# What the assistant is asking about: kind -> substrings of the question
QUESTION_KINDS: dict[str, tuple[str, ...]] = {
    "routine": ("routine", "products", "use"),
    "concerns": ("concern", "frustrat", "problem"),
    "reactions": ("react", "sensitive", "irritat"),
    "lifestyle": ("lifestyle", "stress", "sleep", "diet"),
    "preferences": ("prefer", "like", "avoid"),
    "budget": ("budget", "spend", "invest"),
    "goals": ("goal", "hope", "improve"),
}

EARLY, MID, LATE = "early", "mid", "late"


@dataclass(frozen=True)
class SuggestionRule:
    stage: str
    question: str | None  # None matches any question
    suggestions: tuple[str, ...]
    all_flags: tuple[str, ...] = ()
    any_flags: tuple[str, ...] = ()

    def matches(self, stage: str, kinds: set[str], flags: set[str]) -> bool:
        if stage != self.stage:
            return False
        if self.question is not None and self.question not in kinds:
            return False
        if self.all_flags and not set(self.all_flags) <= flags:
            return False
        if self.any_flags and not set(self.any_flags) & flags:
            return False
        return True


# First match wins; each stage ends with a catch-all
SUGGESTION_RULES: tuple[SuggestionRule, ...] = (
    SuggestionRule(EARLY, "concerns", (
        "My skin gets oily during the day and I have breakouts",
        "I'm dealing with dryness and some fine lines",
        "My skin is sensitive and reacts easily to products",
    )),
    SuggestionRule(EARLY, None, (
        "Combination skin with an oily T-zone",
        "Dry patches especially in winter",
        "Normal skin but some occasional breakouts",
    )),
    SuggestionRule(MID, "routine", (
        "Gentle foaming cleanser twice a day, BHA treatment, oil-free moisturizer",
        "Salicylic acid cleanser and a lightweight gel moisturizer",
        "Pretty minimal - just cleanser and sometimes a spot treatment",
    ), all_flags=("oily", "acne")),
    SuggestionRule(MID, "routine", (
        "Cream cleanser, hyaluronic acid serum, rich moisturizer with SPF in morning",
        "Oil cleanser at night, retinol 2-3x per week, hydrating cream",
        "Just a gentle cleanser and moisturizer, keeping it simple",
    ), any_flags=("dry", "aging")),
    SuggestionRule(MID, "routine", (
        "Fragrance-free gentle cleanser and a ceramide moisturizer",
        "Minimal routine - micellar water and a soothing cream",
        "I'm still figuring it out, keeping things very basic",
    ), any_flags=("sensitive",)),
    SuggestionRule(MID, "reactions", (
        "Pretty resilient - can handle most actives without issues",
        "Sometimes get irritation from strong retinoids or high % acids",
        "Fragrance and alcohol make me break out more",
    ), any_flags=("oily", "acne")),
    SuggestionRule(MID, "reactions", (
        "Gets red and stings with fragrances or essential oils",
        "Very reactive - even 'gentle' products can cause issues",
        "Takes time to adjust to new products, but usually okay",
    ), any_flags=("sensitive", "dry")),
    SuggestionRule(MID, "lifestyle", (
        "Pretty stressful work schedule, try to sleep 7 hours, regular exercise",
        "Moderate stress, decent sleep, mostly balanced diet",
        "High stress lately, inconsistent sleep, could improve my water intake",
    )),
    SuggestionRule(MID, None, (
        "Yes, definitely - I've noticed that pattern",
        "Sometimes, but it's not always consistent",
        "Not really, that hasn't been a major issue for me",
    )),
    SuggestionRule(LATE, "preferences", (
        "Lightweight gels and serums, nothing too heavy or greasy",
        "Mattifying products, oil-control, fragrance-free if possible",
        "I like trying new ingredients but prefer affordable options",
    ), any_flags=("oily",)),
    SuggestionRule(LATE, "preferences", (
        "Rich creams and hydrating serums, love anything with hyaluronic acid",
        "Anti-aging focused, willing to invest in retinol and peptides",
        "Natural oils and butters work well for me",
    ), any_flags=("dry", "aging")),
    SuggestionRule(LATE, "budget", (
        "$50-100/month for core products, willing to splurge on key items",
        "Looking for affordable options, drugstore brands are great",
        "Ready to invest more if the products really work",
    )),
    SuggestionRule(LATE, "goals", (
        "Clear skin with minimal breakouts and reduced scarring",
        "Control the oil and prevent future breakouts",
        "Even skin tone and less post-acne marks",
    ), any_flags=("acne",)),
    SuggestionRule(LATE, "goals", (
        "Reduce fine lines and maintain hydrated, plump skin",
        "Prevent further aging and brighten my complexion",
        "Just healthier, more radiant-looking skin overall",
    ), any_flags=("aging", "dry")),
    SuggestionRule(LATE, None, (
        "Yes, that sounds exactly right based on what I've described",
        "Mostly, though there are some exceptions depending on the season",
        "That's helpful context - I'd like to explore options that address that",
    )),
)  # fmt: skip


def conversation_stage(message_count: int) -> str:
    if message_count <= 3:
        return EARLY
    if message_count <= 6:
        return MID
    return LATE


def signal_flags(messages: list[Message]) -> set[str]:
    said = " ".join(m.content.lower() for m in messages if m.role == Role.USER)
    return {flag for flag, terms in SIGNAL_FLAGS.items() if any(t in said for t in terms)}


def question_kinds(question: str) -> set[str]:
    q = question.lower()
    return {kind for kind, terms in QUESTION_KINDS.items() if any(t in q for t in terms)}


def fallback_suggestions(messages: list[Message], current_question: str) -> list[str]:
    """Context-derived example answers for the assistant's latest question."""
    stage = conversation_stage(len(messages))
    kinds = question_kinds(current_question)
    flags = signal_flags(messages)
    for rule in SUGGESTION_RULES:
        if rule.matches(stage, kinds, flags):
            return list(rule.suggestions)
    # unreachable while every stage has a catch-all
    return list(SUGGESTION_RULES[-1].suggestions)


def is_degenerate(suggestions: list[str]) -> bool:
    return not suggestions or any(len(s) < MIN_SUGGESTION_CHARS for s in suggestions)


def ensure_quality(parsed: ParsedReply, messages: list[Message]) -> list[str]:
    """Reply suggestions if usable, otherwise the rule-table fallback."""
    if not is_degenerate(parsed.suggestions):
        return parsed.suggestions

    logger.warning(
        "suggestions.fallback",
        had_block=parsed.had_suggestion_block,
        count=len(parsed.suggestions),
    )
    return fallback_suggestions(messages, parsed.message)
