"""Adaptive questioning: match question depth to how much the user writes."""

from dataclasses import dataclass, field

from sessions.models import Message
from shared_types import EngagementLevel, Role

from .rules import word_count

DETAILED_WORDS = 20
BRIEF_WORDS = 5
EARLY_TURNS = 2


@dataclass(frozen=True)
class AdaptiveGuidance:
    engagement_level: EngagementLevel
    style_directive: str
    example_prompts: list[str] = field(default_factory=list)
    example_directive: bool = False
    deepen_directive: bool = False
    needs_encouragement: bool = False
    encouraging_transition: str | None = None


OPENING_STYLE = "Start with open-ended questions to gauge engagement"

STYLES = {
    EngagementLevel.HIGH: (
        "User is highly engaged. Dive deep with follow-up questions. Explore nuances and "
        "patterns they mention. You can ask 2-3 related questions in sequence."
    ),
    EngagementLevel.MEDIUM: (
        "User provides moderate detail. Keep questions clear and focused. Gently encourage "
        "elaboration when needed, but don't overwhelm."
    ),
    EngagementLevel.LOW: (
        "User gives brief responses. Keep questions SIMPLE and SPECIFIC. Ask one thing at a "
        "time. Always provide concrete examples to help them respond."
    ),
}

EXAMPLE_PROMPTS = {
    EngagementLevel.HIGH: [
        "That's really interesting - can you tell me more about what that feels like?",
        "You mentioned X earlier - how does that connect with what you just shared?",
        "I'm curious about the timing - does this happen more in certain situations?",
    ],
    EngagementLevel.MEDIUM: [
        "Could you tell me a bit more about that?",
        "What does that look like for your skin day-to-day?",
        "How long have you noticed this pattern?",
    ],
    EngagementLevel.LOW: [
        "How does your skin feel by the end of the day? (For example: oily, tight, normal)",
        "Do you use any skincare products right now? (Like cleanser, moisturizer, sunscreen)",
        "What bothers you most about your skin? (For example: breakouts, dryness, oiliness)",
    ],
}

ENCOURAGING_TRANSITIONS = (
    "I hear you! To give you the best recommendations, it helps if I understand a bit more.",
    "That's helpful - let me ask you about this in a different way.",
    "Thanks for sharing! Here's a simpler question that might be easier to answer.",
    "Got it! Let me break this down into something more specific.",
)


def classify_engagement(user_texts: list[str]) -> EngagementLevel:
    n = len(user_texts)
    avg_length = sum(len(t) for t in user_texts) / n
    avg_words = sum(word_count(t) for t in user_texts) / n
    detailed = sum(1 for t in user_texts if word_count(t) > DETAILED_WORDS)
    brief = sum(1 for t in user_texts if word_count(t) < BRIEF_WORDS)

    if avg_length > 120 and avg_words > 20 and detailed >= n * 0.5:
        return EngagementLevel.HIGH
    if avg_length < 40 or avg_words < 8 or brief >= n * 0.5:
        return EngagementLevel.LOW
    return EngagementLevel.MEDIUM


def needs_encouragement(user_texts: list[str]) -> bool:
    """True when the last two user turns were both brief."""
    if len(user_texts) < 2:
        return False
    return all(word_count(t) < BRIEF_WORDS for t in user_texts[-2:])


def encouraging_transition(turn_count: int) -> str:
    # no randomness: guidance must be a pure function of the transcript
    return ENCOURAGING_TRANSITIONS[turn_count % len(ENCOURAGING_TRANSITIONS)]


def generate_guidance(messages: list[Message]) -> AdaptiveGuidance:
    user_texts = [m.content for m in messages if m.role == Role.USER]

    if not user_texts:
        return AdaptiveGuidance(
            engagement_level=EngagementLevel.MEDIUM,
            style_directive=OPENING_STYLE,
            example_directive=True,
        )

    level = classify_engagement(user_texts)
    if level == EngagementLevel.HIGH:
        example_directive, deepen = False, True
    elif level == EngagementLevel.MEDIUM:
        example_directive, deepen = len(user_texts) <= EARLY_TURNS, False
    else:
        example_directive, deepen = True, False

    encourage = needs_encouragement(user_texts)
    return AdaptiveGuidance(
        engagement_level=level,
        style_directive=STYLES[level],
        example_prompts=list(EXAMPLE_PROMPTS[level]),
        example_directive=example_directive,
        deepen_directive=deepen,
        needs_encouragement=encourage,
        encouraging_transition=encouraging_transition(len(user_texts)) if encourage else None,
    )


def build_guidance_context(guidance: AdaptiveGuidance) -> str:
    lines = [
        "ADAPTIVE QUESTIONING GUIDANCE:",
        "",
        f"User Engagement Level: {guidance.engagement_level.upper()}",
        "",
        "Recommended Approach:",
        f"  {guidance.style_directive}",
        "",
    ]

    if guidance.example_directive:
        lines += [
            "PROVIDE EXAMPLES:",
            "  - User tends to give brief responses",
            "  - Include specific examples to help them respond",
            '  - "For example: oily by midday, dry in winter, combination..."',
            "",
        ]

    if guidance.deepen_directive:
        lines += [
            "DIVE DEEPER:",
            "  - User is engaged and provides detail",
            "  - Ask thoughtful follow-up questions",
            "  - Explore nuances and patterns they mention",
            "",
        ]

    if guidance.encouraging_transition:
        lines += [
            "ENCOURAGEMENT:",
            "  - Their last answers were very short; open with a warm transition such as:",
            f'    "{guidance.encouraging_transition}"',
            "",
        ]

    if guidance.example_prompts:
        lines.append("Example Questions for This User:")
        lines.extend(f'  - "{prompt}"' for prompt in guidance.example_prompts)

    return "\n".join(lines).rstrip()
