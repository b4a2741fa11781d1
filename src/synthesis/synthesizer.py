"""Turn a finished interview transcript into a GeneratedProfile."""

import json
import time
from typing import get_args

import structlog
from pydantic import ValidationError

from conversation.errors import MalformedProfilePayloadError, ProfileSynthesisError
from conversation.prompts import ENRICHMENT_HEADER, PROFILE_REQUEST, PROFILE_SYSTEM
from llm import LLMError, LLMProvider
from observability import log_llm_call, metrics
from sessions.models import Message

from .models import (
    ClimateZone,
    ConfidenceScores,
    CurrentRoutine,
    ExerciseFrequency,
    Exposure,
    GeneratedProfile,
    HydrationLevel,
    Level,
    LifestyleFactors,
    OilProduction,
    PoreSize,
    ProductPreferences,
    Quality,
    RoutineFrequency,
    SkinType,
)

logger = structlog.get_logger()

REQUIRED_FIELDS = ("skin_type", "skin_concerns", "profile_summary")
LIST_REQUIRED_FIELDS = {"skin_concerns"}

# Near-miss spellings the model produces for enum values
_ALIASES = {
    "moderate": "medium",
    "mid": "medium",
    "very high": "very_high",
    "very-high": "very_high",
    "well hydrated": "well_hydrated",
    "well-hydrated": "well_hydrated",
    "very consistent": "very_consistent",
    "very-consistent": "very_consistent",
}


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1] if "\n" in text else ""
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_profile_payload(text: str) -> dict:
    """Decode the model reply. Raises MalformedProfilePayloadError."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("profile_synthesis.parse_failed", response=cleaned[:200])
        raise MalformedProfilePayloadError(f"Profile reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedProfilePayloadError("Profile reply is not a JSON object")

    # An empty concern list is a valid answer; only absence is an error
    missing = [
        f
        for f in REQUIRED_FIELDS
        if data.get(f) is None or (f not in LIST_REQUIRED_FIELDS and not data[f])
    ]
    if missing:
        raise MalformedProfilePayloadError(f"Profile missing required fields: {', '.join(missing)}")
    return data


def _as_list(value) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _choice(value, allowed_type, default):
    """Normalize value into the Literal's allowed set, else default."""
    allowed = set(get_args(allowed_type))
    if isinstance(value, str):
        v = value.strip().lower()
        v = _ALIASES.get(v, v)
        if v in allowed:
            return v
        v = v.replace(" ", "_").replace("-", "_")
        if v in allowed:
            return v
    return default


def _score(value) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


def build_profile(data: dict) -> GeneratedProfile:
    """Build GeneratedProfile from decoded JSON, coercing and clamping fields."""
    lifestyle = _as_dict(data.get("lifestyle_factors"))
    routine = _as_dict(data.get("current_routine"))
    prefs = _as_dict(data.get("product_preferences"))
    scores = _as_dict(data.get("confidence_scores"))

    try:
        return GeneratedProfile(
            skin_type=_choice(data.get("skin_type"), SkinType, "unknown"),
            skin_concerns=_as_list(data.get("skin_concerns")),
            sensitivity_level=_choice(data.get("sensitivity_level"), Level, "medium"),
            oil_production=_choice(data.get("oil_production"), OilProduction, "moderate"),
            hydration_level=_choice(data.get("hydration_level"), HydrationLevel, "normal"),
            pore_size=_choice(data.get("pore_size"), PoreSize, "medium"),
            texture_issues=_as_list(data.get("texture_issues")),
            climate_zone=_choice(data.get("climate_zone"), ClimateZone, None),
            sun_exposure=_choice(data.get("sun_exposure"), Exposure, None),
            lifestyle_factors=LifestyleFactors(
                stress_level=_choice(lifestyle.get("stress_level"), Exposure, None),
                sleep_quality=_choice(lifestyle.get("sleep_quality"), Quality, None),
                diet_quality=_choice(lifestyle.get("diet_quality"), Quality, None),
                exercise_frequency=_choice(
                    lifestyle.get("exercise_frequency"), ExerciseFrequency, None
                ),
            ),
            current_routine=CurrentRoutine(
                morning=_as_list(routine.get("morning")),
                evening=_as_list(routine.get("evening")),
                frequency=_choice(routine.get("frequency"), RoutineFrequency, "inconsistent"),
            ),
            product_preferences=ProductPreferences(
                textures_preferred=_as_list(prefs.get("textures_preferred")),
                textures_disliked=_as_list(prefs.get("textures_disliked")),
                ingredients_loved=_as_list(prefs.get("ingredients_loved")),
                ingredients_avoid=_as_list(prefs.get("ingredients_avoid")),
            ),
            profile_summary=str(data["profile_summary"]).strip(),
            key_recommendations=_as_list(data.get("key_recommendations"))[:5],
            confidence_scores=ConfidenceScores(
                overall=_score(scores.get("overall")),
                skin_type=_score(scores.get("skin_type")),
                concerns=_score(scores.get("concerns")),
                routine=_score(scores.get("routine")),
            ),
        )
    except ValidationError as e:
        raise MalformedProfilePayloadError(f"Profile failed validation: {e}") from e


class ProfileSynthesizer:
    """One structured-output generation call per completed interview."""

    def __init__(self, provider: LLMProvider, max_tokens: int = 2048, temperature: float = 0.3):
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature

    def synthesize(
        self,
        messages: list[Message],
        enriched_context: dict | None = None,
        session_token: str | None = None,
    ) -> GeneratedProfile:
        """Generate and validate a profile.

        Raises:
            MalformedProfilePayloadError: reply unusable as a profile
            ProfileSynthesisError: generation call failed
        """
        dynamic = ""
        if enriched_context:
            dynamic = ENRICHMENT_HEADER + json.dumps(enriched_context, indent=2)

        llm_messages = [m.as_llm_message() for m in messages]
        # A trailing assistant turn would be treated as a prefill to continue
        if not llm_messages or llm_messages[-1]["role"] != "user":
            llm_messages.append({"role": "user", "content": PROFILE_REQUEST})

        start = time.monotonic()
        try:
            with metrics.timer("profile_synthesis"):
                result = self.provider.generate_layered(
                    system_block=PROFILE_SYSTEM,
                    static_block="",
                    dynamic_block=dynamic,
                    messages=llm_messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
        except LLMError as e:
            logger.error("profile_synthesis.llm_failed", session_token=session_token, error=str(e))
            raise ProfileSynthesisError(f"Profile generation failed: {e}") from e

        log_llm_call(
            "profile_synthesis",
            result.usage,
            int((time.monotonic() - start) * 1000),
            session_token=session_token,
        )

        profile = build_profile(parse_profile_payload(result.text))
        logger.info(
            "profile_synthesis.done",
            session_token=session_token,
            skin_type=profile.skin_type,
            concerns=len(profile.skin_concerns),
            confidence=profile.confidence_scores.overall,
        )
        return profile
