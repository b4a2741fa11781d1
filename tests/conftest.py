"""Shared test fixtures for Skin Passport."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cli.config_models import PassportConfig  # noqa: E402
from llm import GenerationResult, LLMProvider, TokenUsage, ToolCall  # noqa: E402
from observability import metrics  # noqa: E402
from sessions.models import Message  # noqa: E402
from shared_types import Role  # noqa: E402

PROFILE_JSON = """{
  "skin_type": "combination",
  "skin_concerns": ["breakouts", "oily t-zone"],
  "sensitivity_level": "low",
  "oil_production": "high",
  "hydration_level": "normal",
  "pore_size": "large",
  "texture_issues": [],
  "climate_zone": "humid",
  "sun_exposure": "moderate",
  "lifestyle_factors": {"stress_level": "high", "sleep_quality": "fair"},
  "current_routine": {"morning": ["cleanser"], "evening": ["cleanser", "moisturizer"],
                      "frequency": "regular"},
  "product_preferences": {"textures_preferred": ["gel"], "ingredients_avoid": ["fragrance"]},
  "profile_summary": "Combination skin with an oily T-zone and stress-linked breakouts.",
  "key_recommendations": ["Add a BHA", "Use a gel moisturizer"],
  "confidence_scores": {"overall": 0.8, "skin_type": 0.9, "concerns": 0.8, "routine": 0.7}
}"""


class FakeProvider(LLMProvider):
    """Scripted provider: pops one reply per call and records the kwargs.

    Replies may be strings, GenerationResults or exceptions (raised).
    """

    provider_name = "fake"

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: list[dict] = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def _next(self):
        if not self.replies:
            raise AssertionError("FakeProvider ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, GenerationResult):
            return reply
        return GenerationResult(text=reply, usage=TokenUsage(input_tokens=10, output_tokens=5))

    def generate_layered(
        self,
        system_block,
        static_block,
        dynamic_block,
        messages,
        max_tokens=1024,
        temperature=0.7,
        tools=None,
    ):
        self.calls.append(
            {
                "system_block": system_block,
                "static_block": static_block,
                "dynamic_block": dynamic_block,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "tools": tools,
            }
        )
        return self._next()


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def completion_result(text: str = "Thanks, that's everything I need!") -> GenerationResult:
    """Reply that calls the completion tool."""
    return GenerationResult(
        text=text,
        tool_calls=[ToolCall(id="tu_1", name="mark_profile_ready", arguments={})],
        finish_reason="tool_calls",
    )


def make_messages(*pairs: tuple[str, str]) -> list[Message]:
    return [Message(role=Role(role), content=content) for role, content in pairs]


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def db_paths(tmp_path):
    return {
        "sessions_db": tmp_path / "sessions.db",
        "profiles_db": tmp_path / "profiles.db",
        "cache_db": tmp_path / "cache.db",
    }


@pytest.fixture
def test_config(tmp_path):
    """Config pointing at tmp paths, with no-wait single-attempt retries."""
    return PassportConfig.from_dict(
        {
            "paths": {
                "sessions_db": str(tmp_path / "sessions.db"),
                "profiles_db": str(tmp_path / "profiles.db"),
                "cache_db": str(tmp_path / "cache.db"),
                "log_file": str(tmp_path / "skinpassport.log"),
            },
            "enrichment": {"enabled": False},
            "retry": {"llm_attempts": 1, "min_wait": 0, "llm_max_wait": 0},
        }
    )
