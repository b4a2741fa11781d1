"""End-to-end turn pipeline tests against a scripted provider."""

from unittest.mock import MagicMock

import pytest

from cli.config_models import PassportConfig
from conftest import PROFILE_JSON, completion_result
from conversation.cache import InMemoryResponseCache
from conversation.orchestrator import (
    CLOSING_REPLY,
    EMPTY_REPLY,
    ConversationOrchestrator,
    current_phase,
    estimate_completion,
)
from conversation.prompts import (
    ENRICHMENT_HEADER,
    GREETING,
    INTERVIEWER_SYSTEM,
    PROFILE_REQUEST,
    PROFILE_SYSTEM,
    SUGGESTION_FORMAT,
)
from conversation.errors import TurnError
from llm import LLMRateLimitError, LLMServerError
from observability import metrics
from sessions import SessionStore
from shared_types import Role, SessionStatus, TurnErrorKind
from synthesis.storage import ProfileStore
from synthesis.synthesizer import ProfileSynthesizer

REPLY = """Oily by lunch is really common. What products do you use right now?

[SUGGESTIONS]
- Just a cleanser and moisturizer
- Cleanser, niacinamide serum and SPF every morning
- Honestly nothing consistent yet
[/SUGGESTIONS]"""


def _config(test_config: PassportConfig, **conversation) -> PassportConfig:
    data = test_config.model_dump(mode="json")
    data["conversation"].update(conversation)
    return PassportConfig.from_dict(data)


@pytest.fixture
def build(fake_provider, db_paths, clock, test_config):
    """Factory so tests can tweak config and enricher."""

    def _build(config=None, enricher=None, **conversation):
        config = config or _config(test_config, **conversation)
        return ConversationOrchestrator(
            provider=fake_provider,
            sessions=SessionStore(db_paths["sessions_db"], clock=clock),
            cache=InMemoryResponseCache(clock=clock),
            synthesizer=ProfileSynthesizer(fake_provider),
            profiles=ProfileStore(db_paths["profiles_db"]),
            enricher=enricher,
            config=config,
            clock=clock,
        )

    return _build


@pytest.fixture
def orch(build):
    return build()


class TestProgressMath:
    def test_phase(self):
        assert current_phase(0) == 0
        assert current_phase(2) == 0
        assert current_phase(3) == 1
        assert current_phase(9) == 3
        assert current_phase(40) == 3

    def test_estimate(self):
        assert estimate_completion(0, 0, False) == 0.0
        assert estimate_completion(2, 0, False) == pytest.approx(2 / 3 * 0.25)
        assert estimate_completion(6, 2, False) == pytest.approx(0.5)
        assert estimate_completion(11, 3, False) == pytest.approx(0.75 + 2 / 3 * 0.25)

    def test_estimate_capped_until_profile(self):
        assert estimate_completion(11, 3, False, cap=0.8) == 0.8
        assert estimate_completion(11, 3, True) == 1.0


class TestStart:
    def test_greeting_and_empty_session(self, orch):
        started = orch.start(owner_id="u1")
        assert started.greeting == GREETING
        assert started.is_done is False
        assert started.estimated_completion == 0.0
        assert started.environment_collected is False

        session = orch.sessions.get(started.session_token)
        assert session.messages == []
        assert session.owner_id == "u1"
        assert metrics.get("sessions.started") == 1

    def test_enrichment_stored(self, build):
        enricher = MagicMock()
        enricher.enrich.return_value = {"environment": {"uv_index": 8}}
        orch = build(enricher=enricher)

        started = orch.start(geolocation={"latitude": 51.5, "longitude": -0.1}, timezone="UTC")

        assert started.environment_collected is True
        enricher.enrich.assert_called_once_with(51.5, -0.1, "UTC", None)
        session = orch.sessions.get(started.session_token)
        assert session.enriched_context == {"environment": {"uv_index": 8}}

    def test_enrichment_failure_does_not_block_start(self, build):
        enricher = MagicMock()
        enricher.enrich.side_effect = RuntimeError("boom")
        orch = build(enricher=enricher)

        started = orch.start(geolocation={"latitude": 1.0, "longitude": 2.0})

        assert started.environment_collected is False
        assert orch.sessions.get(started.session_token).enriched_context is None

    def test_no_geolocation_skips_enricher(self, build):
        enricher = MagicMock()
        build(enricher=enricher).start()
        enricher.enrich.assert_not_called()


class TestMessage:
    def test_first_turn(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(REPLY)

        turn = orch.message(token, "My skin gets oily by lunch")

        assert turn.message.startswith("Oily by lunch is really common.")
        assert "[SUGGESTIONS]" not in turn.message
        assert turn.suggestions == [
            "Just a cleanser and moisturizer",
            "Cleanser, niacinamide serum and SPF every morning",
            "Honestly nothing consistent yet",
        ]
        assert turn.is_done is False
        assert turn.current_phase == 0
        assert turn.estimated_completion == pytest.approx(2 / 3 * 0.25)

        call = fake_provider.calls[0]
        assert call["system_block"] == INTERVIEWER_SYSTEM
        assert call["static_block"] == SUGGESTION_FORMAT
        assert call["messages"] == [{"role": "user", "content": "My skin gets oily by lunch"}]
        assert [t.name for t in call["tools"]] == ["mark_profile_ready"]
        assert "CONVERSATION MEMORY" in call["dynamic_block"]
        assert "ADAPTIVE QUESTIONING GUIDANCE" in call["dynamic_block"]

    def test_transcript_persisted(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(REPLY)
        orch.message(token, "My skin gets oily by lunch")

        session = orch.sessions.get(token)
        assert [m.role for m in session.messages] == [Role.USER, Role.ASSISTANT]
        assert session.messages[1].content.startswith("Oily by lunch")
        assert len(session.suggested_examples) == 3

    def test_phase_advances(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(REPLY, REPLY, REPLY)
        orch.message(token, "one")
        orch.message(token, "two")
        turn = orch.message(token, "three")
        assert turn.current_phase == 2
        assert turn.estimated_completion == pytest.approx(0.5)

    def test_missing_suggestions_fall_back(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue("What concerns you most about your skin?")
        turn = orch.message(token, "hello")
        assert len(turn.suggestions) == 3
        assert turn.suggestions[0] == "My skin gets oily during the day and I have breakouts"

    def test_empty_reply(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue("")
        turn = orch.message(token, "hello")
        assert turn.message == EMPTY_REPLY

    def test_prompt_is_compressed(self, build, fake_provider):
        orch = build(compression_keep=4)
        token = orch.start().session_token
        fake_provider.queue(REPLY, REPLY, REPLY, REPLY)
        for text in ("my skin is oily", "two", "three", "four"):
            orch.message(token, text)

        sent = fake_provider.calls[-1]["messages"]
        assert len(sent) == 5
        assert sent[0]["content"] == "my skin is oily"
        assert sent[1]["content"].startswith("[Previous conversation summary:")
        assert sent[-1] == {"role": "user", "content": "four"}
        # stored transcript is never compressed
        assert len(orch.sessions.get(token).messages) == 8
        # memory still sees the dropped first answer
        assert "oily/shiny skin" in fake_provider.calls[-1]["dynamic_block"]


class TestCache:
    def test_cache_hit_across_sessions(self, orch, fake_provider):
        a = orch.start().session_token
        b = orch.start().session_token
        fake_provider.queue(REPLY)

        first = orch.message(a, "My skin is oily")
        second = orch.message(b, "  my skin is OILY ")

        assert len(fake_provider.calls) == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.message == first.message
        assert second.suggestions == first.suggestions
        assert len(orch.sessions.get(b).messages) == 2

    def test_cache_disabled(self, build, fake_provider):
        orch = build(cache_enabled=False)
        a = orch.start().session_token
        b = orch.start().session_token
        fake_provider.queue(REPLY, REPLY)
        orch.message(a, "My skin is oily")
        orch.message(b, "My skin is oily")
        assert len(fake_provider.calls) == 2

    def test_completion_reply_not_cached(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(completion_result(), PROFILE_JSON)
        orch.message(token, "that's all I can think of")
        assert orch.cache.get("that's all I can think of") is None


class TestCompletion:
    def test_tool_call_completes_and_stores_profile(self, orch, fake_provider):
        token = orch.start(owner_id="u1").session_token
        fake_provider.queue(REPLY, completion_result(), PROFILE_JSON)

        orch.message(token, "My skin gets oily by lunch")
        turn = orch.message(token, "I use a gel cleanser and that's it")

        assert turn.is_done is True
        assert turn.message == "Thanks, that's everything I need!"
        assert turn.profile is not None
        assert turn.profile.skin_type == "combination"
        assert turn.profile.conversation_metadata.message_count == 4
        assert turn.profile_id is not None
        assert turn.estimated_completion == 1.0

        session = orch.sessions.peek(token)
        assert session.status == SessionStatus.COMPLETED
        assert session.completed_at is not None

        stored = orch.profiles.latest_for_owner("u1")
        assert stored.id == turn.profile_id
        assert stored.session_token == token
        assert len(stored.messages) == 4
        assert metrics.get("profiles.created") == 1

    def test_synthesis_request(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(completion_result(), PROFILE_JSON)
        orch.message(token, "that's everything")

        synth = fake_provider.calls[1]
        assert synth["system_block"] == PROFILE_SYSTEM
        assert synth["tools"] is None
        assert synth["messages"][-1] == {"role": "user", "content": PROFILE_REQUEST}
        assert synth["messages"][-2]["role"] == "assistant"

    def test_enrichment_reaches_synthesis(self, build, fake_provider):
        enricher = MagicMock()
        enricher.enrich.return_value = {"environment": {"climate_zone": "tropical"}}
        orch = build(enricher=enricher)
        token = orch.start(geolocation={"latitude": 1.3, "longitude": 103.8}).session_token
        fake_provider.queue(completion_result(), PROFILE_JSON)

        orch.message(token, "done")

        dynamic = fake_provider.calls[1]["dynamic_block"]
        assert dynamic.startswith(ENRICHMENT_HEADER)
        assert "tropical" in dynamic
        # interview turns never see the enrichment blob
        assert "tropical" not in fake_provider.calls[0]["dynamic_block"]

    def test_sentinel_completes(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue("Wonderful, I have what I need. PROFILE_READY", PROFILE_JSON)
        turn = orch.message(token, "nothing else")
        assert turn.is_done is True
        assert turn.message == "Wonderful, I have what I need."
        assert turn.profile is not None

    def test_closing_reply_when_text_empty(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(completion_result(text=""), PROFILE_JSON)
        turn = orch.message(token, "that's it")
        assert turn.message == CLOSING_REPLY

    def test_synthesis_failure_keeps_session_active(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(completion_result(), "this is not json")

        turn = orch.message(token, "that's everything")

        assert turn.is_done is True
        assert turn.profile is None
        assert turn.profile_id is None
        assert turn.estimated_completion < 1.0
        assert orch.sessions.peek(token).status == SessionStatus.ACTIVE
        assert metrics.get("profiles.failed") == 1

    def test_turn_limit_forces_completion(self, build, fake_provider):
        orch = build(max_user_turns=2)
        token = orch.start().session_token
        fake_provider.queue(REPLY, REPLY, PROFILE_JSON)

        assert orch.message(token, "one").is_done is False
        turn = orch.message(token, "two")

        assert turn.is_done is True
        assert turn.profile is not None

    def test_completion_tool_can_be_disabled(self, build, fake_provider):
        orch = build(use_completion_tool=False)
        token = orch.start().session_token
        fake_provider.queue(REPLY)
        orch.message(token, "hi")
        assert fake_provider.calls[0]["tools"] is None


class TestErrors:
    def test_empty_text(self, orch):
        token = orch.start().session_token
        with pytest.raises(TurnError) as exc:
            orch.message(token, "   ")
        assert exc.value.kind == TurnErrorKind.BAD_REQUEST
        assert exc.value.status_code == 400

    def test_unknown_session(self, orch):
        with pytest.raises(TurnError) as exc:
            orch.message("session_0_missing", "hi")
        assert exc.value.kind == TurnErrorKind.SESSION_NOT_FOUND
        assert exc.value.should_restart is True

    def test_expired_session(self, orch, clock):
        token = orch.start().session_token
        clock.advance(49 * 3600)
        with pytest.raises(TurnError) as exc:
            orch.message(token, "hi")
        assert exc.value.kind == TurnErrorKind.SESSION_EXPIRED
        assert exc.value.should_restart is True
        assert orch.sessions.peek(token).status == SessionStatus.ABANDONED

    def test_completed_session_rejects_messages(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(completion_result(), PROFILE_JSON)
        orch.message(token, "done")
        with pytest.raises(TurnError) as exc:
            orch.message(token, "one more thing")
        assert exc.value.kind == TurnErrorKind.SESSION_NOT_FOUND

    def test_rate_limit_leaves_session_untouched(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(LLMRateLimitError("429"))

        with pytest.raises(TurnError) as exc:
            orch.message(token, "hi")

        assert exc.value.kind == TurnErrorKind.RATE_LIMITED
        assert exc.value.retryable is True
        assert exc.value.status_code == 503
        assert orch.sessions.get(token).messages == []

    def test_transient_error_retried(self, build, fake_provider, test_config):
        data = test_config.model_dump(mode="json")
        data["retry"].update({"llm_attempts": 2, "min_wait": 0, "llm_max_wait": 0})
        orch = build(config=PassportConfig.from_dict(data))
        token = orch.start().session_token
        fake_provider.queue(LLMServerError("502"), REPLY)

        turn = orch.message(token, "hi")

        assert len(fake_provider.calls) == 2
        assert turn.message.startswith("Oily by lunch")

    def test_unexpected_error_wrapped(self, orch, fake_provider):
        token = orch.start().session_token
        fake_provider.queue(RuntimeError("kaboom"))
        with pytest.raises(TurnError) as exc:
            orch.message(token, "hi")
        assert exc.value.kind == TurnErrorKind.UNKNOWN
        assert exc.value.status_code == 500
        assert "kaboom" in exc.value.technical
