"""Interview turn pipeline.

One ``message()`` call: load the session, try the reply cache, otherwise
build a layered prompt (compressed transcript + memory + guidance) and call
the generation service once, parse the reply, advance the session and, when
the interview is complete, synthesize and store the profile.
"""

import sqlite3
import time
from dataclasses import dataclass, field

import structlog

from cli.config_models import PassportConfig
from cli.retry import retry_from_config
from llm import GenerationResult, LLMError, LLMProvider
from observability import log_llm_call, metrics
from sessions.models import Message, Session
from sessions.store import SessionNotFoundError, SessionStore
from shared_types import Role, TurnErrorKind
from synthesis.models import ConversationMetadata, GeneratedProfile
from synthesis.quality import conversation_quality, profile_confidence
from synthesis.storage import ProfileStore
from synthesis.synthesizer import ProfileSynthesizer

from .cache import ResponseCache
from .compressor import compress
from .errors import (
    BAD_REQUEST_MSG,
    START_FAILED_MSG,
    ProfileSynthesisError,
    TurnError,
    classify_llm_error,
    session_error,
    unexpected_error,
)
from .guidance import build_guidance_context, generate_guidance
from .memory import build_memory_context, extract_memory
from .prompts import (
    COMPLETION_SENTINEL,
    COMPLETION_TOOL,
    GREETING,
    INTERVIEWER_SYSTEM,
    PROFILE_READY_TOOL,
    SUGGESTION_FORMAT,
    join_dynamic,
)
from .suggestions import ensure_quality, parse_reply

logger = structlog.get_logger()

EMPTY_REPLY = "I had trouble processing that. Could you rephrase?"
CLOSING_REPLY = "Thank you - I have everything I need to put together your skin profile."


@dataclass
class StartResult:
    session_token: str
    greeting: str
    is_done: bool = False
    estimated_completion: float = 0.0
    environment_collected: bool = False


@dataclass
class TurnResult:
    message: str
    suggestions: list[str] = field(default_factory=list)
    is_done: bool = False
    profile: GeneratedProfile | None = None
    profile_id: str | None = None
    estimated_completion: float = 0.0
    current_phase: int = 0
    from_cache: bool = False


def current_phase(message_count: int, messages_per_phase: int = 3, terminal_phase: int = 3) -> int:
    return min(message_count // messages_per_phase, terminal_phase)


def estimate_completion(
    message_count: int,
    phase: int,
    has_profile: bool,
    messages_per_phase: int = 3,
    total_phases: int = 4,
    cap: float = 0.95,
) -> float:
    """Progress fraction: phase share plus progress within the phase, capped until done."""
    if has_profile:
        return 1.0
    phase_share = 1 / total_phases
    intra = (message_count % messages_per_phase) / messages_per_phase * phase_share
    return min(phase / total_phases + intra, cap)


class ConversationOrchestrator:
    """Runs interview turns against the session store and generation service."""

    def __init__(
        self,
        provider: LLMProvider,
        sessions: SessionStore,
        cache: ResponseCache,
        synthesizer: ProfileSynthesizer,
        profiles: ProfileStore,
        enricher=None,
        config: PassportConfig | None = None,
        clock=time.time,
    ):
        self.provider = provider
        self.sessions = sessions
        self.cache = cache
        self.synthesizer = synthesizer
        self.profiles = profiles
        self.enricher = enricher
        self.config = config or PassportConfig()
        self.conv = self.config.conversation
        self._clock = clock
        self._generate = retry_from_config(self.config.retry, "llm")(self._generate_once)

    # -- start ---------------------------------------------------------------

    def start(
        self,
        owner_id: str | None = None,
        geolocation: dict | None = None,
        timezone: str | None = None,
        user_agent: str | None = None,
    ) -> StartResult:
        """Open a new session and return the fixed greeting."""
        enriched = self._enrich(geolocation, timezone, user_agent)
        try:
            session = self.sessions.create(
                owner_id=owner_id, geolocation=geolocation, enriched_context=enriched
            )
        except sqlite3.Error as e:
            logger.error("orchestrator.start_failed", error=str(e))
            raise TurnError(
                TurnErrorKind.UNKNOWN,
                START_FAILED_MSG,
                retryable=True,
                technical=str(e),
                status_code=500,
            ) from e

        metrics.counter("sessions.started")
        logger.info(
            "orchestrator.started",
            session_token=session.token,
            environment_collected=enriched is not None,
        )
        return StartResult(
            session_token=session.token,
            greeting=GREETING,
            environment_collected=enriched is not None,
        )

    def _enrich(self, geolocation, tz, user_agent) -> dict | None:
        if not self.enricher or not geolocation:
            return None
        lat, lon = geolocation.get("latitude"), geolocation.get("longitude")
        if lat is None or lon is None:
            return None
        try:
            return self.enricher.enrich(lat, lon, tz, user_agent)
        except Exception as e:
            # Enrichment is optional context; start must not fail on it
            logger.warning("orchestrator.enrichment_failed", error=str(e))
            return None

    # -- message -------------------------------------------------------------

    def message(self, token: str, text: str) -> TurnResult:
        """Process one user turn.

        Raises:
            TurnError: for every failure; carries the caller-facing message
        """
        try:
            return self._turn(token, text)
        except TurnError:
            raise
        except Exception as e:
            logger.exception("orchestrator.unexpected_error", session_token=token)
            raise unexpected_error(e) from e

    def _turn(self, token: str, text: str) -> TurnResult:
        if not text or not text.strip():
            raise TurnError(
                TurnErrorKind.BAD_REQUEST,
                BAD_REQUEST_MSG,
                technical="empty message",
                status_code=400,
            )

        try:
            session = self.sessions.get(token)
        except SessionNotFoundError as e:
            logger.info("orchestrator.session_unavailable", session_token=token, error=str(e))
            raise session_error(e) from e

        messages = [*session.messages, Message(role=Role.USER, content=text)]
        user_turns = sum(1 for m in messages if m.role == Role.USER)

        cached = self.cache.get(text) if self.conv.cache_enabled else None
        if cached is not None:
            reply, tool_done = cached, False
            logger.info("orchestrator.cache_hit", session_token=token)
        else:
            result = self._call_model(session, messages)
            reply, tool_done = result.text, result.called(COMPLETION_TOOL)

        parsed = parse_reply(reply, COMPLETION_SENTINEL)
        is_done = tool_done or parsed.completion_signaled
        if not is_done and user_turns >= self.conv.max_user_turns:
            logger.info("orchestrator.turn_limit_reached", session_token=token, turns=user_turns)
            is_done = True

        if cached is None and not is_done and self.conv.cache_enabled:
            self.cache.put(text, reply)

        suggestions = ensure_quality(parsed, messages)
        display = parsed.message or (CLOSING_REPLY if is_done else EMPTY_REPLY)
        messages.append(Message(role=Role.ASSISTANT, content=display))

        phase = current_phase(len(messages), self.conv.messages_per_phase, self.conv.terminal_phase)
        estimate = self._estimate(len(messages), phase, has_profile=False)

        try:
            self.sessions.update(
                token,
                messages=messages,
                current_phase=phase,
                suggested_examples=suggestions,
                estimated_completion=estimate,
            )
        except SessionNotFoundError as e:
            raise session_error(e) from e
        except sqlite3.Error as e:
            # non-fatal: the caller still gets this reply
            logger.error("orchestrator.update_failed", session_token=token, error=str(e))

        profile, profile_id = None, None
        if is_done:
            profile, profile_id = self._finish(session, messages)
            if profile is not None:
                estimate = self._estimate(len(messages), phase, has_profile=True)

        return TurnResult(
            message=display,
            suggestions=suggestions,
            is_done=is_done,
            profile=profile,
            profile_id=profile_id,
            estimated_completion=estimate,
            current_phase=phase,
            from_cache=cached is not None,
        )

    def _estimate(self, message_count: int, phase: int, has_profile: bool) -> float:
        return estimate_completion(
            message_count,
            phase,
            has_profile,
            messages_per_phase=self.conv.messages_per_phase,
            total_phases=self.conv.total_phases,
            cap=self.conv.completion_cap,
        )

    def _call_model(self, session: Session, messages: list[Message]) -> GenerationResult:
        # Heuristics read the full transcript; only the prompt is compressed
        memory = extract_memory(messages)
        guidance = generate_guidance(messages)
        dynamic = join_dynamic(build_memory_context(memory), build_guidance_context(guidance))
        compressed = compress(messages, self.conv.compression_keep)
        prompt_messages = [m.as_llm_message() for m in compressed]

        start = time.monotonic()
        try:
            with metrics.timer("conversation_turn"):
                result = self._generate(dynamic, prompt_messages)
        except LLMError as e:
            turn_error = classify_llm_error(e)
            logger.error(
                "orchestrator.generation_failed",
                session_token=session.token,
                kind=str(turn_error.kind),
                error=str(e),
            )
            raise turn_error from e

        log_llm_call(
            "conversation",
            result.usage,
            int((time.monotonic() - start) * 1000),
            session_token=session.token,
        )
        return result

    def _generate_once(self, dynamic: str, prompt_messages: list[dict]) -> GenerationResult:
        return self.provider.generate_layered(
            system_block=INTERVIEWER_SYSTEM,
            static_block=SUGGESTION_FORMAT,
            dynamic_block=dynamic,
            messages=prompt_messages,
            max_tokens=self.conv.max_tokens,
            temperature=self.conv.temperature,
            tools=[PROFILE_READY_TOOL] if self.conv.use_completion_tool else None,
        )

    def _finish(
        self, session: Session, messages: list[Message]
    ) -> tuple[GeneratedProfile | None, str | None]:
        """Synthesize, store and close out. Failures here never fail the turn."""
        try:
            profile = self.synthesizer.synthesize(
                messages, session.enriched_context, session_token=session.token
            )
        except ProfileSynthesisError as e:
            metrics.counter("profiles.failed")
            logger.error("orchestrator.synthesis_failed", session_token=session.token, error=str(e))
            return None, None

        quality = conversation_quality(messages)
        duration = max(0, round((self._clock() - session.created_at.timestamp()) / 60))
        profile = profile.with_metadata(
            ConversationMetadata(
                message_count=len(messages),
                duration_minutes=duration,
                quality_score=quality,
            )
        )

        profile_id = None
        try:
            profile_id = self.profiles.save(
                profile,
                session_token=session.token,
                owner_id=session.owner_id,
                messages=messages,
            )
        except sqlite3.Error as e:
            logger.error(
                "orchestrator.profile_save_failed", session_token=session.token, error=str(e)
            )

        try:
            self.sessions.complete(session.token)
        except (SessionNotFoundError, sqlite3.Error) as e:
            logger.error("orchestrator.complete_failed", session_token=session.token, error=str(e))

        metrics.counter("profiles.created")
        logger.info(
            "orchestrator.profile_ready",
            session_token=session.token,
            profile_id=profile_id,
            quality=quality,
            confidence=profile_confidence(messages, quality)["overall"],
            model_confidence=profile.confidence_scores.overall,
        )
        return profile, profile_id
