"""Shared CLI utilities: component wiring from config."""

import structlog
from rich.console import Console

from cli.config import get_paths
from cli.config_models import PassportConfig

console = Console()
logger = structlog.get_logger()


def get_session_store(config: PassportConfig):
    from sessions import SessionStore

    paths = get_paths(config)
    return SessionStore(paths["sessions_db"], ttl_seconds=config.session.ttl_seconds)


def get_profile_store(config: PassportConfig):
    from synthesis.storage import ProfileStore

    return ProfileStore(get_paths(config)["profiles_db"])


def build_orchestrator(config: PassportConfig, provider=None):
    """Initialize the interview pipeline from config.

    Args:
        config: Loaded config model
        provider: Pre-built LLM provider (None = create from ``config.llm``)
    """
    from conversation.cache import create_response_cache
    from conversation.orchestrator import ConversationOrchestrator
    from enrichment import EnvironmentEnricher
    from llm import create_llm_provider
    from synthesis.synthesizer import ProfileSynthesizer

    paths = get_paths(config)
    if provider is None:
        provider = create_llm_provider(
            provider=config.llm.provider,
            api_key=config.llm.api_key,
            model=config.llm.model,
            timeout=config.llm.timeout,
        )

    enricher = None
    if config.enrichment.enabled:
        enricher = EnvironmentEnricher(timeout=config.enrichment.timeout)

    logger.info(
        "orchestrator.configured",
        provider=provider.provider_name,
        cache_backend=config.cache.backend,
        cache_enabled=config.conversation.cache_enabled,
    )
    return ConversationOrchestrator(
        provider=provider,
        sessions=get_session_store(config),
        cache=create_response_cache(
            config.cache.backend,
            db_path=paths["cache_db"],
            ttl=config.cache.ttl_seconds,
            sweep_threshold=config.cache.sweep_threshold,
        ),
        synthesizer=ProfileSynthesizer(
            provider,
            max_tokens=config.synthesis.max_tokens,
            temperature=config.synthesis.temperature,
        ),
        profiles=get_profile_store(config),
        enricher=enricher,
        config=config,
    )
