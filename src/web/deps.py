"""Dependency injection for FastAPI routes."""

from functools import lru_cache

from cli.config import load_config_model
from cli.config_models import PassportConfig
from cli import utils
from conversation.orchestrator import ConversationOrchestrator
from synthesis.storage import ProfileStore


@lru_cache
def get_config() -> PassportConfig:
    """Load shared config from ~/.skinpassport/config.yaml."""
    return load_config_model()


@lru_cache
def get_profile_store() -> ProfileStore:
    return utils.get_profile_store(get_config())


@lru_cache
def get_orchestrator() -> ConversationOrchestrator:
    return utils.build_orchestrator(get_config())
