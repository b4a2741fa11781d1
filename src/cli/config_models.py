"""Pydantic configuration models for Skin Passport."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LLM_PROVIDERS = {"auto", "claude"}
VALID_CACHE_BACKENDS = {"memory", "sqlite"}


class LLMConfig(BaseModel):
    """Generation service configuration."""

    provider: str = "auto"
    model: Optional[str] = None  # None = use provider default
    api_key: Optional[str] = None
    timeout: float = 25.0

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    sessions_db: Path = Path("~/.skinpassport/sessions.db")
    profiles_db: Path = Path("~/.skinpassport/profiles.db")
    cache_db: Path = Path("~/.skinpassport/cache.db")
    log_file: Path = Path("~/.skinpassport/skinpassport.log")

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.sessions_db = self.sessions_db.expanduser()
        self.profiles_db = self.profiles_db.expanduser()
        self.cache_db = self.cache_db.expanduser()
        self.log_file = self.log_file.expanduser()
        return self


class ConversationConfig(BaseModel):
    """Interview turn settings."""

    max_tokens: int = 1024
    temperature: float = 0.7
    compression_keep: int = 10
    messages_per_phase: int = 3
    terminal_phase: int = 3
    total_phases: int = 4
    completion_cap: float = 0.95
    max_user_turns: int = 25
    use_completion_tool: bool = True
    cache_enabled: bool = True

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"temperature must be 0-1, got {v}")
        return v

    @field_validator("compression_keep", "messages_per_phase", "total_phases", "max_user_turns")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_phases(self):
        if self.terminal_phase >= self.total_phases:
            raise ValueError(
                f"terminal_phase ({self.terminal_phase}) must be below total_phases "
                f"({self.total_phases})"
            )
        if not 0.0 < self.completion_cap <= 1.0:
            raise ValueError(f"completion_cap must be in (0, 1], got {self.completion_cap}")
        return self


class CacheConfig(BaseModel):
    """Reply cache configuration."""

    backend: str = "memory"
    ttl_seconds: int = 3600
    sweep_threshold: int = 1000

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in VALID_CACHE_BACKENDS:
            raise ValueError(f"Invalid cache backend: {v}. Must be one of {VALID_CACHE_BACKENDS}")
        return v


class SessionConfig(BaseModel):
    """Session lifecycle configuration."""

    ttl_hours: float = 48.0

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl_hours * 3600)


class SynthesisConfig(BaseModel):
    """Profile synthesis call settings."""

    max_tokens: int = 2048
    temperature: float = 0.3


class EnrichmentConfig(BaseModel):
    """Environment lookup configuration."""

    enabled: bool = True
    timeout: float = 5.0


class RetryConfig(BaseModel):
    """Retry/backoff configuration."""

    max_attempts: int = 3
    min_wait: float = 2.0
    max_wait: float = 10.0
    llm_attempts: int = 2
    llm_max_wait: float = 30.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class PassportConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in the API key."""
        if self.llm.api_key:
            key = self.llm.api_key
            if key.startswith("${") and key.endswith("}"):
                env_var = key[2:-1]
                self.llm.api_key = os.getenv(env_var, "")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "PassportConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
