"""Shared enums and types for skin passport onboarding."""

from enum import StrEnum


class SessionStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class EngagementLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Confidence(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConversationTone(StrEnum):
    DETAILED = "detailed"
    CASUAL = "casual"
    BRIEF = "brief"


class TurnErrorKind(StrEnum):
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXPIRED = "session_expired"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    BAD_REQUEST = "bad_request"
    AUTH = "auth"
    UNKNOWN = "unknown"
