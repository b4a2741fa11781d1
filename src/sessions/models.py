"""Data models for onboarding conversation sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from shared_types import Role, SessionStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "role": str(self.role),
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        ts = data.get("timestamp")
        return cls(
            role=Role(data["role"]),
            content=data.get("content", ""),
            timestamp=datetime.fromisoformat(ts) if ts else utcnow(),
        )

    def as_llm_message(self) -> dict:
        """Shape expected by the generation service."""
        return {"role": str(self.role), "content": self.content}


@dataclass
class Session:
    """One onboarding interview, keyed by its opaque token."""

    token: str
    owner_id: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    messages: list[Message] = field(default_factory=list)
    current_phase: int = 0
    geolocation: dict | None = None
    enriched_context: dict | None = None
    suggested_examples: list[str] = field(default_factory=list)
    estimated_completion: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    expires_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def message_count(self) -> int:
        return len(self.messages)
