"""Onboarding sessions: models and durable store."""

from .models import Message, Session
from .store import SessionExpiredError, SessionNotFoundError, SessionStore

__all__ = [
    "Message",
    "Session",
    "SessionStore",
    "SessionNotFoundError",
    "SessionExpiredError",
]
