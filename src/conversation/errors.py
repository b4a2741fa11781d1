"""Caller-facing errors for the interview pipeline."""

from llm import (
    LLMAuthError,
    LLMBadRequestError,
    LLMError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
)
from sessions.store import SessionExpiredError, SessionNotFoundError
from shared_types import TurnErrorKind

__all__ = [
    "SessionNotFoundError",
    "SessionExpiredError",
    "ProfileSynthesisError",
    "MalformedProfilePayloadError",
    "TurnError",
    "classify_llm_error",
    "session_error",
    "unexpected_error",
    "invalid_request",
]


class ProfileSynthesisError(Exception):
    """Profile could not be produced from the transcript."""


class MalformedProfilePayloadError(ProfileSynthesisError):
    """Generation returned something that is not a usable profile."""


class TurnError(Exception):
    """The one error type callers of the orchestrator see.

    ``user_message`` is safe to show as-is; ``technical`` is for logs and
    debugging only.
    """

    def __init__(
        self,
        kind: TurnErrorKind,
        user_message: str,
        *,
        retryable: bool = False,
        should_restart: bool = False,
        technical: str | None = None,
        status_code: int = 500,
    ):
        super().__init__(user_message)
        self.kind = kind
        self.user_message = user_message
        self.retryable = retryable
        self.should_restart = should_restart
        self.technical = technical
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "error": self.user_message,
            "should_retry": self.retryable,
            "should_restart": self.should_restart,
            "technical": self.technical,
        }


RATE_LIMITED_MSG = "I'm getting a lot of requests right now. Please wait a moment and try again."
UPSTREAM_MSG = (
    "I'm experiencing a temporary issue on my end. Your progress is saved - "
    "please try again in a moment."
)
TIMEOUT_MSG = "That took longer than expected. Your progress is saved - let's try that again."
BAD_REQUEST_MSG = "I didn't quite understand that. Could you rephrase your response?"
GENERIC_LLM_MSG = "I'm having trouble processing that. Could you try again?"
EXPIRED_MSG = (
    "Your session has expired. Don't worry - let's start fresh and I'll help you "
    "create your profile!"
)
NOT_FOUND_MSG = "I couldn't find your conversation. Let's start a new one!"
UNEXPECTED_MSG = "Something unexpected happened. Your progress is saved - please try again."
INVALID_REQUEST_MSG = "Invalid request. Please refresh the page and start again."
START_FAILED_MSG = (
    "I'm having trouble starting our conversation. Please refresh the page and try again."
)

# (exception type, kind, message, retryable); first isinstance match wins
_LLM_ERROR_TABLE = (
    (LLMRateLimitError, TurnErrorKind.RATE_LIMITED, RATE_LIMITED_MSG, True),
    (LLMTimeoutError, TurnErrorKind.TIMEOUT, TIMEOUT_MSG, True),
    (LLMServerError, TurnErrorKind.UPSTREAM_ERROR, UPSTREAM_MSG, True),
    (LLMBadRequestError, TurnErrorKind.BAD_REQUEST, BAD_REQUEST_MSG, False),
    (LLMAuthError, TurnErrorKind.AUTH, UPSTREAM_MSG, False),
)


def classify_llm_error(exc: LLMError) -> TurnError:
    """Map a generation failure to a caller-facing error (HTTP 503)."""
    for exc_type, kind, message, retryable in _LLM_ERROR_TABLE:
        if isinstance(exc, exc_type):
            return TurnError(
                kind, message, retryable=retryable, technical=str(exc), status_code=503
            )
    return TurnError(
        TurnErrorKind.UNKNOWN,
        GENERIC_LLM_MSG,
        retryable=True,
        technical=str(exc),
        status_code=503,
    )


def session_error(exc: SessionNotFoundError) -> TurnError:
    if isinstance(exc, SessionExpiredError):
        return TurnError(
            TurnErrorKind.SESSION_EXPIRED,
            EXPIRED_MSG,
            should_restart=True,
            technical=str(exc),
            status_code=400,
        )
    return TurnError(
        TurnErrorKind.SESSION_NOT_FOUND,
        NOT_FOUND_MSG,
        should_restart=True,
        technical=str(exc),
        status_code=400,
    )


def unexpected_error(exc: Exception) -> TurnError:
    return TurnError(
        TurnErrorKind.UNKNOWN,
        UNEXPECTED_MSG,
        retryable=True,
        technical=f"{type(exc).__name__}: {exc}",
        status_code=500,
    )


def invalid_request(technical: str | None = None) -> TurnError:
    return TurnError(
        TurnErrorKind.BAD_REQUEST,
        INVALID_REQUEST_MSG,
        should_restart=True,
        technical=technical,
        status_code=400,
    )
