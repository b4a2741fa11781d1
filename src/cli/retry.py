"""Retry utilities with exponential backoff."""

import logging

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from llm import LLMRateLimitError, LLMServerError

from .config_models import RetryConfig

logger = structlog.stdlib.get_logger(__name__)

# Only transient generation failures are worth a second attempt
TRANSIENT_LLM_ERRORS = (LLMRateLimitError, LLMServerError)


def _retry(max_attempts: int, min_wait: float, max_wait: float, exceptions: tuple):
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def http_retry(
    max_attempts: int = 3,
    min_wait: float = 2.0,
    max_wait: float = 10.0,
    exceptions: tuple = (Exception,),
):
    """Retry decorator for outbound HTTP lookups.

    Args:
        max_attempts: Max retry attempts
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return _retry(max_attempts, min_wait, max_wait, exceptions)


def llm_retry(
    max_attempts: int = 2,
    min_wait: float = 2.0,
    max_wait: float = 30.0,
    exceptions: tuple = TRANSIENT_LLM_ERRORS,
):
    """Retry decorator for generation calls.

    Longer max_wait for rate limiting. Timeouts and bad requests are not
    retried by default: the turn budget is already spent.
    """
    return _retry(max_attempts, min_wait, max_wait, exceptions)


def retry_from_config(config: RetryConfig, retry_type: str = "http"):
    """Create retry decorator from the retry config section.

    Args:
        config: RetryConfig section
        retry_type: "http" or "llm"
    """
    if retry_type == "llm":
        return llm_retry(
            max_attempts=config.llm_attempts,
            min_wait=config.min_wait,
            max_wait=config.llm_max_wait,
        )
    return http_retry(
        max_attempts=config.max_attempts,
        min_wait=config.min_wait,
        max_wait=config.max_wait,
    )
