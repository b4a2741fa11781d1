"""LLM abstraction layer for the generation service boundary."""

from .base import (
    GenerationResult,
    LLMAuthError,
    LLMBadRequestError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from .factory import create_llm_provider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMServerError",
    "LLMTimeoutError",
    "LLMBadRequestError",
    "ToolDefinition",
    "ToolCall",
    "TokenUsage",
    "GenerationResult",
]
