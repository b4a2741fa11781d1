"""Base LLM provider abstraction."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""


class LLMAuthError(LLMError):
    """Authentication failure."""


class LLMServerError(LLMError):
    """Upstream 5xx or connection failure."""


class LLMTimeoutError(LLMError):
    """No response within the client timeout."""


class LLMBadRequestError(LLMError):
    """Request rejected as malformed (4xx other than auth/rate limit)."""


@dataclass
class ToolDefinition:
    """Tool definition for LLM tool calling."""

    name: str
    description: str
    input_schema: dict  # JSON Schema


@dataclass
class ToolCall:
    """A tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0


@dataclass
class GenerationResult:
    """Response from generate_layered."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"  # "stop" | "tool_calls" | "max_tokens"

    def called(self, tool_name: str) -> bool:
        return any(tc.name == tool_name for tc in self.tool_calls)


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    provider_name: str = "base"

    @abstractmethod
    def generate_layered(
        self,
        system_block: str,
        static_block: str,
        dynamic_block: str,
        messages: list[dict],
        max_tokens: int = 1024,
        temperature: float = 0.7,
        tools: list[ToolDefinition] | None = None,
    ) -> GenerationResult:
        """Generate with a three-layer system prompt.

        The system and static blocks are stable across calls and may be cached
        by the provider; the dynamic block changes every turn.

        Args:
            system_block: Core instructions
            static_block: Stable reference material (formats, examples)
            dynamic_block: Per-turn context, omitted when blank
            messages: Conversation as {"role", "content"} dicts
            max_tokens: Max response tokens
            temperature: Sampling temperature
            tools: Optional out-of-band signalling tools

        Returns:
            GenerationResult with text, token usage and any tool calls
        """
        ...
