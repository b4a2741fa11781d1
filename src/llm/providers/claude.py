"""Claude (Anthropic) LLM provider."""

from ..base import (
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

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider."""

    provider_name = "claude"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 25.0,
        client=None,
    ):
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout

        if client:
            self.client = client
            return

        try:
            from anthropic import Anthropic
        except ImportError:
            raise LLMError("anthropic package not installed. Run: pip install anthropic")

        # SDK retries off: retry policy lives with the caller
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _handle_error(self, e: Exception):
        import anthropic

        if isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
            raise LLMAuthError(f"Claude auth failed: {e}") from e
        if isinstance(e, anthropic.RateLimitError):
            raise LLMRateLimitError(f"Claude rate limit: {e}") from e
        if isinstance(e, anthropic.APITimeoutError):
            raise LLMTimeoutError(f"Claude timeout after {self.timeout}s: {e}") from e
        if isinstance(e, (anthropic.BadRequestError, anthropic.UnprocessableEntityError)):
            raise LLMBadRequestError(f"Claude rejected request: {e}") from e
        if isinstance(e, anthropic.APIStatusError) and e.status_code >= 500:
            raise LLMServerError(f"Claude server error ({e.status_code}): {e}") from e
        if isinstance(e, anthropic.APIConnectionError):
            raise LLMServerError(f"Claude connection error: {e}") from e
        if isinstance(e, anthropic.APIError):
            raise LLMError(f"Claude API error: {e}") from e
        raise LLMError(f"Claude error: {e}") from e

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
        system = [
            {"type": "text", "text": system_block, "cache_control": {"type": "ephemeral"}},
        ]
        if static_block:
            system.append(
                {"type": "text", "text": static_block, "cache_control": {"type": "ephemeral"}}
            )
        if dynamic_block and dynamic_block.strip():
            system.append({"type": "text", "text": dynamic_block})

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.input_schema}
                for t in tools
            ]
            kwargs["tool_choice"] = {"type": "auto"}

        try:
            response = self.client.messages.create(**kwargs)
        except Exception as e:
            self._handle_error(e)

        text_parts = []
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))

        if response.stop_reason == "tool_use":
            finish = "tool_calls"
        elif response.stop_reason == "max_tokens":
            finish = "max_tokens"
        else:
            finish = "stop"

        return GenerationResult(
            text="\n".join(text_parts),
            usage=_usage_from(response.usage),
            tool_calls=tool_calls,
            finish_reason=finish,
        )


def _usage_from(usage) -> TokenUsage:
    """Read SDK usage, tolerating absent cache fields."""
    return TokenUsage(
        input_tokens=getattr(usage, "input_tokens", 0) or 0,
        output_tokens=getattr(usage, "output_tokens", 0) or 0,
        cache_creation_tokens=getattr(usage, "cache_creation_input_tokens", 0) or 0,
        cache_read_tokens=getattr(usage, "cache_read_input_tokens", 0) or 0,
    )
