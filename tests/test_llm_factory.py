"""Tests for LLM provider factory."""

from unittest.mock import MagicMock

import pytest

from llm import LLMError, create_llm_provider
from llm.providers.claude import ClaudeProvider


class TestFactory:
    def test_claude_with_client(self):
        client = MagicMock()
        provider = create_llm_provider(provider="claude", client=client)
        assert isinstance(provider, ClaudeProvider)
        assert provider.client is client

    def test_auto_resolves_to_claude(self):
        assert isinstance(create_llm_provider(provider="auto", client=MagicMock()), ClaudeProvider)
        assert isinstance(create_llm_provider(client=MagicMock()), ClaudeProvider)

    def test_model_and_timeout(self):
        provider = create_llm_provider(model="claude-x", timeout=9.0, client=MagicMock())
        assert provider.model == "claude-x"
        assert provider.timeout == 9.0

    def test_env_key_and_sdk_retries_off(self, monkeypatch):
        captured = {}

        def fake_anthropic(**kwargs):
            captured.update(kwargs)
            return MagicMock()

        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-from-env")
        monkeypatch.setattr("anthropic.Anthropic", fake_anthropic)

        create_llm_provider(provider="claude")

        assert captured == {"api_key": "sk-ant-from-env", "timeout": 25.0, "max_retries": 0}

    def test_explicit_key_wins(self, monkeypatch):
        captured = {}
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-from-env")
        monkeypatch.setattr(
            "anthropic.Anthropic", lambda **kwargs: captured.update(kwargs) or MagicMock()
        )
        create_llm_provider(api_key="sk-ant-explicit")
        assert captured["api_key"] == "sk-ant-explicit"

    def test_unknown_provider(self):
        with pytest.raises(LLMError, match="Unknown provider"):
            create_llm_provider(provider="openai", client=MagicMock())
