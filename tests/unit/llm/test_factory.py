"""
Tests for LLM Provider Factory.

Tests provider creation from LLMSettings and main/mini model selection.
"""

import pytest

from insightbot.config import LLMSettings
from insightbot.llm.anthropic import AnthropicProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.llm.openai import OpenAIProvider


@pytest.fixture
def mock_config():
    """LLM configuration with both providers configured."""
    return LLMSettings(
        default_provider="anthropic",
        anthropic_api_key="sk-ant-REDACTED",
        anthropic_model="claude-sonnet-4-20250514",
        anthropic_model_mini="claude-3-5-haiku-20241022",
        openai_api_key="sk-test-openai-key-1234567890",
        openai_model="gpt-4o",
        openai_model_mini="gpt-4o-mini",
        temperature=0.0,
        max_tokens=2000,
        timeout=20,
    )


class TestProviderRegistry:
    def test_providers_registered(self):
        assert LLMProviderFactory.PROVIDERS == {
            "anthropic": AnthropicProvider,
            "openai": OpenAIProvider,
        }


class TestCreateProvider:
    def test_anthropic_main(self, mock_config):
        provider = LLMProviderFactory.create_provider("anthropic", mock_config)

        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-sonnet-4-20250514"
        assert provider.temperature == 0.0
        assert provider.max_tokens == 2000
        assert provider.timeout == 20

    def test_anthropic_mini(self, mock_config):
        provider = LLMProviderFactory.create_provider("anthropic", mock_config, model_type="mini")

        assert provider.model == "claude-3-5-haiku-20241022"

    def test_openai_main_and_mini(self, mock_config):
        main = LLMProviderFactory.create_provider("openai", mock_config)
        mini = LLMProviderFactory.create_provider("openai", mock_config, model_type="mini")

        assert isinstance(main, OpenAIProvider)
        assert main.model == "gpt-4o"
        assert mini.model == "gpt-4o-mini"

    def test_unknown_provider(self, mock_config):
        with pytest.raises(ValueError, match="Unknown provider type"):
            LLMProviderFactory.create_provider("google", mock_config)

    def test_missing_openai_key(self):
        config = LLMSettings(
            anthropic_api_key="sk-ant-REDACTED", openai_api_key=None
        )

        with pytest.raises(ValueError, match="OpenAI API key is required"):
            LLMProviderFactory.create_provider("openai", config)


class TestCreateDefaultProvider:
    def test_uses_default_provider(self, mock_config):
        provider = LLMProviderFactory.create_default_provider(mock_config)

        assert provider.provider_name == "anthropic"

    def test_openai_default(self, mock_config):
        mock_config.default_provider = "openai"

        provider = LLMProviderFactory.create_default_provider(mock_config, model_type="mini")

        assert provider.provider_name == "openai"
        assert provider.model == "gpt-4o-mini"
