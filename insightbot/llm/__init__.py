"""
LLM Provider Module

Provider abstraction for single-turn completions (Anthropic, OpenAI).

Usage:
    from insightbot.llm import LLMProviderFactory, LLMRequest
    from insightbot.config import get_settings

    provider = LLMProviderFactory.create_default_provider(get_settings().llm)
    response = await provider.generate(LLMRequest.from_prompt("Olá!"))
    print(response.content)
"""

from insightbot.llm.anthropic import AnthropicProvider
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage
from insightbot.llm.openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "LLMMessage",
    "LLMProviderFactory",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "OpenAIProvider",
]
