"""
Anthropic LLM Provider

BaseLLMProvider implementation for Claude models (default provider).
"""

import logging

import anthropic
from anthropic import AsyncAnthropic

from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.models import LLMRequest, LLMResponse, LLMUsage
from insightbot.models.agent import LLMError

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic (Claude) LLM provider.

    System messages are passed through the dedicated `system` parameter.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        temperature: float = 0.1,
        max_tokens: int = 1500,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="anthropic",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the Messages API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        system_parts = []
        messages = []
        for msg in request.messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                messages.append({"role": msg.role, "content": msg.content})

        params = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)

        try:
            response = await self.client.messages.create(**params)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise LLMError("anthropic", str(e), {"model": params["model"]}) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider="anthropic",
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        return "stop"
