"""
OpenAI LLM Provider

BaseLLMProvider implementation for OpenAI chat models.
"""

import logging

import openai
from openai import AsyncOpenAI

from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.models import LLMRequest, LLMResponse, LLMUsage
from insightbot.models.agent import LLMError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.1,
        max_tokens: int = 1500,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="openai",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.client = AsyncOpenAI(api_key=api_key, timeout=float(timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using the Chat Completions API.

        Raises:
            LLMError: On API errors and timeouts
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        model = request.model or self.model
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": msg.role, "content": msg.content} for msg in request.messages],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise LLMError("openai", f"Timeout: {e}", {"model": model}) from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise LLMError("openai", str(e), {"model": model}) from e

        choice = response.choices[0]
        usage = response.usage
        llm_response = LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            finish_reason=self._map_finish_reason(choice.finish_reason),
            provider="openai",
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason in ("length", "content_filter"):
            return reason
        return "stop"
