"""
Base Agent Framework

Abstract base class for all agents in the InsightBot pipeline.
Provides consistent interface, timing, logging, and error handling.

Usage:
    class MyAgent(BaseAgent):
        def __init__(self):
            super().__init__(name="MyAgent")

        async def execute(self, input: AgentInput) -> AgentOutput:
            # Agent-specific logic here
            return AgentOutput(
                success=True,
                data={"result": "value"},
                metadata=self._create_metadata()
            )
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.models import LLMRequest
from insightbot.models.agent import (
    AgentError,
    AgentInput,
    AgentMetadata,
    AgentOutput,
    DecodeError,
    LLMError,
)
from insightbot.utils.json_decoder import ModelT, decode_model

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """
    Base class for all agents in the InsightBot pipeline.

    Responsibilities:
        - Define standard interface via execute() method
        - Provide timing and performance tracking
        - Handle logging and error propagation
        - Manage execution metadata

    Attributes:
        name: Unique identifier for this agent
        max_retries: Retry attempts for recoverable LLM errors in _call_llm()
        llm: LLM provider used by _call_llm()

    Design Pattern:
        Every pipeline agent declares a fallback value and returns it when the
        LLM fails or answers with something unusable, so execute() only raises
        for programming errors. The __call__ method wraps execute() with:
        - Performance timing
        - Error handling and logging
        - Metadata collection
    """

    def __init__(
        self,
        name: str,
        llm_provider: BaseLLMProvider | None = None,
        max_retries: int = 3,
    ):
        """
        Initialize base agent.

        Args:
            name: Unique identifier for this agent (e.g., "IntentAgent")
            llm_provider: Provider used for completions (optional for non-LLM agents)
            max_retries: Number of retry attempts for recoverable LLM errors
        """
        self.name = name
        self.llm = llm_provider
        self.max_retries = max_retries
        self._metadata = self._create_metadata()

        logger.info(
            f"Initialized {self.name}",
            extra={"agent": self.name, "max_retries": max_retries},
        )

    @abstractmethod
    async def execute(self, input: AgentInput) -> AgentOutput:
        """
        Execute the agent's core logic.

        Must be implemented by concrete agents.

        Raises:
            AgentError: On execution failures (recoverable or not)
        """
        pass

    async def __call__(self, input: AgentInput) -> AgentOutput:
        """
        Execute the agent with timing, logging, and error handling.

        This method wraps execute() and should NOT be overridden.

        Raises:
            AgentError: If execute() fails
        """
        start_time = time.perf_counter()
        self._metadata = self._create_metadata()

        logger.info(
            f"Starting {self.name}",
            extra={
                "agent": self.name,
                "query": input.query[:100],
                "context_keys": list(input.context.keys()),
            },
        )

        try:
            output = await self.execute(input)
        except AgentError as e:
            self._finish_with_error(start_time, str(e))
            logger.error(
                f"Agent error in {self.name}",
                extra={
                    "agent": self.name,
                    "error": str(e),
                    "recoverable": e.recoverable,
                    "context": e.context,
                },
            )
            raise
        except Exception as e:
            self._finish_with_error(start_time, str(e))
            logger.error(
                f"Unexpected error in {self.name}",
                extra={
                    "agent": self.name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise AgentError(
                agent=self.name,
                message=f"Unexpected error: {str(e)}",
                recoverable=False,
                context={"error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._metadata.mark_complete()
        self._metadata.duration_ms = duration_ms
        output.metadata = self._metadata

        logger.info(
            f"Completed {self.name}",
            extra={
                "agent": self.name,
                "success": output.success,
                "duration_ms": duration_ms,
                "llm_calls": self._metadata.llm_calls,
                "used_fallback": self._metadata.used_fallback,
            },
        )
        return output

    def _finish_with_error(self, start_time: float, error: str) -> None:
        self._metadata.mark_complete()
        self._metadata.duration_ms = (time.perf_counter() - start_time) * 1000
        self._metadata.error = error

    def _create_metadata(self) -> AgentMetadata:
        """Create fresh metadata object for tracking execution."""
        return AgentMetadata(agent_name=self.name)

    def _track_llm_call(self, tokens: int | None = None) -> None:
        """
        Track an LLM API call in metadata.

        Args:
            tokens: Optional token count for this call
        """
        self._metadata.llm_calls += 1
        if tokens:
            current_tokens = self._metadata.tokens_used or 0
            self._metadata.tokens_used = current_tokens + tokens

        logger.debug(
            f"LLM call tracked for {self.name}",
            extra={
                "agent": self.name,
                "total_llm_calls": self._metadata.llm_calls,
                "tokens_this_call": tokens,
                "total_tokens": self._metadata.tokens_used,
            },
        )

    def _mark_fallback(self, reason: str) -> None:
        """Record that the agent answered with its declared fallback."""
        self._metadata.used_fallback = True
        logger.info(
            f"{self.name} using fallback",
            extra={"agent": self.name, "reason": reason},
        )

    async def _call_llm(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        system: str | None = None,
    ) -> str:
        """
        Send a single-turn prompt and return the response text.

        Recoverable provider errors (LLMError) are retried up to max_retries
        times with exponential backoff (1s, 2s, 4s, ...) before propagating.

        Raises:
            AgentError: If no provider is configured
            LLMError: If the provider still fails after all retries
            Exception: Whatever else the provider raises (callers fall back)
        """
        if self.llm is None:
            raise AgentError(self.name, "No LLM provider configured", recoverable=False)

        request = LLMRequest.from_prompt(
            prompt,
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        attempt = 0
        while True:
            try:
                response = await self.llm.generate(request)
                break
            except LLMError as e:
                attempt += 1
                if not e.recoverable or attempt > self.max_retries:
                    logger.warning(
                        f"LLM call failed for {self.name} after {attempt} attempts",
                        extra={"agent": self.name, "error": str(e), "attempts": attempt},
                    )
                    raise

                wait_time = 2 ** (attempt - 1)
                logger.info(
                    f"Retrying LLM call for {self.name} in {wait_time}s",
                    extra={"agent": self.name, "error": str(e), "wait_time": wait_time},
                )
                await self._sleep(wait_time)

        self._track_llm_call(response.usage.total_tokens if response.usage else None)
        return response.content

    def _decode(self, text: str, model: type[ModelT]) -> ModelT:
        """
        Decode an LLM answer into ``model``.

        Raises:
            DecodeError: If no cleanup tier yields a valid object
        """
        decoded = decode_model(text, model, None)
        if decoded is None:
            preview = text[:200] if isinstance(text, str) else repr(text)[:200]
            raise DecodeError(
                self.name,
                f"Undecodable {model.__name__}",
                {"preview": preview},
            )
        return decoded

    async def _sleep(self, seconds: float) -> None:
        """Async sleep utility for retry backoff."""
        await asyncio.sleep(seconds)
