"""
Unit tests for BaseAgent

Tests the base agent framework including:
- Abstract class enforcement
- Timing and metadata tracking
- Retry logic for recoverable LLM errors
- Decoding LLM answers into models
- LLM call helper and fallback bookkeeping
"""

from unittest.mock import AsyncMock

import pytest

from insightbot.agents.base import BaseAgent
from insightbot.models.agent import (
    AgentError,
    AgentInput,
    AgentMetadata,
    AgentOutput,
    DecodeError,
    LLMError,
)


class EchoAgent(BaseAgent):
    """Agent that asks the LLM once and echoes the answer."""

    def __init__(self, llm_provider=None, **kwargs):
        super().__init__(name="EchoAgent", llm_provider=llm_provider, **kwargs)

    async def execute(self, input: AgentInput) -> AgentOutput:
        text = await self._call_llm(input.query, temperature=0.0, max_tokens=10, system="seja breve")
        return AgentOutput(success=True, data={"text": text}, metadata=self._metadata)


class ScriptedAgent(BaseAgent):
    """Agent whose execute() raises the queued errors before succeeding."""

    def __init__(self, errors):
        super().__init__(name="ScriptedAgent")
        self.errors = list(errors)
        self.attempts = 0

    async def execute(self, input: AgentInput) -> AgentOutput:
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return AgentOutput(success=True, data={"attempts": self.attempts}, metadata=self._metadata)


@pytest.fixture
def agent_input():
    return AgentInput(query="quantos leads temos?")


class TestBaseAgentInstantiation:
    def test_cannot_instantiate_base_agent_directly(self):
        """BaseAgent is abstract and cannot be instantiated."""
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            BaseAgent(name="TestAgent")

    def test_subclass_must_implement_execute(self):
        class IncompleteAgent(BaseAgent):
            pass

        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            IncompleteAgent(name="IncompleteAgent")

    def test_defaults(self):
        agent = EchoAgent()

        assert agent.name == "EchoAgent"
        assert agent.max_retries == 3
        assert agent.llm is None


class TestExecution:
    @pytest.mark.asyncio
    async def test_call_sets_metadata(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_response("ok")
        agent = EchoAgent(mock_llm_provider)

        output = await agent(agent_input)

        assert output.data == {"text": "ok"}
        assert output.metadata.agent_name == "EchoAgent"
        assert output.metadata.llm_calls == 1
        assert output.metadata.tokens_used == 2
        assert output.metadata.duration_ms is not None
        assert output.metadata.completed_at is not None
        assert output.metadata.used_fallback is False

    @pytest.mark.asyncio
    async def test_call_llm_builds_single_turn_request(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_response("ok")

        await EchoAgent(mock_llm_provider)(agent_input)

        request = mock_llm_provider.generate.call_args.args[0]
        assert [m.role for m in request.messages] == ["system", "user"]
        assert request.messages[-1].content == "quantos leads temos?"
        assert request.temperature == 0.0
        assert request.max_tokens == 10

    @pytest.mark.asyncio
    async def test_metadata_is_fresh_per_call(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_response("ok")
        agent = EchoAgent(mock_llm_provider)

        await agent(agent_input)
        output = await agent(agent_input)

        assert output.metadata.llm_calls == 1

    @pytest.mark.asyncio
    async def test_missing_provider_is_not_recoverable(self, agent_input):
        with pytest.raises(AgentError) as exc_info:
            await EchoAgent()(agent_input)

        assert exc_info.value.recoverable is False
        assert "No LLM provider configured" in str(exc_info.value)


class TestErrors:
    @pytest.mark.asyncio
    async def test_agent_error_propagates_with_metadata(self, agent_input):
        agent = ScriptedAgent([AgentError("ScriptedAgent", "bad input", recoverable=False)])

        with pytest.raises(AgentError):
            await agent(agent_input)

        assert agent.attempts == 1
        assert agent._metadata.error == "[ScriptedAgent] bad input"
        assert agent._metadata.completed_at is not None

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_wrapped(self, agent_input):
        agent = ScriptedAgent([KeyError("missing")])

        with pytest.raises(AgentError) as exc_info:
            await agent(agent_input)

        assert exc_info.value.recoverable is False
        assert exc_info.value.context == {"error_type": "KeyError"}
        assert isinstance(exc_info.value.__cause__, KeyError)


class TestLLMRetries:
    @pytest.mark.asyncio
    async def test_recoverable_llm_errors_are_retried(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_response("ok")
        ok = mock_llm_provider.generate.return_value
        mock_llm_provider.generate.side_effect = [
            LLMError("mock", "rate limited"),
            LLMError("mock", "rate limited"),
            ok,
        ]
        agent = EchoAgent(mock_llm_provider)
        agent._sleep = AsyncMock()

        output = await agent(agent_input)

        assert output.data == {"text": "ok"}
        assert mock_llm_provider.generate.await_count == 3
        assert [c.args[0] for c in agent._sleep.call_args_list] == [1, 2]
        assert output.metadata.llm_calls == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_error(LLMError("mock", "down"))
        agent = EchoAgent(mock_llm_provider, max_retries=2)
        agent._sleep = AsyncMock()

        with pytest.raises(LLMError):
            await agent(agent_input)

        assert mock_llm_provider.generate.await_count == 3
        assert [c.args[0] for c in agent._sleep.call_args_list] == [1, 2]
        assert agent._metadata.error == "[mock] down"

    @pytest.mark.asyncio
    async def test_other_provider_errors_are_not_retried(self, mock_llm_provider, agent_input):
        mock_llm_provider.set_error(RuntimeError("boom"))
        agent = EchoAgent(mock_llm_provider)
        agent._sleep = AsyncMock()

        with pytest.raises(AgentError):
            await agent(agent_input)

        assert mock_llm_provider.generate.await_count == 1
        agent._sleep.assert_not_called()


class TestDecode:
    def test_decodes_into_model(self):
        decoded = EchoAgent()._decode('```json\n{"agent_name": "x"}\n```', AgentMetadata)

        assert decoded.agent_name == "x"

    def test_undecodable_text_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            EchoAgent()._decode("não sei", AgentMetadata)

        error = exc_info.value
        assert error.recoverable is False
        assert error.message == "Undecodable AgentMetadata"
        assert error.to_dict()["context"] == {"preview": "não sei"}


class TestFallbackBookkeeping:
    def test_mark_fallback(self):
        agent = EchoAgent()

        agent._mark_fallback("undecodable")

        assert agent._metadata.used_fallback is True

    def test_track_llm_call_accumulates_tokens(self):
        agent = EchoAgent()

        agent._track_llm_call(10)
        agent._track_llm_call(None)
        agent._track_llm_call(5)

        assert agent._metadata.llm_calls == 3
        assert agent._metadata.tokens_used == 15
