"""Unit tests for QueryAgent drafting, fallback and execution."""

import json
from unittest.mock import AsyncMock

import pytest

from insightbot.agents.query import QueryAgent, build_fallback_strategy
from insightbot.database.query_executor import QueryExecutor
from insightbot.models import Intent, LLMError, QueryAgentInput, RecordFilter, TableSchema
from insightbot.pipeline.session_context import ConversationContext


@pytest.fixture
def context():
    return ConversationContext()


@pytest.fixture
def query_agent(fake_store, context, mock_llm_provider, settings):
    return QueryAgent(
        QueryExecutor(fake_store),
        context,
        llm_provider=mock_llm_provider,
        settings=settings,
    )


def count_intent(table="qualified_leads", filters=None) -> Intent:
    return Intent(
        analysis_type="count",
        tables_needed=[table],
        operations=["count"],
        filters=filters or [],
    )


def strategy_json(sql: str, kind: str = "simple_count") -> str:
    return json.dumps(
        {
            "sql_query": sql,
            "query_type": kind,
            "explanation": "Contagem",
            "expected_result": "número",
        }
    )


class TestFallbackStrategy:
    def test_plain_count(self):
        strategy = build_fallback_strategy(count_intent())

        assert strategy.query_text == "SELECT COUNT(*) FROM qualified_leads"
        assert strategy.query_kind == "simple_count"
        assert strategy.explanation == "Query básica de fallback"
        assert strategy.expected_result == "contagem simples"

    def test_filters_are_quoted(self):
        intent = count_intent(
            filters=[
                RecordFilter(column="email", value="ana@example.com"),
                RecordFilter(column="name", value="D'Ávila"),
            ]
        )

        strategy = build_fallback_strategy(intent)

        assert strategy.query_text == (
            "SELECT COUNT(*) FROM qualified_leads WHERE email = 'ana@example.com' AND name = 'D''Ávila'"
        )

    def test_intent_without_tables(self):
        intent = Intent(analysis_type="count", tables_needed=[])

        assert build_fallback_strategy(intent).query_text == "SELECT COUNT(*) FROM qualified_leads"


class TestQueryAgent:
    @pytest.mark.asyncio
    async def test_executes_llm_strategy(self, query_agent, mock_llm_provider, fake_store):
        mock_llm_provider.set_response(
            strategy_json("SELECT COUNT(*) FROM aula_views WHERE device = 'mobile';")
        )

        output = await query_agent(
            QueryAgentInput(query="quantas views mobile?", intent=count_intent("aula_views"))
        )

        result = output.query_result
        assert output.success is True
        assert result.success is True
        assert result.strategy.query_text == "SELECT COUNT(*) FROM aula_views WHERE device = 'mobile'"
        assert result.results[0].data == {"count": 1}
        assert result.record_count == 1
        assert output.next_agent == "AnalystAgent"
        assert fake_store.call_names() == ["count_records"]

    @pytest.mark.asyncio
    async def test_llm_failure_uses_fallback_with_filters(self, query_agent, mock_llm_provider):
        mock_llm_provider.set_error(RuntimeError("timeout"))
        intent = count_intent(filters=[RecordFilter(column="email", value="ana@example.com")])

        output = await query_agent(QueryAgentInput(query="quantos registros da ana?", intent=intent))

        assert output.metadata.used_fallback is True
        assert output.query_result.strategy.explanation == "Query básica de fallback"
        assert output.query_result.record_count == 2

    @pytest.mark.asyncio
    async def test_rate_limited_llm_is_retried_before_fallback(self, query_agent, mock_llm_provider):
        mock_llm_provider.set_error(LLMError("mock", "rate limited"))
        query_agent._sleep = AsyncMock()

        output = await query_agent(QueryAgentInput(query="contar", intent=count_intent()))

        assert mock_llm_provider.generate.await_count == query_agent.max_retries + 1
        assert query_agent._sleep.await_count == query_agent.max_retries
        assert output.metadata.used_fallback is True
        assert output.query_result.record_count == 3

    @pytest.mark.asyncio
    async def test_undecodable_strategy_uses_fallback(self, query_agent, mock_llm_provider):
        mock_llm_provider.set_response("Aqui está a query: SELECT COUNT(*) FROM aula_views")

        output = await query_agent(QueryAgentInput(query="contar", intent=count_intent()))

        assert output.metadata.used_fallback is True
        assert output.query_result.strategy.query_text == "SELECT COUNT(*) FROM qualified_leads"
        assert output.query_result.record_count == 3

    @pytest.mark.asyncio
    async def test_execution_failure_is_reported(self, query_agent, mock_llm_provider):
        mock_llm_provider.set_response(strategy_json("SELECT 1", kind="complex"))

        output = await query_agent(QueryAgentInput(query="teste", intent=count_intent()))

        assert output.success is False
        assert output.query_result.success is False
        assert output.query_result.error == "Query has no FROM table"

    @pytest.mark.asyncio
    async def test_narrowing_is_carried_as_warnings(self, query_agent, mock_llm_provider):
        mock_llm_provider.set_response(
            strategy_json(
                "SELECT COUNT(*) FROM qualified_leads WHERE source = 'google' AND id > 1",
            )
        )

        output = await query_agent(QueryAgentInput(query="leads do google", intent=count_intent()))

        assert output.query_result.record_count == 2
        assert output.query_result.warnings == ["WHERE condition: AND id > 1"]

    @pytest.mark.asyncio
    async def test_prompt_includes_schemas_and_context(self, query_agent, mock_llm_provider, context):
        context.last_email = "ana@example.com"
        mock_llm_provider.set_response(strategy_json("SELECT COUNT(*) FROM qualified_leads"))
        schema = TableSchema(
            name="qualified_leads",
            columns=["id", "email"],
            row_count=3,
            sample_rows=[{"id": 1, "email": "ana@example.com"}],
        )

        await query_agent(QueryAgentInput(query="contar", intent=count_intent(), schemas=[schema]))

        prompt = mock_llm_provider.prompts[0]
        assert "Tabela: qualified_leads" in prompt
        assert "Colunas: id, email" in prompt
        assert "Registros: 3" in prompt
        assert 'Amostra: [{"id": 1, "email": "ana@example.com"}]' in prompt
        assert "Email em contexto: ana@example.com" in prompt
        assert '"analysis_type": "count"' in prompt
