"""
QueryAgent: SQL drafting and execution.

Drafts one PostgreSQL query for the resolved intent, then hands it to the
QueryExecutor which maps it onto the store's operations. A plain
COUNT(*) over the first table (with the intent's filters) stands in when
the LLM fails or returns an unusable strategy.
"""

import json
import logging

from insightbot.agents.base import BaseAgent
from insightbot.config import Settings, get_settings
from insightbot.database.query_executor import QueryExecutor
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import (
    DecodeError,
    Intent,
    QueryAgentInput,
    QueryAgentOutput,
    QueryResult,
    QueryStrategy,
    TableSchema,
)
from insightbot.pipeline.session_context import ConversationContext
from insightbot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

FALLBACK_TABLE = "qualified_leads"


def _quote_literal(value: object) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def build_fallback_strategy(intent: Intent) -> QueryStrategy:
    """COUNT(*) over the intent's first table, filtered by its equality filters."""
    table = intent.primary_table or FALLBACK_TABLE
    query = f"SELECT COUNT(*) FROM {table}"
    if intent.filters:
        conditions = [f"{f.column} = {_quote_literal(f.value)}" for f in intent.filters]
        query += " WHERE " + " AND ".join(conditions)
    return QueryStrategy(
        query_text=query,
        query_kind="simple_count",
        explanation="Query básica de fallback",
        expected_result="contagem simples",
    )


class QueryAgent(BaseAgent):
    """Drafts a query for an intent and executes it."""

    def __init__(
        self,
        executor: QueryExecutor,
        context: ConversationContext,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        settings: Settings | None = None,
    ):
        self.config = settings or get_settings()
        if llm_provider is None:
            llm_provider = LLMProviderFactory.create_default_provider(
                self.config.llm, model_type="main"
            )
        super().__init__(name="QueryAgent", llm_provider=llm_provider)

        self.executor = executor
        self.context = context
        self.prompts = prompt_loader or PromptLoader()

    async def execute(self, input: QueryAgentInput) -> QueryAgentOutput:
        """
        Draft and run the query for an intent.

        Returns:
            QueryAgentOutput whose query_result mirrors the execution outcome
        """
        intent = input.intent
        strategy = await self._draft(intent, input.schemas)

        logger.info(
            f"[{self.name}] Executing strategy",
            extra={"query_kind": strategy.query_kind, "query": strategy.query_text[:200]},
        )
        execution = await self.executor.execute(strategy.query_text)

        query_result = QueryResult(
            success=execution.success,
            results=[execution],
            error=execution.error,
            strategy=strategy,
        )

        return QueryAgentOutput(
            success=query_result.success,
            query_result=query_result,
            data={"query": strategy.query_text, "operation": execution.operation},
            metadata=self._metadata,
            next_agent="AnalystAgent",
        )

    async def _draft(self, intent: Intent, schemas: list[TableSchema]) -> QueryStrategy:
        fallback = build_fallback_strategy(intent)
        try:
            text = await self._call_llm(
                self._build_prompt(intent, schemas),
                temperature=self.config.pipeline.query_temperature,
                max_tokens=self.config.pipeline.query_max_tokens,
            )
            return self._decode(text, QueryStrategy)
        except DecodeError as e:
            logger.warning(f"[{self.name}] {e.message}", extra=e.context)
            self._mark_fallback(e.message)
        except Exception as e:
            logger.warning(f"[{self.name}] LLM drafting failed: {e}")
            self._mark_fallback(type(e).__name__)
        return fallback

    def _build_prompt(self, intent: Intent, schemas: list[TableSchema]) -> str:
        schema_views = [
            {
                "name": schema.name,
                "columns": schema.columns,
                "row_count": schema.row_count,
                "sample": json.dumps(schema.sample_rows[:1], default=str, ensure_ascii=False),
            }
            for schema in schemas
        ]
        return self.prompts.render(
            "agents/query.md",
            schemas=schema_views,
            last_email=self.context.last_email,
            last_table=self.context.last_table,
            intent_json=intent.model_dump_json(indent=2),
        )
