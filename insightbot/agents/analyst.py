"""
AnalystAgent: quantitative insights from query results.

Skips the LLM entirely when the query failed. Otherwise asks for at most
three insights and two recommendations, falling back to a single
total_records insight built from the result count.
"""

import json
import logging
from typing import Any

from insightbot.agents.base import BaseAgent
from insightbot.config import Settings, get_settings
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import (
    Analysis,
    AnalystAgentInput,
    AnalystAgentOutput,
    DecodeError,
    Insight,
    QueryResult,
)
from insightbot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

FAILED_QUERY_SUMMARY = "Não foi possível analisar os dados devido a erro na consulta"
FALLBACK_SUMMARY = "Análise básica dos dados"


def failed_query_analysis(caveats: list[str] | None = None) -> Analysis:
    return Analysis(
        insights=[],
        summary=FAILED_QUERY_SUMMARY,
        recommendations=[],
        caveats=caveats or [],
    )


def fallback_analysis(query_result: QueryResult) -> Analysis:
    """One total_records insight read from the first result."""
    total = query_result.record_count or 0
    return Analysis(
        insights=[
            Insight(metric="total_records", value=total, comparison="n/a", significance="baixa")
        ],
        summary=FALLBACK_SUMMARY,
        recommendations=[],
        key_metrics={"total": total},
    )


def serialize_results(query_result: QueryResult, max_rows: int) -> str:
    """JSON view of the execution results with row lists truncated."""
    payload: list[dict[str, Any]] = []
    for result in query_result.results:
        item = result.model_dump(exclude={"warnings"}, exclude_none=True)
        data = result.data
        if isinstance(data, list) and len(data) > max_rows:
            item["data"] = data[:max_rows]
            item["truncated_rows"] = len(data) - max_rows
        payload.append(item)
    return json.dumps(payload, indent=2, default=str, ensure_ascii=False)


class AnalystAgent(BaseAgent):
    """Derives insights from executed queries."""

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        settings: Settings | None = None,
    ):
        self.config = settings or get_settings()
        if llm_provider is None:
            llm_provider = LLMProviderFactory.create_default_provider(
                self.config.llm, model_type="mini"
            )
        super().__init__(name="AnalystAgent", llm_provider=llm_provider)
        self.prompts = prompt_loader or PromptLoader()

    async def execute(self, input: AnalystAgentInput) -> AnalystAgentOutput:
        query_result = input.query_result
        caveats = query_result.warnings

        if not query_result.success:
            logger.info(f"[{self.name}] Query failed, skipping analysis")
            analysis = failed_query_analysis(caveats)
        else:
            analysis = await self._analyze(input, caveats)
            analysis.caveats = caveats

        return AnalystAgentOutput(
            success=True,
            analysis=analysis,
            data={"insights": len(analysis.insights), "caveats": len(caveats)},
            metadata=self._metadata,
            next_agent="FormatterAgent",
        )

    async def _analyze(self, input: AnalystAgentInput, caveats: list[str]) -> Analysis:
        fallback = fallback_analysis(input.query_result)
        prompt = self.prompts.render(
            "agents/analyst.md",
            results_json=serialize_results(input.query_result, self.config.pipeline.prompt_max_rows),
            message=input.query,
            intent_json=input.intent.model_dump_json(),
            caveats=caveats,
        )

        try:
            text = await self._call_llm(
                prompt,
                temperature=self.config.pipeline.analyst_temperature,
                max_tokens=self.config.pipeline.analyst_max_tokens,
            )
            return self._decode(text, Analysis)
        except DecodeError as e:
            logger.warning(f"[{self.name}] {e.message}", extra=e.context)
            self._mark_fallback(e.message)
        except Exception as e:
            logger.warning(f"[{self.name}] LLM analysis failed: {e}")
            self._mark_fallback(type(e).__name__)
        return fallback
