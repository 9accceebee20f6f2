"""
FormatterAgent: chat-ready response text.

Writes the final WhatsApp-style message from the analysis and the raw
results. When the LLM fails or answers with nothing, one of three canned
templates is used instead. Query parts ignored during execution are
appended as a note, and the whole message is capped at the configured
character ceiling.
"""

import json
import logging

from insightbot.agents.analyst import serialize_results
from insightbot.agents.base import BaseAgent
from insightbot.config import Settings, get_settings
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import (
    FormatterAgentInput,
    FormatterAgentOutput,
    Intent,
    QueryResult,
)
from insightbot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

ELLIPSIS = "…"
FAILURE_NOTICE = (
    "❌ *Erro*\n\nNão foi possível processar sua solicitação. Tente reformular a pergunta."
)


def format_count(value: int) -> str:
    """Integer with pt-BR thousands separators (12345 -> 12.345)."""
    return f"{value:,}".replace(",", ".")


def fallback_response(query_result: QueryResult) -> str:
    """Canned message used when the LLM cannot write one."""
    if query_result.success and query_result.results:
        data = query_result.results[0].data
        count = data.get("count") if isinstance(data, dict) else None
        if isinstance(count, int) and not isinstance(count, bool):
            return (
                f"📊 *Resultado*\n\n🔢 Total: *{format_count(count)}* registros"
                "\n\n💡 Dados obtidos com sucesso!"
            )
        return (
            "📊 *Resultado*\n\n✅ Consulta executada com sucesso\n"
            f"📋 {len(query_result.results)} resultado(s) encontrado(s)"
        )
    return FAILURE_NOTICE


def caveat_note(caveats: list[str]) -> str:
    if not caveats:
        return ""
    lines = "\n".join(f"• {caveat}" for caveat in caveats)
    return f"\n\n⚠️ *Observação*: partes da consulta foram ignoradas na execução:\n{lines}"


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(ELLIPSIS)].rstrip() + ELLIPSIS


def render_direct_answer(intent: Intent) -> str:
    """Message for intents answered without touching the data."""
    answer = intent.direct_answer
    if not answer:
        return f"📊 {intent.explanation}"

    tables = answer.get("tables") or []
    listing = "\n".join(f"{i}. {table}" for i, table in enumerate(tables, start=1))
    return (
        f"📊 **Resultado da Análise**\n\n{intent.explanation}\n\n"
        f"**Total: {answer.get('count', len(tables))} tabelas**\n\n{listing}"
    ).rstrip()


class FormatterAgent(BaseAgent):
    """Writes the user-facing message."""

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
        super().__init__(name="FormatterAgent", llm_provider=llm_provider)
        self.prompts = prompt_loader or PromptLoader()

    async def execute(self, input: FormatterAgentInput) -> FormatterAgentOutput:
        max_chars = self.config.pipeline.response_max_chars
        body = await self._write(input, max_chars)
        response_text = truncate(body + caveat_note(input.analysis.caveats), max_chars)

        return FormatterAgentOutput(
            success=True,
            response_text=response_text,
            data={"length": len(response_text)},
            metadata=self._metadata,
        )

    async def _write(self, input: FormatterAgentInput, max_chars: int) -> str:
        prompt = self.prompts.render(
            "agents/formatter.md",
            analysis_json=json.dumps(
                input.analysis.model_dump(exclude={"caveats"}),
                indent=2,
                default=str,
                ensure_ascii=False,
            ),
            results_json=serialize_results(input.query_result, self.config.pipeline.prompt_max_rows),
            message=input.query,
            max_chars=max_chars,
        )

        try:
            text = await self._call_llm(
                prompt,
                temperature=self.config.pipeline.formatter_temperature,
                max_tokens=self.config.pipeline.formatter_max_tokens,
            )
        except Exception as e:
            logger.warning(f"[{self.name}] LLM formatting failed: {e}")
            self._mark_fallback(type(e).__name__)
            return fallback_response(input.query_result)

        text = (text or "").strip()
        if not text:
            self._mark_fallback("empty response")
            return fallback_response(input.query_result)
        return text
