"""
IntentAgent: request interpretation over the discovered catalog.

Turns a free-text request into an Intent:
- Discovers the table catalog through the SchemaCache
- Extracts contextual references (mentioned e-mail/table, "mesmo email")
- Asks the LLM for a JSON intent, decoded defensively
- Falls back to a keyword heuristic when the LLM fails or answers garbage
- Resolves back-references into tables and equality filters

Never raises for LLM or decoding problems; the output records whether the
intent came from the LLM or from the heuristic.
"""

import logging

from insightbot.agents.base import BaseAgent
from insightbot.config import Settings, get_settings
from insightbot.database.schema_cache import SchemaCache
from insightbot.identity import SystemIdentity
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import (
    DecodeError,
    Intent,
    IntentAgentInput,
    IntentAgentOutput,
    RecordFilter,
    TableSummary,
)
from insightbot.pipeline.session_context import (
    ContextualReferences,
    ConversationContext,
    extract_references,
)
from insightbot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

LEAD_TABLE_MARKERS = ("leads", "qualified", "engaged")


class IntentAgent(BaseAgent):
    """
    Intent coordinator.

    Reads the shared ConversationContext but never writes it; the pipeline
    records the turn once the intent is resolved.
    """

    def __init__(
        self,
        schema_cache: SchemaCache,
        context: ConversationContext,
        identity: SystemIdentity | None = None,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize IntentAgent.

        Args:
            schema_cache: Cache used to discover the table catalog
            context: Conversation state for back-references
            identity: Assistant identity (known tables, column synonyms)
            llm_provider: Optional LLM provider. If None, creates default provider.
            prompt_loader: Optional prompt loader
            settings: Optional settings (defaults to get_settings())
        """
        self.config = settings or get_settings()
        if llm_provider is None:
            llm_provider = LLMProviderFactory.create_default_provider(
                self.config.llm, model_type="main"
            )
        super().__init__(name="IntentAgent", llm_provider=llm_provider)

        self.schema_cache = schema_cache
        self.context = context
        self.identity = identity or SystemIdentity()
        self.prompts = prompt_loader or PromptLoader()

    async def execute(self, input: IntentAgentInput) -> IntentAgentOutput:
        """
        Resolve the intent of one request.

        Args:
            input: IntentAgentInput with the request text in `query`

        Returns:
            IntentAgentOutput with the intent, extracted references and source
        """
        message = input.query
        tables = await self.schema_cache.discover_tables()
        references = extract_references(message, self._known_tables(tables))

        logger.info(
            f"[{self.name}] Resolving intent",
            extra={
                "catalog_size": len(tables),
                "email": references.email,
                "table": references.table,
                "same_email": references.same_email,
                "same_table": references.same_table,
            },
        )

        intent: Intent | None = None
        try:
            text = await self._call_llm(
                self._build_prompt(message, tables, references),
                system=self.prompts.render("system/main.md", identity=self.identity),
                temperature=self.config.pipeline.intent_temperature,
                max_tokens=self.config.pipeline.intent_max_tokens,
            )
            intent = self._decode(text, Intent)
        except DecodeError as e:
            logger.warning(f"[{self.name}] {e.message}", extra=e.context)
            self._mark_fallback(e.message)
        except Exception as e:
            logger.warning(f"[{self.name}] LLM intent failed: {e}")
            self._mark_fallback(type(e).__name__)

        source = "llm"
        if intent is None:
            intent = self._smart_fallback(tables, references)
            source = "heuristic"

        intent = self._resolve_references(intent, tables, references)

        logger.info(
            f"[{self.name}] Intent resolved: type={intent.analysis_type}, "
            f"tables={intent.tables_needed}, source={source}"
        )

        return IntentAgentOutput(
            success=True,
            intent=intent,
            references=references.to_dict(),
            source=source,
            data={"analysis_type": intent.analysis_type, "tables": intent.tables_needed},
            metadata=self._metadata,
            next_agent=None if intent.direct_answer or intent.is_metadata_only else "QueryAgent",
        )

    def _known_tables(self, tables: list[TableSummary]) -> list[str]:
        names = [table.name for table in tables]
        names.extend(name for name in self.identity.known_tables if name not in names)
        return names

    def _build_prompt(
        self,
        message: str,
        tables: list[TableSummary],
        references: ContextualReferences,
    ) -> str:
        return self.prompts.render(
            "agents/intent.md",
            tables=tables,
            max_columns=self.config.pipeline.prompt_max_columns,
            context_lines=self.context.build_prompt_context(),
            references=references,
            last_email=self.context.last_email,
            last_table=self.context.last_table,
            synonyms=self.identity.column_synonyms,
            message=message,
        )

    def _smart_fallback(
        self,
        tables: list[TableSummary],
        references: ContextualReferences,
    ) -> Intent:
        """Keyword heuristic used when the LLM gives no usable intent."""
        analysis_type = "list"
        operations = ["filter"]
        if references.is_count:
            analysis_type = "count"
            operations = ["count"]
        elif references.is_list and not references.is_search:
            operations = ["metadata_query"]

        tables_needed: list[str] = []
        if references.table:
            tables_needed = [references.table]
        elif references.same_table and self.context.last_table:
            tables_needed = [self.context.last_table]
        elif tables:
            if references.email or references.same_email:
                lead_tables = [
                    table.name
                    for table in tables
                    if any(marker in table.name for marker in LEAD_TABLE_MARKERS)
                ]
                tables_needed = [lead_tables[0] if lead_tables else tables[0].name]
            else:
                tables_needed = [tables[0].name]

        return Intent(
            analysis_type=analysis_type,
            tables_needed=tables_needed,
            operations=operations,
            complexity="simple",
            explanation=f"Fallback inteligente: {analysis_type} em {', '.join(tables_needed)}",
            confidence=self.config.pipeline.heuristic_confidence,
        )

    def _resolve_references(
        self,
        intent: Intent,
        tables: list[TableSummary],
        references: ContextualReferences,
    ) -> Intent:
        """Apply "same table" and e-mail references to an intent."""
        update: dict = {}

        if not intent.tables_needed and references.same_table and self.context.last_table:
            update["tables_needed"] = [self.context.last_table]

        email = references.email
        if email is None and references.same_email:
            email = self.context.last_email

        if email:
            table_name = (update.get("tables_needed") or intent.tables_needed or [None])[0]
            column = self._email_column(table_name, tables)
            existing = {(f.column, str(f.value).lower()) for f in intent.filters}
            if (column, email) not in existing:
                update["filters"] = [
                    *intent.filters,
                    RecordFilter(column=column, value=email),
                ]
                if "filter" not in intent.operations:
                    update["operations"] = [*intent.operations, "filter"]

        if not update:
            return intent
        logger.debug(f"[{self.name}] Resolved references", extra={"update": list(update)})
        return intent.model_copy(update=update)

    def _email_column(self, table_name: str | None, tables: list[TableSummary]) -> str:
        """First column of the table that holds e-mail addresses."""
        synonyms = {name.lower() for name in self.identity.email_columns}
        for table in tables:
            if table.name != table_name:
                continue
            for column in table.columns:
                if column.lower() in synonyms:
                    return column
        return "email"
