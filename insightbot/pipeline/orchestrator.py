"""
InsightBot Pipeline Orchestrator

LangGraph-based pipeline that orchestrates all stages:
- Fast path: canned replies for greetings, thanks, help and status
- IntentAgent → schema lookup → QueryAgent → AnalystAgent → FormatterAgent
- Direct answers for catalog questions the intent already answers
- Conversation context updated as soon as the intent is resolved

Every request ends in a PipelineResponse; unexpected exceptions are turned
into an apology message at the run() boundary.
"""

import logging
import random
import time
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from insightbot.agents.analyst import AnalystAgent
from insightbot.agents.formatter import FormatterAgent, render_direct_answer
from insightbot.agents.intent import IntentAgent
from insightbot.agents.query import QueryAgent
from insightbot.config import Settings, get_settings
from insightbot.connectors.base import BaseStore
from insightbot.connectors.postgres import PostgresStore
from insightbot.database.query_executor import QueryExecutor
from insightbot.database.schema_cache import SchemaCache
from insightbot.identity import SystemIdentity, load_identity
from insightbot.llm.base import BaseLLMProvider
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import (
    Analysis,
    AnalystAgentInput,
    ExecutionResult,
    FormatterAgentInput,
    Intent,
    IntentAgentInput,
    PipelineResponse,
    QueryAgentInput,
    QueryResult,
    TableSchema,
)
from insightbot.pipeline.fast_path import FastPathClassifier
from insightbot.pipeline.session_context import ConversationContext
from insightbot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

ERROR_PREFIX = "🤖 Desculpe, encontrei um erro ao analisar sua solicitação: "


# ============================================================================
# Pipeline State Schema
# ============================================================================


class PipelineState(TypedDict, total=False):
    """
    State schema for the InsightBot pipeline.

    Tracks one request through the graph with all intermediate outputs.
    """

    # Input
    message: str
    user_context: dict[str, Any]

    # Fast path output
    fast_path_category: str | None

    # Intent output
    intent: Intent | None
    intent_source: str | None

    # Schema / query / analysis output
    schemas: list[TableSchema]
    query_result: QueryResult | None
    analysis: Analysis | None

    # Response
    route: str | None
    response_text: str | None

    # Pipeline metadata
    states: list[str]
    agent_timings: dict[str, float]
    llm_calls: int


# ============================================================================
# InsightBot Pipeline
# ============================================================================


class InsightPipeline:
    """
    LangGraph-based pipeline answering analytics questions.

    Flow:
        1. Fast path: received → classified → responded
        2. Full path: received → intent_resolved → schema_resolved →
           query_executed → analyzed → formatted → responded
        3. Direct answer: received → intent_resolved → responded

    Usage:
        pipeline = InsightPipeline(store)
        response = await pipeline.run("quantos registros tem a tabela qualified_leads")
        print(response.response_text)
    """

    def __init__(
        self,
        store: BaseStore,
        llm_provider: BaseLLMProvider | None = None,
        identity: SystemIdentity | None = None,
        settings: Settings | None = None,
        context: ConversationContext | None = None,
        schema_cache: SchemaCache | None = None,
        prompt_loader: PromptLoader | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize pipeline with dependencies.

        Args:
            store: Data store the queries run against
            llm_provider: Provider shared by all agents (default from settings)
            identity: Assistant identity (default: settings.identity_path or built-in)
            settings: Optional settings (defaults to get_settings())
            context: Conversation state shared across requests
            schema_cache: Catalog/schema cache shared across requests
            prompt_loader: Optional prompt loader
            rng: Random source for fast-path reply variants
        """
        self.config = settings or get_settings()
        self.store = store

        if identity is None:
            identity = load_identity(self.config.identity_path)
        self.identity = identity

        self.context = context or ConversationContext(
            max_history=self.config.pipeline.history_size
        )
        self.schema_cache = schema_cache or SchemaCache(
            store,
            tables_ttl_seconds=self.config.cache.tables_ttl_seconds,
            schema_ttl_seconds=self.config.cache.schema_ttl_seconds,
            sample_size=self.config.cache.sample_rows,
        )
        self.executor = QueryExecutor(
            store,
            default_limit=self.config.pipeline.default_row_limit,
            count_distinct_function=self.config.store.count_distinct_function,
        )

        if llm_provider is None:
            llm_provider = LLMProviderFactory.create_default_provider(self.config.llm)
        self.llm = llm_provider
        prompts = prompt_loader or PromptLoader()

        self.fast_path = FastPathClassifier(
            identity=self.identity,
            status_provider=self._status_snapshot,
            rng=rng,
        )
        self.intent_agent = IntentAgent(
            self.schema_cache,
            self.context,
            identity=self.identity,
            llm_provider=llm_provider,
            prompt_loader=prompts,
            settings=self.config,
        )
        self.query_agent = QueryAgent(
            self.executor,
            self.context,
            llm_provider=llm_provider,
            prompt_loader=prompts,
            settings=self.config,
        )
        self.analyst = AnalystAgent(
            llm_provider=llm_provider, prompt_loader=prompts, settings=self.config
        )
        self.formatter = FormatterAgent(
            llm_provider=llm_provider, prompt_loader=prompts, settings=self.config
        )

        self.graph = self._build_graph()

        logger.info("InsightPipeline initialized", extra={"model": llm_provider.model})

    def _build_graph(self):
        """
        Build LangGraph state machine.

        Returns:
            Compiled LangGraph
        """
        workflow = StateGraph(PipelineState)

        workflow.add_node("fast_path", self._run_fast_path)
        workflow.add_node("intent", self._run_intent)
        workflow.add_node("direct_answer", self._run_direct_answer)
        workflow.add_node("schema", self._run_schema)
        workflow.add_node("query", self._run_query)
        workflow.add_node("analyst", self._run_analyst)
        workflow.add_node("formatter", self._run_formatter)

        workflow.set_entry_point("fast_path")

        workflow.add_conditional_edges(
            "fast_path",
            self._should_continue_after_fast_path,
            {"end": END, "intent": "intent"},
        )
        workflow.add_conditional_edges(
            "intent",
            self._should_answer_directly,
            {"direct_answer": "direct_answer", "schema": "schema"},
        )
        workflow.add_edge("direct_answer", END)
        workflow.add_edge("schema", "query")
        workflow.add_edge("query", "analyst")
        workflow.add_edge("analyst", "formatter")
        workflow.add_edge("formatter", END)

        return workflow.compile()

    # ========================================================================
    # Node Methods
    # ========================================================================

    async def _run_fast_path(self, state: PipelineState) -> PipelineState:
        """Answer conversational requests without LLM or store calls."""
        match = self.fast_path.respond(state["message"])
        if match is None:
            return state

        logger.info(f"Fast path answered: {match.category}")
        state["fast_path_category"] = str(match.category)
        state["response_text"] = match.response
        state["route"] = "fast_path"
        state["states"] = [*state["states"], "classified", "responded"]
        return state

    async def _run_intent(self, state: PipelineState) -> PipelineState:
        start_time = time.time()
        output = await self.intent_agent(IntentAgentInput(query=state["message"]))
        self._record_timing(state, "intent", start_time, output.metadata.llm_calls)

        # Follow-ups see this turn as soon as the intent exists.
        self.context.update(state["message"], output.intent)

        state["intent"] = output.intent
        state["intent_source"] = output.source
        state["states"] = [*state["states"], "intent_resolved"]
        return state

    async def _run_direct_answer(self, state: PipelineState) -> PipelineState:
        intent = state["intent"]
        results = []
        if intent.direct_answer:
            results = [ExecutionResult(success=True, data=intent.direct_answer)]

        state["query_result"] = QueryResult(success=True, results=results)
        state["analysis"] = Analysis(summary=intent.explanation)
        state["response_text"] = render_direct_answer(intent)
        state["route"] = "direct_answer"
        state["states"] = [*state["states"], "responded"]
        return state

    async def _run_schema(self, state: PipelineState) -> PipelineState:
        state["schemas"] = await self.schema_cache.get_schemas(state["intent"].tables_needed)
        logger.info(f"Schemas resolved for {len(state['schemas'])} tables")
        state["states"] = [*state["states"], "schema_resolved"]
        return state

    async def _run_query(self, state: PipelineState) -> PipelineState:
        start_time = time.time()
        output = await self.query_agent(
            QueryAgentInput(
                query=state["message"],
                intent=state["intent"],
                schemas=state["schemas"],
            )
        )
        self._record_timing(state, "query", start_time, output.metadata.llm_calls)

        state["query_result"] = output.query_result
        state["states"] = [*state["states"], "query_executed"]
        return state

    async def _run_analyst(self, state: PipelineState) -> PipelineState:
        start_time = time.time()
        output = await self.analyst(
            AnalystAgentInput(
                query=state["message"],
                intent=state["intent"],
                query_result=state["query_result"],
            )
        )
        self._record_timing(state, "analyst", start_time, output.metadata.llm_calls)

        state["analysis"] = output.analysis
        state["states"] = [*state["states"], "analyzed"]
        return state

    async def _run_formatter(self, state: PipelineState) -> PipelineState:
        start_time = time.time()
        output = await self.formatter(
            FormatterAgentInput(
                query=state["message"],
                analysis=state["analysis"],
                query_result=state["query_result"],
            )
        )
        self._record_timing(state, "formatter", start_time, output.metadata.llm_calls)

        state["response_text"] = output.response_text
        state["route"] = "full"
        state["states"] = [*state["states"], "formatted", "responded"]
        return state

    # ========================================================================
    # Conditional Edge Logic
    # ========================================================================

    def _should_continue_after_fast_path(self, state: PipelineState) -> str:
        return "end" if state.get("route") == "fast_path" else "intent"

    def _should_answer_directly(self, state: PipelineState) -> str:
        intent = state["intent"]
        if intent.direct_answer or intent.is_metadata_only:
            return "direct_answer"
        return "schema"

    # ========================================================================
    # Helpers
    # ========================================================================

    def _record_timing(
        self, state: PipelineState, agent: str, start_time: float, llm_calls: int
    ) -> None:
        elapsed = (time.time() - start_time) * 1000
        state.setdefault("agent_timings", {})[agent] = elapsed
        state["llm_calls"] = state.get("llm_calls", 0) + llm_calls

    def _status_snapshot(self) -> dict[str, Any]:
        """In-memory status for the fast-path status reply."""
        cache = self.schema_cache.snapshot()
        return {
            "model": self.llm.model,
            "cached_tables": cache["cached_tables"],
            "cache_ttl_seconds": cache["tables_ttl_seconds"],
            "raw_query": self.store.supports_raw_query,
        }

    # ========================================================================
    # Public API
    # ========================================================================

    async def run(
        self, message: str, user_context: dict[str, Any] | None = None
    ) -> PipelineResponse:
        """
        Answer one request.

        Args:
            message: User's natural language request
            user_context: Caller-supplied context, echoed in the response

        Returns:
            PipelineResponse; never raises
        """
        user_context = dict(user_context or {})
        initial_state: PipelineState = {
            "message": message,
            "user_context": user_context,
            "fast_path_category": None,
            "intent": None,
            "intent_source": None,
            "schemas": [],
            "query_result": None,
            "analysis": None,
            "route": None,
            "response_text": None,
            "states": ["received"],
            "agent_timings": {},
            "llm_calls": 0,
        }

        start_time = time.time()

        try:
            logger.info(f"Starting pipeline for message: {message[:100]}")
            result = await self.graph.ainvoke(initial_state)
        except Exception as e:
            logger.error(f"Pipeline failed: {e}", exc_info=True)
            return PipelineResponse(
                route="error",
                response_text=f"{ERROR_PREFIX}{e}",
                user_context=user_context,
                states=["received", "responded"],
                error=str(e),
            )

        total_time = (time.time() - start_time) * 1000
        logger.info(
            f"Pipeline complete in {total_time:.1f}ms ({result.get('llm_calls', 0)} LLM calls)",
            extra={"route": result.get("route"), "timings": result.get("agent_timings")},
        )

        return PipelineResponse(
            route=result["route"],
            response_text=result["response_text"],
            intent=result.get("intent"),
            fast_path_category=result.get("fast_path_category"),
            schemas=result.get("schemas") or [],
            query_result=result.get("query_result"),
            analysis=result.get("analysis"),
            user_context=user_context,
            states=result["states"],
        )

    async def process_request(
        self, message: str, user_context: dict[str, Any] | None = None
    ) -> PipelineResponse:
        """Alias of run()."""
        return await self.run(message, user_context)


async def create_pipeline(
    database_url: str | None = None,
    settings: Settings | None = None,
) -> InsightPipeline:
    """
    Create an InsightPipeline backed by a connected PostgresStore.

    Args:
        database_url: Database connection URL (uses config if not provided)
        settings: Optional settings (defaults to get_settings())

    Returns:
        Initialized pipeline

    Raises:
        ValueError: If no database URL is configured
        StoreConnectionError: If the database cannot be reached
    """
    config = settings or get_settings()

    db_url = database_url or config.store.url
    if not db_url:
        raise ValueError("STORE_URL must be set or provided to create a pipeline.")

    store = PostgresStore.from_url(
        str(db_url),
        schema_name=config.store.schema_name,
        pool_size=config.store.pool_size,
        timeout=config.store.timeout,
        allow_raw_query=config.store.allow_raw_query,
        page_size=config.store.page_size,
    )
    await store.connect()

    return InsightPipeline(store=store, settings=config)
