"""
Agent I/O Models

Pydantic models for agent inputs, outputs, and error handling.
All agents in the pipeline use these base models to ensure type safety
and consistent data structures throughout the system.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from insightbot.models.pipeline import (
    Analysis,
    Intent,
    QueryResult,
    TableSchema,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentMetadata(BaseModel):
    """Metadata about agent execution."""

    agent_name: str
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    duration_ms: float | None = None
    llm_calls: int = 0
    tokens_used: int | None = None
    used_fallback: bool = False
    error: str | None = None

    model_config = ConfigDict(frozen=False)

    def mark_complete(self) -> None:
        """Mark execution as complete and calculate duration."""
        self.completed_at = _utcnow()
        if self.started_at:
            delta = self.completed_at - self.started_at
            self.duration_ms = delta.total_seconds() * 1000


class AgentInput(BaseModel):
    """
    Base input model for all agents.

    Each agent extends this with its specific input fields.
    """

    query: str = Field(..., description="User's natural language request")
    context: dict[str, Any] = Field(
        default_factory=dict, description="Additional context passed between agents"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "quantos registros tem a tabela qualified_leads",
                "context": {},
            }
        }
    )


class AgentOutput(BaseModel):
    """
    Base output model for all agents.

    The metadata field tracks execution details for observability.
    """

    success: bool = Field(..., description="Whether the agent executed successfully")
    data: dict[str, Any] = Field(default_factory=dict, description="Agent-specific output data")
    metadata: AgentMetadata = Field(..., description="Execution metadata")
    next_agent: str | None = Field(
        None, description="Name of next agent to execute (for pipeline routing)"
    )


class AgentError(Exception):
    """
    Custom exception for agent execution errors.

    Attributes:
        agent: Name of the agent that raised the error
        message: Error description
        recoverable: Whether the pipeline can retry or continue
        context: Additional context for debugging
    """

    def __init__(
        self,
        agent: str,
        message: str,
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.agent = agent
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{agent}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/responses."""
        return {
            "agent": self.agent,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class LLMError(AgentError):
    """Error during an LLM API call (usually recoverable with retry)."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, recoverable=True, context=context)


class DecodeError(AgentError):
    """LLM output could not be decoded into the expected structure."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, recoverable=False, context=context)


class TranslationError(AgentError):
    """A query falls outside the grammar that maps onto store operations."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("QueryTranslator", message, recoverable=False, context=context)


class SchemaError(AgentError):
    """Schema of a table could not be fetched."""

    def __init__(self, table: str, message: str, context: dict[str, Any] | None = None):
        self.table = table
        super().__init__(
            "SchemaCache",
            message,
            recoverable=True,
            context={"table": table, **(context or {})},
        )


# ============================================================================
# IntentAgent Models
# ============================================================================


class IntentAgentInput(AgentInput):
    """Input for IntentAgent. The request text is `query`."""


class IntentAgentOutput(AgentOutput):
    """Output from IntentAgent."""

    intent: Intent = Field(..., description="Resolved intent")
    references: dict[str, Any] = Field(
        default_factory=dict, description="Contextual references extracted from the message"
    )
    source: Literal["llm", "heuristic"] = Field(
        default="llm", description="Whether the intent came from the LLM or the fallback"
    )


# ============================================================================
# QueryAgent Models
# ============================================================================


class QueryAgentInput(AgentInput):
    """Input for QueryAgent."""

    intent: Intent = Field(..., description="Intent resolved for this request")
    schemas: list[TableSchema] = Field(
        default_factory=list, description="Schemas of the tables the intent needs"
    )


class QueryAgentOutput(AgentOutput):
    """Output from QueryAgent."""

    query_result: QueryResult = Field(..., description="Drafted strategy and execution results")


# ============================================================================
# AnalystAgent Models
# ============================================================================


class AnalystAgentInput(AgentInput):
    """Input for AnalystAgent."""

    intent: Intent = Field(..., description="Intent resolved for this request")
    query_result: QueryResult = Field(..., description="Results to analyze")


class AnalystAgentOutput(AgentOutput):
    """Output from AnalystAgent."""

    analysis: Analysis = Field(..., description="Insights derived from the results")


# ============================================================================
# FormatterAgent Models
# ============================================================================


class FormatterAgentInput(AgentInput):
    """Input for FormatterAgent."""

    analysis: Analysis = Field(..., description="Analysis to present")
    query_result: QueryResult = Field(..., description="Raw results backing the analysis")


class FormatterAgentOutput(AgentOutput):
    """Output from FormatterAgent."""

    response_text: str = Field(..., description="Chat-ready message")
