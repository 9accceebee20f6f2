"""
InsightBot Models Module

Pydantic models for type-safe data validation throughout the application.

Available Models:
    Agent Models:
        - AgentInput / AgentOutput / AgentMetadata: agent framework I/O
        - AgentError, LLMError, DecodeError, TranslationError, SchemaError

    Pipeline Models:
        - Intent, RecordFilter: interpreted request
        - TableSummary, TableSchema: catalog and schema entries
        - QueryStrategy, ConstrainedOperation, ExecutionResult, QueryResult
        - Insight, Recommendation, Analysis
        - ConversationTurn, PipelineResponse

Usage:
    from insightbot.models import Intent, PipelineResponse
    from insightbot.models.agent import AgentError
"""

from insightbot.models.agent import (
    AgentError,
    AgentInput,
    AgentMetadata,
    AgentOutput,
    AnalystAgentInput,
    AnalystAgentOutput,
    DecodeError,
    FormatterAgentInput,
    FormatterAgentOutput,
    IntentAgentInput,
    IntentAgentOutput,
    LLMError,
    QueryAgentInput,
    QueryAgentOutput,
    SchemaError,
    TranslationError,
)
from insightbot.models.pipeline import (
    Analysis,
    ConstrainedOperation,
    ConversationTurn,
    ExecutionResult,
    Insight,
    Intent,
    OrderBy,
    PipelineResponse,
    QueryResult,
    QueryStrategy,
    Recommendation,
    RecordFilter,
    TableSchema,
    TableSummary,
)

__all__ = [
    # Agent models
    "AgentError",
    "AgentInput",
    "AgentMetadata",
    "AgentOutput",
    "AnalystAgentInput",
    "AnalystAgentOutput",
    "DecodeError",
    "FormatterAgentInput",
    "FormatterAgentOutput",
    "IntentAgentInput",
    "IntentAgentOutput",
    "LLMError",
    "QueryAgentInput",
    "QueryAgentOutput",
    "SchemaError",
    "TranslationError",
    # Pipeline models
    "Analysis",
    "ConstrainedOperation",
    "ConversationTurn",
    "ExecutionResult",
    "Insight",
    "Intent",
    "OrderBy",
    "PipelineResponse",
    "QueryResult",
    "QueryStrategy",
    "Recommendation",
    "RecordFilter",
    "TableSchema",
    "TableSummary",
]
