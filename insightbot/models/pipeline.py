"""
Pipeline Data Models

Pydantic models for the values that flow between pipeline stages:
intents, schemas, query strategies, execution results, analyses and the
final response returned to callers.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

AnalysisType = Literal["count", "list", "aggregate", "join", "complex"]
Complexity = Literal["simple", "medium", "complex"]
QueryKind = Literal["count_distinct", "simple_count", "list", "aggregation", "complex"]
Route = Literal["fast_path", "direct_answer", "full", "error"]

_ANALYSIS_TYPE_ALIASES = {
    "complex_analysis": "complex",
    "aggregation": "aggregate",
    "counting": "count",
}
_QUERY_KINDS = {"count_distinct", "simple_count", "list", "aggregation", "complex"}


def _unique(values: list[Any]) -> list[Any]:
    seen: set[Any] = set()
    ordered = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class RecordFilter(BaseModel):
    """Equality filter applied to a store read."""

    column: str = Field(..., min_length=1, description="Column to filter on")
    operator: Literal["eq"] = Field(default="eq", description="Comparison operator")
    value: Any = Field(..., description="Literal compared against the column")

    model_config = ConfigDict(frozen=True)


class Intent(BaseModel):
    """
    Structured interpretation of a user request.

    Produced by the IntentAgent either from the LLM (decoded JSON) or from
    the heuristic fallback. Confidence is always present.
    """

    analysis_type: AnalysisType = Field(..., description="Kind of analysis requested")
    tables_needed: list[str] = Field(
        default_factory=list, description="Tables involved, ordered and de-duplicated"
    )
    operations: list[str] = Field(
        default_factory=list,
        description="Operation tags (count, filter, join, group_by, metadata_query, ...)",
    )
    complexity: Complexity = Field(default="simple", description="Estimated complexity")
    explanation: str = Field(default="", description="Short rationale for the interpretation")
    confidence: float = Field(default=0.5, description="Confidence in the interpretation (0-1)")
    direct_answer: dict[str, Any] | None = Field(
        None, description="Answer that needs no data access (e.g. table listings)"
    )
    filters: list[RecordFilter] = Field(
        default_factory=list, description="Equality filters resolved from the message or context"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("analysis_type", mode="before")
    @classmethod
    def normalize_analysis_type(cls, v: Any) -> Any:
        """Accept aliases such as 'complex_analysis'."""
        if isinstance(v, str):
            v = v.strip().lower()
            return _ANALYSIS_TYPE_ALIASES.get(v, v)
        return v

    @field_validator("complexity", mode="before")
    @classmethod
    def normalize_complexity(cls, v: Any) -> Any:
        if v is None:
            return "simple"
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("tables_needed", "operations", mode="before")
    @classmethod
    def normalize_list(cls, v: Any) -> Any:
        """Coerce scalars to lists and drop duplicates/blanks while keeping order."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            cleaned = [str(item).strip() for item in v if item is not None and str(item).strip()]
            return _unique(cleaned)
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        """Default missing confidence to 0.5 and clamp to [0, 1]."""
        if v is None or isinstance(v, bool):
            return 0.5
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.5
        if value != value:  # NaN
            return 0.5
        return min(1.0, max(0.0, value))

    @field_validator("explanation", mode="before")
    @classmethod
    def normalize_explanation(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def is_metadata_only(self) -> bool:
        """True when the request is about the catalog itself, not table contents."""
        return "metadata_query" in self.operations and not self.tables_needed

    @property
    def primary_table(self) -> str | None:
        return self.tables_needed[0] if self.tables_needed else None


class TableSummary(BaseModel):
    """One entry of the table catalog."""

    name: str
    row_count: int | None = None
    columns: list[str] = Field(default_factory=list)


class TableSchema(BaseModel):
    """Column list, row count and a small sample of one table."""

    name: str
    columns: list[str] = Field(default_factory=list)
    row_count: int | None = None
    sample_rows: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("sample_rows")
    @classmethod
    def limit_samples(cls, v: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return v[:2]


class ConversationTurn(BaseModel):
    """A request and the intent it resolved to."""

    message: str
    intent: Intent | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class QueryStrategy(BaseModel):
    """
    SQL drafted by the QueryAgent.

    Field aliases match the JSON keys requested from the LLM
    (sql_query, query_type).
    """

    query_text: str = Field(..., alias="sql_query", min_length=1)
    query_kind: QueryKind = Field(default="complex", alias="query_type")
    explanation: str = ""
    expected_result: str = ""

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("query_text", mode="before")
    @classmethod
    def strip_query(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().rstrip(";").strip()
        return v

    @field_validator("query_kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip().lower() in _QUERY_KINDS:
            return v.strip().lower()
        return "complex"

    @field_validator("explanation", "expected_result", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)


class OrderBy(BaseModel):
    column: str
    descending: bool = False


class ConstrainedOperation(BaseModel):
    """
    Store operation derived from a free-form query.

    `dropped` lists query parts that could not be expressed and were
    ignored (narrowing).
    """

    operation: Literal["count_records", "query_records"]
    table: str
    columns: list[str] | None = None
    filters: list[RecordFilter] = Field(default_factory=list)
    order_by: OrderBy | None = None
    limit: int | None = None
    dropped: list[str] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Outcome of running one query against the store."""

    success: bool
    data: Any = None
    error: str | None = None
    operation: str | None = None
    table: str | None = None
    count: int | None = None
    query_text: str | None = None
    warnings: list[str] = Field(default_factory=list)


class QueryResult(BaseModel):
    """Output of the query stage."""

    success: bool
    results: list[ExecutionResult] = Field(default_factory=list)
    error: str | None = None
    strategy: QueryStrategy | None = None

    @property
    def warnings(self) -> list[str]:
        return _unique([w for result in self.results for w in result.warnings])

    @property
    def record_count(self) -> int | None:
        """Count reported by the first result, or its row count for list reads."""
        if not self.results:
            return None
        first = self.results[0]
        if first.count is not None:
            return first.count
        if isinstance(first.data, dict) and isinstance(first.data.get("count"), int):
            return first.data["count"]
        if isinstance(first.data, list):
            return len(first.data)
        return None


class Insight(BaseModel):
    metric: str
    value: Any = None
    comparison: str = "n/a"
    significance: str = "baixa"

    @field_validator("metric", "comparison", "significance", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Recommendation(BaseModel):
    action: str
    metric_target: str = ""
    expected_impact: str = ""

    @field_validator("action", "metric_target", "expected_impact", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)


class Analysis(BaseModel):
    """Insights derived from query results (at most 3 insights, 2 recommendations)."""

    insights: list[Insight] = Field(default_factory=list)
    summary: str = ""
    recommendations: list[Recommendation] = Field(default_factory=list)
    key_metrics: dict[str, Any] = Field(default_factory=dict)
    caveats: list[str] = Field(default_factory=list)

    @field_validator("insights", mode="before")
    @classmethod
    def limit_insights(cls, v: Any) -> Any:
        if isinstance(v, list):
            return v[:3]
        return v

    @field_validator("recommendations", mode="before")
    @classmethod
    def limit_recommendations(cls, v: Any) -> Any:
        if isinstance(v, list):
            return v[:2]
        return v

    @field_validator("summary", mode="before")
    @classmethod
    def stringify_summary(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("key_metrics", mode="before")
    @classmethod
    def default_metrics(cls, v: Any) -> Any:
        return {} if v is None else v


class PipelineResponse(BaseModel):
    """Everything the pipeline produced for one request."""

    route: Route
    response_text: str
    intent: Intent | None = None
    fast_path_category: str | None = None
    schemas: list[TableSchema] = Field(default_factory=list)
    query_result: QueryResult | None = None
    analysis: Analysis | None = None
    user_context: dict[str, Any] = Field(default_factory=dict)
    states: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.route != "error"
