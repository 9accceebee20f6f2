"""
Query Executor

Routes a drafted query to the store and normalizes every outcome into an
ExecutionResult:

1. COUNT(DISTINCT col): the store's stored counting function, then the
   store's paginated count_distinct aggregation as a fallback. A WHERE
   equality filter goes straight to the aggregation, which accepts it.
2. Anything else: the raw query capability when the store offers it, then
   translation into a constrained count_records / query_records operation.

Nothing raises out of execute(); failures come back with success=False.
"""

import logging
from typing import Any

from insightbot.connectors.base import BaseStore, StoreResult
from insightbot.database import translator
from insightbot.models.agent import TranslationError
from insightbot.models.pipeline import ConstrainedOperation, ExecutionResult

logger = logging.getLogger(__name__)


def _coerce_count(value: Any) -> int | None:
    """Pull an integer count out of the shapes stored functions return."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if isinstance(value, dict) and len(value) == 1:
        return _coerce_count(next(iter(value.values())))
    if isinstance(value, list) and len(value) == 1:
        return _coerce_count(value[0])
    return None


class QueryExecutor:
    """
    Execute drafted queries against a BaseStore.

    Usage:
        executor = QueryExecutor(store)
        result = await executor.execute("SELECT COUNT(*) FROM qualified_leads")
        print(result.data["count"])
    """

    def __init__(
        self,
        store: BaseStore,
        default_limit: int = translator.DEFAULT_LIMIT,
        count_distinct_function: str = "count_distinct_values",
    ):
        self.store = store
        self.default_limit = default_limit
        self.count_distinct_function = count_distinct_function

    async def execute(self, query_text: str) -> ExecutionResult:
        """Run a query through the first execution path that can handle it."""
        logger.info("Executing query", extra={"query": (query_text or "")[:200]})
        try:
            if translator.is_distinct_count(query_text):
                result = await self._execute_distinct_count(query_text)
            else:
                result = await self._execute_general(query_text)
        except TranslationError as e:
            logger.warning(f"Query rejected: {e.message}", extra={"query": query_text[:200]})
            result = ExecutionResult(success=False, error=e.message)
        except Exception as e:
            logger.error(f"Query execution failed: {e}", exc_info=True)
            result = ExecutionResult(success=False, error=str(e))

        result.query_text = query_text
        return result

    # ------------------------------------------------------------------
    # Distinct counts
    # ------------------------------------------------------------------

    async def _execute_distinct_count(self, query_text: str) -> ExecutionResult:
        distinct = translator.translate_distinct_count(query_text)
        table, column = distinct.table, distinct.column
        warnings = list(distinct.dropped)
        if warnings:
            logger.info(
                "Query narrowed during translation",
                extra={"table": table, "dropped": warnings},
            )

        # The stored function only takes table and column, so filtered counts skip it
        if distinct.filters:
            logger.debug("Filtered distinct count, using aggregation", extra={"table": table})
        else:
            stored = await self._stored_distinct_count(table, column)
            if stored is not None:
                return ExecutionResult(
                    success=True,
                    data={"count": stored},
                    operation="count_distinct",
                    table=table,
                    count=stored,
                    warnings=warnings,
                )

        aggregated = await self.store.perform_aggregation(
            table, type="count_distinct", column=column, filters=distinct.filters or None
        )
        if not aggregated.success:
            return ExecutionResult(
                success=False,
                error=aggregated.error or "Distinct count failed",
                operation="count_distinct",
                table=table,
                warnings=warnings,
            )

        count = _coerce_count((aggregated.data or {}).get("result"))
        return ExecutionResult(
            success=True,
            data={
                "count": count,
                "operation": "count_distinct",
                "table": table,
                "column": column,
            },
            operation="count_distinct",
            table=table,
            count=count,
            warnings=warnings,
        )

    async def _stored_distinct_count(self, table: str, column: str) -> int | None:
        try:
            response = await self.store.call_function(
                self.count_distinct_function,
                {"table_name": table, "column_name": column},
            )
        except Exception as e:
            logger.info(
                f"Stored distinct count failed ({e}), falling back to aggregation",
                extra={"table": table, "column": column},
            )
            return None

        count = _coerce_count(response.data) if response.success else None
        if count is None:
            logger.info(
                "Stored distinct count unavailable, falling back to aggregation",
                extra={"table": table, "column": column, "error": response.error},
            )
        return count

    # ------------------------------------------------------------------
    # Raw and constrained execution
    # ------------------------------------------------------------------

    async def _execute_general(self, query_text: str) -> ExecutionResult:
        if self.store.supports_raw_query:
            try:
                response = await self.store.execute_raw_query(query_text)
                if response.success:
                    return self._from_raw(query_text, response.data)
                logger.info(
                    "Raw query unsuccessful, translating to constrained operation",
                    extra={"error": response.error},
                )
            except Exception as e:
                logger.info(f"Raw query failed ({e}), translating to constrained operation")

        operation = translator.translate(query_text, default_limit=self.default_limit)
        return await self.run_operation(operation)

    def _from_raw(self, query_text: str, data: Any) -> ExecutionResult:
        """Rows of a raw query; a lone COUNT(...) value is reported as the count."""
        rows = data if isinstance(data, list) else []
        table = translator.extract_table(query_text)

        if translator.is_scalar_count(query_text):
            count = _coerce_count(rows)
            if count is not None:
                return ExecutionResult(
                    success=True,
                    data={"count": count},
                    operation="raw_query",
                    table=table,
                    count=count,
                )

        return ExecutionResult(
            success=True,
            data=rows,
            operation="raw_query",
            table=table,
            count=len(rows),
        )

    async def run_operation(self, operation: ConstrainedOperation) -> ExecutionResult:
        """Execute an already translated operation."""
        if operation.dropped:
            logger.info(
                "Query narrowed during translation",
                extra={"table": operation.table, "dropped": operation.dropped},
            )

        if operation.operation == "count_records":
            response = await self.store.count_records(operation.table, operation.filters)
            return self._from_store(response, operation, count_key="count")

        response = await self.store.list_records(
            operation.table,
            filters=operation.filters,
            limit=operation.limit,
            order_by=operation.order_by,
            columns=operation.columns,
        )
        return self._from_store(response, operation)

    def _from_store(
        self,
        response: StoreResult,
        operation: ConstrainedOperation,
        count_key: str | None = None,
    ) -> ExecutionResult:
        if not response.success:
            return ExecutionResult(
                success=False,
                error=response.error or "Store operation failed",
                operation=operation.operation,
                table=operation.table,
                warnings=list(operation.dropped),
            )

        if count_key:
            count = _coerce_count((response.data or {}).get(count_key))
            data: Any = {"count": count}
        else:
            data = response.data if isinstance(response.data, list) else []
            count = len(data)

        return ExecutionResult(
            success=True,
            data=data,
            operation=operation.operation,
            table=operation.table,
            count=count,
            warnings=list(operation.dropped),
        )
