"""
Schema Cache

Time-bounded cache in front of the data store's catalog and per-table
schemas. The catalog and each table schema carry their own TTL; stale
entries are refetched on access. Shared across requests and safe to
refetch concurrently (last writer wins).

Usage:
    cache = SchemaCache(store, tables_ttl_seconds=300)
    tables = await cache.discover_tables()
    schemas = await cache.get_schemas(["qualified_leads"])
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from insightbot.connectors.base import BaseStore
from insightbot.models.agent import SchemaError
from insightbot.models.pipeline import TableSchema, TableSummary

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    fetched_at: float


class SchemaCache:
    """TTL cache for the table catalog and table schemas."""

    def __init__(
        self,
        store: BaseStore,
        tables_ttl_seconds: float = 300.0,
        schema_ttl_seconds: float = 300.0,
        sample_size: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.tables_ttl_seconds = tables_ttl_seconds
        self.schema_ttl_seconds = schema_ttl_seconds
        self.sample_size = sample_size
        self._clock = clock
        self._tables: _Entry | None = None
        self._schemas: dict[str, _Entry] = {}

    def _is_fresh(self, entry: _Entry | None, ttl: float) -> bool:
        return entry is not None and (self._clock() - entry.fetched_at) < ttl

    async def discover_tables(self) -> list[TableSummary]:
        """
        Return the table catalog.

        Served from cache while younger than tables_ttl_seconds. Failures
        return an empty list and leave the cache untouched.
        """
        if self._is_fresh(self._tables, self.tables_ttl_seconds):
            logger.debug("Using cached table catalog")
            return self._tables.value

        try:
            result = await self.store.list_tables()
        except Exception as e:
            logger.error(f"Table discovery failed: {e}", exc_info=True)
            return []

        if not result.success or result.data is None:
            logger.warning("Table discovery unsuccessful", extra={"error": result.error})
            return []

        try:
            tables = [
                TableSummary(
                    name=item.get("name") or item.get("table_name"),
                    row_count=item.get("row_count"),
                    columns=list(item.get("columns") or []),
                )
                for item in result.data
                if item.get("name") or item.get("table_name")
            ]
        except (AttributeError, TypeError, ValidationError) as e:
            logger.error(f"Malformed table catalog: {e}")
            return []

        self._tables = _Entry(value=tables, fetched_at=self._clock())
        logger.info(f"Discovered {len(tables)} tables")
        return tables

    async def get_schema(self, name: str) -> TableSchema:
        """
        Return the schema of one table, refetching when stale.

        Raises:
            SchemaError: If the table cannot be described
        """
        entry = self._schemas.get(name)
        if self._is_fresh(entry, self.schema_ttl_seconds):
            return entry.value

        try:
            described = await self.store.describe_table(name)
        except Exception as e:
            raise SchemaError(name, f"Could not describe table: {e}") from e

        if not described.success or not isinstance(described.data, dict):
            raise SchemaError(name, described.error or "Could not describe table")

        try:
            schema = TableSchema(
                name=name,
                columns=list(described.data.get("columns") or []),
                row_count=described.data.get("row_count"),
                sample_rows=await self._sample(name),
            )
        except (TypeError, ValidationError) as e:
            raise SchemaError(name, f"Malformed table description: {e}") from e
        self._schemas[name] = _Entry(value=schema, fetched_at=self._clock())
        logger.debug(f"Schema {name}: {len(schema.columns)} columns")
        return schema

    async def _sample(self, name: str) -> list[dict[str, Any]]:
        if self.sample_size <= 0:
            return []
        try:
            result = await self.store.list_records(name, limit=self.sample_size)
        except Exception as e:
            logger.debug(f"Sample rows unavailable for {name}: {e}")
            return []
        if not result.success or not isinstance(result.data, list):
            return []
        return [row for row in result.data if isinstance(row, dict)][: self.sample_size]

    async def get_schemas(self, names: list[str]) -> list[TableSchema]:
        """Fetch schemas for several tables, skipping the ones that fail."""
        schemas = []
        for name in names:
            try:
                schemas.append(await self.get_schema(name))
            except SchemaError as e:
                logger.warning(
                    f"Skipping schema for {name}",
                    extra={"table": name, "error": e.message},
                )
        return schemas

    def invalidate(self, name: str | None = None) -> None:
        """Drop one table schema, or everything when name is None."""
        if name is None:
            self._tables = None
            self._schemas.clear()
            return
        self._schemas.pop(name, None)

    def snapshot(self) -> dict[str, Any]:
        """In-memory view of the cache for status reports."""
        return {
            "cached_tables": len(self._tables.value) if self._tables else 0,
            "cached_schemas": len(self._schemas),
            "tables_ttl_seconds": self.tables_ttl_seconds,
            "schema_ttl_seconds": self.schema_ttl_seconds,
        }
