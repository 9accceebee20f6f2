"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from typing import Any
from unittest.mock import AsyncMock

import pytest

from insightbot.connectors.base import BaseStore, StoreResult
from insightbot.llm.models import LLMResponse, LLMUsage
from insightbot.models.pipeline import OrderBy, RecordFilter

TEST_ANTHROPIC_KEY = "sk-ant-REDACTED"


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def mock_anthropic_api_key(monkeypatch):
    """
    Provide a test Anthropic key and isolate settings from any .env file.

    Runs automatically for all tests.
    """
    from insightbot.config import clear_settings_cache

    clear_settings_cache()
    monkeypatch.setenv("INSIGHTBOT_ENV_SOURCE", "environment")
    monkeypatch.setenv("LLM_ANTHROPIC_API_KEY", TEST_ANTHROPIC_KEY)
    monkeypatch.delenv("LLM_DEFAULT_PROVIDER", raising=False)
    monkeypatch.delenv("STORE_URL", raising=False)
    monkeypatch.delenv("IDENTITY_PATH", raising=False)
    yield TEST_ANTHROPIC_KEY

    clear_settings_cache()


@pytest.fixture
def settings():
    from insightbot.config import get_settings

    return get_settings()


# ============================================================================
# Mock LLM Provider
# ============================================================================


def make_llm_response(content: str) -> LLMResponse:
    return LLMResponse(
        content=content,
        model="mock-model",
        usage=LLMUsage(prompt_tokens=1, completion_tokens=1, total_tokens=2),
        finish_reason="stop",
        provider="mock",
        metadata={},
    )


class MockLLMProvider:
    """Stand-in provider whose generate() is an AsyncMock."""

    def __init__(self):
        self.provider_name = "mock"
        self.model = "mock-model"
        self.generate = AsyncMock()
        self.ping = AsyncMock(return_value=True)

    def set_response(self, response: str):
        """Set the response that generate() will return."""
        self.generate.side_effect = None
        self.generate.return_value = make_llm_response(response)

    def set_responses(self, responses: list[str]):
        """Return the given responses in order, one per call."""
        self.generate.side_effect = [make_llm_response(r) for r in responses]

    def set_error(self, error: Exception):
        """Make every generate() call raise."""
        self.generate.side_effect = error

    @property
    def prompts(self) -> list[str]:
        """User prompts sent so far."""
        return [call.args[0].messages[-1].content for call in self.generate.call_args_list]


@pytest.fixture
def mock_llm_provider():
    """
    Mock LLM provider for testing agents.

    Usage:
        def test_agent(mock_llm_provider):
            mock_llm_provider.set_response("test response")
            result = await agent.execute(input)
    """
    return MockLLMProvider()


# ============================================================================
# Fake Store
# ============================================================================


def _matches(row: dict[str, Any], filters: list[RecordFilter] | None) -> bool:
    return all(str(row.get(f.column)) == str(f.value) for f in filters or [])


class FakeStore(BaseStore):
    """In-memory BaseStore that records every call."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]], raw_query: bool = False):
        self.tables = tables
        self.raw_query = raw_query
        self.calls: list[tuple[str, Any]] = []
        self.fail_list_tables = False
        self.function_result: StoreResult | None = None

    @property
    def supports_raw_query(self) -> bool:
        return self.raw_query

    def _columns(self, table: str) -> list[str]:
        rows = self.tables.get(table) or []
        return list(rows[0].keys()) if rows else []

    async def list_tables(self) -> StoreResult:
        self.calls.append(("list_tables", None))
        if self.fail_list_tables:
            return StoreResult.fail("catalog unavailable")
        return StoreResult.ok(
            [
                {"name": name, "row_count": len(rows), "columns": self._columns(name)}
                for name, rows in self.tables.items()
            ]
        )

    async def describe_table(self, table: str) -> StoreResult:
        self.calls.append(("describe_table", table))
        if table not in self.tables:
            return StoreResult.fail(f"Table not found: {table}")
        return StoreResult.ok({"columns": self._columns(table), "row_count": len(self.tables[table])})

    async def list_records(
        self,
        table: str,
        *,
        filters: list[RecordFilter] | None = None,
        limit: int | None = None,
        order_by: OrderBy | None = None,
        columns: list[str] | None = None,
    ) -> StoreResult:
        self.calls.append(
            (
                "list_records",
                {
                    "table": table,
                    "filters": filters,
                    "limit": limit,
                    "order_by": order_by,
                    "columns": columns,
                },
            )
        )
        if table not in self.tables:
            return StoreResult.fail(f"Table not found: {table}")
        rows = [row for row in self.tables[table] if _matches(row, filters)]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by.column)), reverse=order_by.descending)
        if columns:
            rows = [{c: row.get(c) for c in columns} for row in rows]
        if limit is not None:
            rows = rows[:limit]
        return StoreResult.ok(rows)

    async def count_records(
        self, table: str, filters: list[RecordFilter] | None = None
    ) -> StoreResult:
        self.calls.append(("count_records", {"table": table, "filters": filters}))
        if table not in self.tables:
            return StoreResult.fail(f"Table not found: {table}")
        return StoreResult.ok({"count": sum(1 for r in self.tables[table] if _matches(r, filters))})

    async def perform_aggregation(self, table, *, type, column=None, filters=None) -> StoreResult:
        self.calls.append(("perform_aggregation", {"table": table, "type": type, "column": column}))
        rows = [r for r in self.tables.get(table, []) if _matches(r, filters)]
        if type == "count_distinct":
            return StoreResult.ok({"result": len({r.get(column) for r in rows})})
        if type == "count":
            return StoreResult.ok({"result": len(rows)})
        return StoreResult.fail(f"Unsupported aggregation: {type}")

    async def call_function(self, name: str, args: dict[str, Any]) -> StoreResult:
        self.calls.append(("call_function", {"name": name, "args": args}))
        if self.function_result is None:
            return await super().call_function(name, args)
        return self.function_result

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def lead_tables() -> dict[str, list[dict[str, Any]]]:
    return {
        "qualified_leads": [
            {"id": 1, "email": "ana@example.com", "name": "Ana", "source": "instagram"},
            {"id": 2, "email": "bruno@example.com", "name": "Bruno", "source": "google"},
            {"id": 3, "email": "ana@example.com", "name": "Ana", "source": "google"},
        ],
        "aula_views": [
            {"id": 1, "email": "ana@example.com", "aula": "intro", "device": "mobile"},
            {"id": 2, "email": "carla@example.com", "aula": "intro", "device": "desktop"},
        ],
    }


@pytest.fixture
def fake_store(lead_tables) -> FakeStore:
    return FakeStore(lead_tables)


@pytest.fixture
def make_store(lead_tables):
    """Factory for FakeStore variants (e.g. make_store(raw_query=True))."""

    def _make(**kwargs) -> FakeStore:
        return FakeStore(lead_tables, **kwargs)

    return _make
