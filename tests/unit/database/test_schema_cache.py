"""Unit tests for the TTL schema cache."""

import pytest

from insightbot.connectors.base import StoreResult
from insightbot.database.schema_cache import SchemaCache
from insightbot.models import SchemaError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(fake_store, clock):
    return SchemaCache(fake_store, tables_ttl_seconds=300, schema_ttl_seconds=300, clock=clock)


class TestDiscoverTables:
    @pytest.mark.asyncio
    async def test_lists_catalog(self, cache):
        tables = await cache.discover_tables()

        assert [t.name for t in tables] == ["qualified_leads", "aula_views"]
        assert tables[0].row_count == 3
        assert tables[0].columns == ["id", "email", "name", "source"]

    @pytest.mark.asyncio
    async def test_served_from_cache_within_ttl(self, cache, fake_store, clock):
        first = await cache.discover_tables()
        clock.advance(299)
        second = await cache.discover_tables()

        assert second is first
        assert fake_store.call_names().count("list_tables") == 1

    @pytest.mark.asyncio
    async def test_refetched_once_after_ttl(self, cache, fake_store, clock):
        await cache.discover_tables()
        clock.advance(301)
        await cache.discover_tables()
        await cache.discover_tables()

        assert fake_store.call_names().count("list_tables") == 2

    @pytest.mark.asyncio
    async def test_failure_returns_empty_and_is_not_cached(self, cache, fake_store):
        fake_store.fail_list_tables = True
        assert await cache.discover_tables() == []

        fake_store.fail_list_tables = False
        tables = await cache.discover_tables()

        assert len(tables) == 2
        assert fake_store.call_names().count("list_tables") == 2

    @pytest.mark.asyncio
    async def test_store_exception_returns_empty(self, cache, fake_store):
        async def broken():
            raise RuntimeError("socket closed")

        fake_store.list_tables = broken

        assert await cache.discover_tables() == []


class TestSchemas:
    @pytest.mark.asyncio
    async def test_get_schema_with_samples(self, cache):
        schema = await cache.get_schema("aula_views")

        assert schema.columns == ["id", "email", "aula", "device"]
        assert schema.row_count == 2
        assert len(schema.sample_rows) == 2
        assert schema.sample_rows[0]["aula"] == "intro"

    @pytest.mark.asyncio
    async def test_schema_cached_within_ttl(self, cache, fake_store, clock):
        first = await cache.get_schema("qualified_leads")
        clock.advance(100)
        second = await cache.get_schema("qualified_leads")

        assert second is first
        assert fake_store.call_names().count("describe_table") == 1

    @pytest.mark.asyncio
    async def test_unknown_table_raises(self, cache):
        with pytest.raises(SchemaError) as exc_info:
            await cache.get_schema("missing_table")

        assert exc_info.value.table == "missing_table"
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_get_schemas_skips_failures(self, cache):
        schemas = await cache.get_schemas(["qualified_leads", "missing_table", "aula_views"])

        assert [s.name for s in schemas] == ["qualified_leads", "aula_views"]

    @pytest.mark.asyncio
    async def test_no_samples_when_disabled(self, fake_store, clock):
        cache = SchemaCache(fake_store, sample_size=0, clock=clock)

        schema = await cache.get_schema("qualified_leads")

        assert schema.sample_rows == []
        assert "list_records" not in fake_store.call_names()


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_invalidate_one_table(self, cache, fake_store):
        await cache.get_schema("qualified_leads")
        cache.invalidate("qualified_leads")
        await cache.get_schema("qualified_leads")

        assert fake_store.call_names().count("describe_table") == 2

    @pytest.mark.asyncio
    async def test_invalidate_everything_and_snapshot(self, cache):
        await cache.discover_tables()
        await cache.get_schema("aula_views")

        snapshot = cache.snapshot()
        assert snapshot["cached_tables"] == 2
        assert snapshot["cached_schemas"] == 1
        assert snapshot["tables_ttl_seconds"] == 300

        cache.invalidate()
        assert cache.snapshot()["cached_tables"] == 0
        assert cache.snapshot()["cached_schemas"] == 0


class TestMalformedPayloads:
    @pytest.mark.asyncio
    async def test_catalog_of_plain_names_returns_empty(self, cache, fake_store):
        async def names_only():
            return StoreResult.ok(["qualified_leads"])

        fake_store.list_tables = names_only

        assert await cache.discover_tables() == []
        assert cache.snapshot()["cached_tables"] == 0

    @pytest.mark.asyncio
    async def test_catalog_with_invalid_row_count_returns_empty(self, cache, fake_store):
        async def bad_counts():
            return StoreResult.ok([{"name": "qualified_leads", "row_count": "many"}])

        fake_store.list_tables = bad_counts

        assert await cache.discover_tables() == []

    @pytest.mark.asyncio
    async def test_invalid_description_is_skipped(self, cache, fake_store):
        async def describe(table):
            if table == "aula_views":
                return StoreResult.ok({"columns": [1, 2], "row_count": 2})
            return StoreResult.ok({"columns": ["id", "email"], "row_count": 3})

        fake_store.describe_table = describe

        with pytest.raises(SchemaError):
            await cache.get_schema("aula_views")
        schemas = await cache.get_schemas(["aula_views", "qualified_leads"])

        assert [s.name for s in schemas] == ["qualified_leads"]

    @pytest.mark.asyncio
    async def test_non_dict_sample_rows_are_ignored(self, cache, fake_store):
        async def list_records(table, **kwargs):
            return StoreResult.ok(["not a row", {"id": 1}])

        fake_store.list_records = list_records

        schema = await cache.get_schema("qualified_leads")

        assert schema.sample_rows == [{"id": 1}]
