"""
Data Store Connectors

Async access to the analytics data the pipeline reads from.

Available Stores:
    - PostgresStore: PostgreSQL via asyncpg

Usage:
    from insightbot.connectors import PostgresStore

    store = PostgresStore.from_url("postgresql://localhost/analytics")
    await store.connect()
"""

from insightbot.connectors.base import (
    BaseStore,
    StoreConnectionError,
    StoreError,
    StoreQueryError,
    StoreResult,
    UnsupportedOperationError,
)
from insightbot.connectors.postgres import PostgresStore

__all__ = [
    "BaseStore",
    "PostgresStore",
    "StoreConnectionError",
    "StoreError",
    "StoreQueryError",
    "StoreResult",
    "UnsupportedOperationError",
]
