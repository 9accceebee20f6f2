"""
Database Layer

Schema caching and translation of drafted queries into store operations.
"""

from insightbot.database.query_executor import QueryExecutor
from insightbot.database.schema_cache import SchemaCache
from insightbot.database.translator import translate

__all__ = ["QueryExecutor", "SchemaCache", "translate"]
