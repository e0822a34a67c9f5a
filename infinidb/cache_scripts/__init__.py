"""Caches used by the table registry.

This subpackage groups the in-memory schema cache and the file-backed data
cache.
"""

from .schema_cache import SchemaCache
from .data_cache import DataCache, get_data_cache

__all__ = [
    "SchemaCache",
    "DataCache",
    "get_data_cache",
]
