"""
Schema cache.

Process-lifetime, in-memory mapping from table name to its resolved columns.
Entries are created on the first successful resolution and never mutated.

Key format:
  <table_name>   (as declared; the description is not part of the key)
"""

import threading
from typing import Dict, Optional, Sequence, Tuple

from ..models import ColumnDefinition


class SchemaCache:
    """Memoized outcome of one schema generation call per table name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._columns: Dict[str, Tuple[ColumnDefinition, ...]] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, table_name: str) -> bool:
        with self._lock:
            return table_name in self._columns

    def __len__(self) -> int:
        with self._lock:
            return len(self._columns)

    def get(self, table_name: str) -> Optional[Tuple[ColumnDefinition, ...]]:
        with self._lock:
            columns = self._columns.get(table_name)
            if columns is None:
                self.misses += 1
            else:
                self.hits += 1
            return columns

    def set(self, table_name: str, columns: Sequence[ColumnDefinition]) -> Tuple[ColumnDefinition, ...]:
        """Store columns unless an entry exists; returns the entry that is kept."""
        with self._lock:
            existing = self._columns.get(table_name)
            if existing is not None:
                return existing
            entry = tuple(columns)
            self._columns[table_name] = entry
            return entry

    def get_cache_stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._columns), "hits": self.hits, "misses": self.misses}
