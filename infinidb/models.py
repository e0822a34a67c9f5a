"""Table and column definitions shared by the caches, the registry and the cursor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


# Scalars a generated row may carry. Coercion to the declared column type
# happens only when a cursor reads a cell.
Value = Union[int, float, str, bytes, None]
Row = Dict[str, Value]


class ColumnType(str, Enum):
    """SQLite storage classes a generated column may declare."""

    INTEGER = "INTEGER"
    TEXT = "TEXT"
    REAL = "REAL"
    BLOB = "BLOB"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)

    @classmethod
    def parse(cls, raw: Any) -> Optional["ColumnType"]:
        """Exact, case-sensitive lookup; returns None for anything else."""
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(frozen=True)
class ColumnDefinition:
    name: str
    type: ColumnType
    constraints: str = ""
    description: str = ""


@dataclass(frozen=True)
class TableDefinition:
    """A named table and its resolved columns.

    Identity is the name alone: two definitions that differ only in
    description address the same cache entries.
    """

    name: str
    description: str
    columns: Tuple[ColumnDefinition, ...] = field(default_factory=tuple)

