"""Lazily materialized tables.

Lifecycle, enforced by which object exposes which call:

    TableRegistry.connect(name, description)  -> TableHandle  (schema resolved)
    TableHandle.open()                         -> Cursor       (rows materialized)
    Cursor.filter / advance / at_end / read_column

A `TableHandle` only exists once its columns are known, and a `Cursor` only
exists once its rows are, so no row can be produced before the schema and no
scan can start before the data.

The registry owns the schema cache, the data cache and the in-flight call
maps; each generator call happens at most once per table name at a time, and
its result is memoized (schema for the process, data on disk).
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from sqlglot import exp

from .cache_scripts.data_cache import DataCache
from .cache_scripts.schema_cache import SchemaCache
from .coalesce import InflightCalls
from .errors import (
    CacheIOError,
    CursorOutOfRange,
    DataError,
    DataGenerationError,
    GeneratorError,
    SchemaError,
    SchemaGenerationError,
    TypeMismatch,
)
from .generator import Generator
from .models import ColumnDefinition, ColumnType, Row, TableDefinition, Value
from .prompts import get_data_generation_prompt, get_schema_generation_prompt
from .utils import Configuration
from .validation import make_data_shape, make_schema_shape, parse_columns, parse_rows

logger = logging.getLogger(__name__)


class Scannable(Protocol):
    def filter(self, *args: Any) -> None: ...

    def advance(self) -> None: ...

    def at_end(self) -> bool: ...

    def row_identity(self) -> int: ...

    def read_column(self, index: int) -> Value: ...

    def close(self) -> None: ...


class Openable(Protocol):
    definition: TableDefinition

    def best_index(self, constraints: Sequence[Any], orderbys: Sequence[Any]) -> List[bool]: ...

    def open(self) -> Scannable: ...

    def disconnect(self) -> None: ...

    def destroy(self) -> None: ...


class Resolvable(Protocol):
    def connect(self, name: str, description: str) -> Openable: ...


INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def coerce_value(column: ColumnDefinition, value: Value) -> Value:
    """Translate a stored value into the column's declared type."""
    if value is None:
        return None

    if column.type is ColumnType.INTEGER:
        number = None
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        elif isinstance(value, float) and value.is_integer():
            number = int(value)
        if number is not None and INT64_MIN <= number <= INT64_MAX:
            return number
    elif column.type is ColumnType.TEXT:
        if isinstance(value, str):
            return value
    elif column.type is ColumnType.REAL:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif column.type is ColumnType.BLOB:
        if isinstance(value, str):
            return value.encode("utf-8")
        if isinstance(value, bytes):
            return value

    raise TypeMismatch(f"type mismatch for {column.name}: expected {column.type.value.lower()}, got {value!r}")


class Cursor:
    """Position-based iterator over one table's materialized rows.

    The row sequence is shared with every other cursor of the table and is
    never modified; the cursor owns only its position.
    """

    def __init__(self, table: TableDefinition, rows: Sequence[Row]) -> None:
        self.table = table
        self._rows = rows
        self._pos = 0

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def filter(self, *args: Any) -> None:
        # Constraints are advisory; the query engine post-filters a full scan.
        self._pos = 0

    def advance(self) -> None:
        self._pos += 1

    def at_end(self) -> bool:
        return self._pos >= len(self._rows)

    def row_identity(self) -> int:
        return self._pos

    def read_column(self, index: int) -> Value:
        if not 0 <= self._pos < len(self._rows) or not 0 <= index < len(self.table.columns):
            raise CursorOutOfRange(f"invalid cursor position {self._pos} or column index {index}")

        column = self.table.columns[index]
        row = self._rows[self._pos]
        if column.name not in row:
            return None
        return coerce_value(column, row[column.name])

    def close(self) -> None:
        pass


class TableHandle:
    """A table whose columns are resolved; opens cursors over its rows."""

    def __init__(self, registry: "TableRegistry", definition: TableDefinition) -> None:
        self._registry = registry
        self.definition = definition

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    @property
    def columns(self) -> Tuple[ColumnDefinition, ...]:
        return self.definition.columns

    def best_index(self, constraints: Sequence[Any], orderbys: Sequence[Any]) -> List[bool]:
        """Report every constraint as unused: each scan is a full scan."""
        return [False] * len(constraints)

    def open(self) -> Cursor:
        rows = self._registry.data_cache.get_rows(self.name)
        if rows is None:
            rows = self._registry.data_calls.run(self.name, self._materialize)
        return Cursor(self.definition, rows)

    def _materialize(self) -> Tuple[Row, ...]:
        cache = self._registry.data_cache
        try:
            with cache.lock(self.name, timeout=self._registry.config.lock_timeout):
                # Another process may have finished while we waited on the lock.
                rows = cache.get_rows(self.name)
                if rows is not None:
                    return rows
                rows = self._generate_rows()
                try:
                    return cache.set_rows(self.name, rows)
                except CacheIOError as e:
                    logger.warning("Failed to write to cache: %s", e)
                    return rows
        except TimeoutError as e:
            raise DataError(f"could not lock data cache for table {self.name}: {e}") from e

    def _generate_rows(self) -> Tuple[Row, ...]:
        config = self._registry.config
        try:
            prompt = get_data_generation_prompt(self.name, self.description, self.columns, config.data_prompt_path)
        except (OSError, KeyError, IndexError, ValueError) as e:
            raise DataError(f"failed to render data prompt: {e}") from e

        try:
            payload = self._registry.generator.generate(prompt, make_data_shape(self.columns))
        except GeneratorError as e:
            raise DataGenerationError(f"data generation failed for table {self.name}: {e}") from e
        return parse_rows(payload, self.columns)

    def disconnect(self) -> None:
        pass

    def destroy(self) -> None:
        pass


class TableRegistry:
    """Entry point for instantiating generated tables."""

    def __init__(
        self,
        generator: Generator,
        config: Optional[Configuration] = None,
        schema_cache: Optional[SchemaCache] = None,
        data_cache: Optional[DataCache] = None,
    ) -> None:
        self.generator = generator
        self.config = config or Configuration.from_env()
        self.schema_cache = schema_cache if schema_cache is not None else SchemaCache()
        self.data_cache = data_cache if data_cache is not None else DataCache(self.config.get_data_cache_dir())
        self.schema_calls = InflightCalls()
        self.data_calls = InflightCalls()

    def resolve_columns(self, name: str, description: str) -> Tuple[ColumnDefinition, ...]:
        cached = self.schema_cache.get(name)
        if cached is not None:
            logger.debug("Schema cache hit for table: %s", name)
            return cached
        return self.schema_calls.run(name, lambda: self._generate_columns(name, description))

    def _generate_columns(self, name: str, description: str) -> Tuple[ColumnDefinition, ...]:
        if name in self.schema_cache:
            return self.schema_cache.get(name)

        try:
            prompt = get_schema_generation_prompt(name, description, self.config.schema_prompt_path)
        except (OSError, KeyError, IndexError, ValueError) as e:
            raise SchemaError(f"failed to render schema prompt: {e}") from e

        try:
            payload = self.generator.generate(prompt, make_schema_shape())
        except GeneratorError as e:
            raise SchemaGenerationError(f"schema generation failed for table {name}: {e}") from e

        columns = parse_columns(payload)
        return self.schema_cache.set(name, columns)

    def connect(self, name: str, description: str) -> TableHandle:
        columns = self.resolve_columns(name, description)
        return TableHandle(self, TableDefinition(name=name, description=description, columns=columns))

    # Both entry points of the engine's module contract resolve the same way.
    create = connect

    @staticmethod
    def declare_schema(columns: Sequence[ColumnDefinition], table_name: str = "virtual_table") -> str:
        """The CREATE TABLE statement declaring `columns` to the query engine."""
        parts = []
        for col in columns:
            part = f"{exp.to_identifier(col.name, quoted=True).sql(dialect='sqlite')} {col.type.value}"
            if col.constraints:
                part += f" {col.constraints}"
            parts.append(part)
        table = exp.to_identifier(table_name, quoted=True).sql(dialect="sqlite")
        return f"CREATE TABLE {table} ({', '.join(parts)})"
