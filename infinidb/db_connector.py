"""SQLite virtual-table binding.

Exposes the table registry to SQLite through apsw's virtual table protocol:

    CREATE VIRTUAL TABLE users USING infinidb('people signed up to a newsletter');
    SELECT name FROM users WHERE age > 30;

SQLite owns SQL parsing, planning and filtering; this module only declares
the resolved schema, opens cursors and hands out cell values. Exceptions from
the registry propagate unchanged and surface as query errors.
"""

from typing import Any, Optional, Sequence

import apsw

from .errors import SchemaError
from .generator import GeneratorClient
from .table import Cursor, TableHandle, TableRegistry
from .utils import Configuration, strip_quotes


def _parse_description(args: Sequence[str]) -> str:
    if not args:
        raise SchemaError("missing table description argument")
    return ", ".join(strip_quotes(arg) for arg in args)


class VirtualCursor:
    def __init__(self, cursor: Cursor) -> None:
        self._cursor = cursor

    def Filter(self, indexnum: int, indexname: Optional[str], constraintargs: Sequence[Any]) -> None:
        self._cursor.filter(indexnum, indexname, constraintargs)

    def Eof(self) -> bool:
        return self._cursor.at_end()

    def Next(self) -> None:
        self._cursor.advance()

    def Rowid(self) -> int:
        return self._cursor.row_identity()

    def Column(self, number: int) -> Any:
        if number == -1:
            return self._cursor.row_identity()
        return self._cursor.read_column(number)

    def Close(self) -> None:
        self._cursor.close()


class VirtualTable:
    def __init__(self, handle: TableHandle) -> None:
        self.handle = handle

    def BestIndex(self, constraints: Sequence[Any], orderbys: Sequence[Any]) -> None:
        used = self.handle.best_index(constraints, orderbys)
        if any(used):  # pragma: no cover - the handle never claims a constraint
            raise NotImplementedError("constraint pushdown is not supported")
        # None tells SQLite no constraint is consumed: full scan, post-filtered.
        return None

    def Open(self) -> VirtualCursor:
        return VirtualCursor(self.handle.open())

    def Disconnect(self) -> None:
        self.handle.disconnect()

    def Destroy(self) -> None:
        self.handle.destroy()


class VirtualTableModule:
    """apsw module object; one per registry."""

    def __init__(self, registry: TableRegistry) -> None:
        self.registry = registry

    def Create(self, connection, modulename: str, databasename: str, tablename: str, *args: str):
        return self.Connect(connection, modulename, databasename, tablename, *args)

    def Connect(self, connection, modulename: str, databasename: str, tablename: str, *args: str):
        description = _parse_description(args)
        handle = self.registry.connect(tablename, description)
        schema = self.registry.declare_schema(handle.columns, table_name=tablename)
        return schema, VirtualTable(handle)


def get_connection(
    config: Optional[Configuration] = None,
    registry: Optional[TableRegistry] = None,
    database: str = ":memory:",
) -> apsw.Connection:
    """Open a SQLite connection with the generated-table module registered."""
    if config is None:
        config = registry.config if registry is not None else Configuration.from_env()
    if registry is None:
        registry = TableRegistry(GeneratorClient(config), config=config)

    connection = apsw.Connection(database)
    connection.createmodule(config.module_name, VirtualTableModule(registry))
    return connection
