"""SQLite tables whose schema and rows are generated on demand by an LLM."""

from .utils import Configuration
from .models import ColumnDefinition, ColumnType, TableDefinition
from .errors import (
    CacheIOError,
    CursorError,
    CursorOutOfRange,
    DataError,
    DataGenerationError,
    DuplicateColumn,
    EmptyData,
    EmptySchema,
    GeneratorError,
    InfiniDBError,
    InvalidType,
    MalformedResponse,
    MalformedSchema,
    SchemaError,
    SchemaGenerationError,
    TypeMismatch,
)
from .generator import Generator, GeneratorClient
from .cache_scripts.schema_cache import SchemaCache
from .cache_scripts.data_cache import DataCache, get_data_cache
from .table import Cursor, TableHandle, TableRegistry

# Re-export common helpers so callers can `from infinidb import ...`
__all__ = [
    "Configuration",
    "ColumnDefinition",
    "ColumnType",
    "TableDefinition",
    "InfiniDBError",
    "GeneratorError",
    "SchemaError",
    "EmptySchema",
    "DuplicateColumn",
    "InvalidType",
    "MalformedSchema",
    "SchemaGenerationError",
    "DataError",
    "EmptyData",
    "MalformedResponse",
    "DataGenerationError",
    "CursorError",
    "CursorOutOfRange",
    "TypeMismatch",
    "CacheIOError",
    "Generator",
    "GeneratorClient",
    "SchemaCache",
    "DataCache",
    "get_data_cache",
    "TableRegistry",
    "TableHandle",
    "Cursor",
]

__version__ = "1.0.0"
