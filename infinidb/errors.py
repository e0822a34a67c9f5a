"""Exceptions raised while materializing and scanning generated tables."""


class InfiniDBError(Exception):
    """Base class for every error raised by this package."""


class GeneratorError(InfiniDBError):
    """The generative service could not be reached or returned an error."""


# Schema resolution -------------------------------------------------------


class SchemaError(InfiniDBError):
    """A table schema could not be resolved; no table is declared."""


class EmptySchema(SchemaError):
    pass


class DuplicateColumn(SchemaError):
    pass


class InvalidType(SchemaError):
    pass


class MalformedSchema(SchemaError):
    """The schema response was not shaped as {"columns": [...]}."""


class SchemaGenerationError(SchemaError, GeneratorError):
    pass


# Data materialization ----------------------------------------------------


class DataError(InfiniDBError):
    """Rows for a table could not be materialized; nothing is cached."""


class EmptyData(DataError):
    pass


class MalformedResponse(DataError):
    pass


class DataGenerationError(DataError, GeneratorError):
    pass


# Scanning ----------------------------------------------------------------


class CursorError(InfiniDBError):
    pass


class CursorOutOfRange(CursorError, IndexError):
    pass


class TypeMismatch(CursorError, TypeError):
    """A single cell does not match its declared column type."""


class CacheIOError(InfiniDBError, OSError):
    """Writing a data cache file failed. Callers log it and continue."""
