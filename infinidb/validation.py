"""Output shapes requested from the generator and validation of its answers.

The generator is asked for strict JSON-schema output. Whatever comes back is
still checked here before anything is cached: a response is accepted or
rejected as a whole, never partially.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from .errors import DuplicateColumn, EmptyData, EmptySchema, InvalidType, MalformedResponse, MalformedSchema
from .models import ColumnDefinition, ColumnType, Row

_JSON_TYPES = {
    ColumnType.INTEGER: "integer",
    ColumnType.REAL: "number",
    ColumnType.TEXT: "string",
    ColumnType.BLOB: "string",
}

_SCALAR_TYPES = (int, float, str, type(None))


def make_schema_shape() -> Dict[str, Any]:
    column_shape = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "The name of the column, lowercase, no spaces"},
            "type": {
                "type": "string",
                "enum": list(ColumnType.values()),
                "description": "The SQLite type of the column",
            },
            "constraints": {
                "type": "string",
                "description": "SQL constraints for the column (e.g., PRIMARY KEY, UNIQUE)",
            },
            "description": {"type": "string", "description": "A brief description of the column"},
        },
        "required": ["name", "type", "constraints", "description"],
        "additionalProperties": False,
    }
    return {
        "title": "table_schema",
        "description": "Schema definition for a SQLite table",
        "type": "object",
        "properties": {
            "columns": {
                "type": "array",
                "description": "The list of columns for the table",
                "items": column_shape,
            }
        },
        "required": ["columns"],
        "additionalProperties": False,
    }


def make_data_shape(columns: Sequence[ColumnDefinition]) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for col in columns:
        properties[col.name] = {
            "type": _JSON_TYPES.get(col.type, "string"),
            "description": col.description,
        }
        required.append(col.name)

    return {
        "title": "table_data",
        "description": "Generated data rows",
        "type": "object",
        "properties": {
            "rows": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                    "additionalProperties": False,
                },
            }
        },
        "required": ["rows"],
        "additionalProperties": False,
    }


def validate_columns(raw_columns: Sequence[Dict[str, Any]]) -> Tuple[ColumnDefinition, ...]:
    if not raw_columns:
        raise EmptySchema("no columns generated")

    seen = set()
    columns: List[ColumnDefinition] = []
    for raw in raw_columns:
        name = str(raw.get("name") or "").strip()
        if not name or name in seen:
            raise DuplicateColumn(f"invalid or duplicate column name: {name!r}")
        seen.add(name)

        col_type = ColumnType.parse(raw.get("type"))
        if col_type is None:
            raise InvalidType(f"invalid column type: {raw.get('type')} for {name}")

        columns.append(
            ColumnDefinition(
                name=name,
                type=col_type,
                constraints=str(raw.get("constraints") or "").strip(),
                description=str(raw.get("description") or "").strip(),
            )
        )
    return tuple(columns)


def parse_columns(payload: Any) -> Tuple[ColumnDefinition, ...]:
    """Turn a schema response into validated columns."""
    if not isinstance(payload, dict) or not isinstance(payload.get("columns"), list):
        raise MalformedSchema("failed to parse schema response: expected an object with a 'columns' array")
    raw_columns = payload["columns"]
    if any(not isinstance(item, dict) for item in raw_columns):
        raise MalformedSchema("failed to parse schema response: every column must be an object")
    return validate_columns(raw_columns)


def parse_rows(payload: Any, columns: Sequence[ColumnDefinition]) -> Tuple[Row, ...]:
    """Turn a data response into an immutable row sequence."""
    if not isinstance(payload, dict) or not isinstance(payload.get("rows"), list):
        raise MalformedResponse("failed to parse data response: expected an object with a 'rows' array")

    declared = {col.name for col in columns}
    rows: List[Row] = []
    for idx, item in enumerate(payload["rows"]):
        if not isinstance(item, dict):
            raise MalformedResponse(f"row {idx} is not an object")
        unknown = [key for key in item if key not in declared]
        if unknown:
            raise MalformedResponse(f"row {idx} has undeclared columns: {', '.join(sorted(unknown))}")
        for key, value in item.items():
            if not isinstance(value, _SCALAR_TYPES):
                raise MalformedResponse(f"row {idx} column {key!r} is not a scalar value")
        rows.append(dict(item))

    if not rows:
        raise EmptyData("no data generated")
    return tuple(rows)
