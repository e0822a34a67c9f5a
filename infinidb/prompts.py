"""Prompt strings used for schema and data generation."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from .models import ColumnDefinition, ColumnType

schema_generation_prompt = (
    "You are designing a SQLite table.\n"
    "Table name: {table_name}\n"
    "Table description: {table_description}\n\n"
    "Propose the columns this table should have. For every column give a lowercase name without spaces, "
    "one SQLite type out of " + ", ".join(ColumnType.values()) + ", any SQL column constraints "
    "(for example PRIMARY KEY or NOT NULL, or an empty string) and a short description. "
    "Column names must be unique."
)

data_generation_prompt = (
    "You are filling a SQLite table with realistic sample data.\n"
    "Table name: {table_name}\n"
    "Table description: {table_description}\n\n"
    "Columns:\n{columns}\n\n"
    "Generate between 10 and 30 rows that are plausible for this table. Every row must provide a value "
    "for every column, respect the column constraints, and use the declared type: whole numbers for "
    "INTEGER, decimal numbers for REAL, text for TEXT and BLOB."
)


def format_columns(columns: Sequence[ColumnDefinition]) -> str:
    lines = []
    for col in columns:
        parts = [f"- {col.name} {col.type.value}"]
        if col.constraints:
            parts.append(col.constraints)
        line = " ".join(parts)
        if col.description:
            line += f": {col.description}"
        lines.append(line)
    return "\n".join(lines)


def load_template(path: Optional[str], default: str) -> str:
    """Read a prompt template file, or fall back to the built-in template."""
    if not path:
        return default
    with Path(path).expanduser().open("r", encoding="utf-8") as f:
        return f.read()


def render_prompt(
    template: str,
    *,
    table_name: str,
    table_description: str,
    columns: Optional[Sequence[ColumnDefinition]] = None,
) -> str:
    return template.format(
        table_name=table_name,
        table_description=table_description,
        columns=format_columns(columns or ()),
    )


def get_schema_generation_prompt(table_name: str, table_description: str, template_path: Optional[str] = None) -> str:
    template = load_template(template_path, schema_generation_prompt)
    return render_prompt(template, table_name=table_name, table_description=table_description)


def get_data_generation_prompt(
    table_name: str,
    table_description: str,
    columns: Sequence[ColumnDefinition],
    template_path: Optional[str] = None,
) -> str:
    template = load_template(template_path, data_generation_prompt)
    return render_prompt(template, table_name=table_name, table_description=table_description, columns=columns)
