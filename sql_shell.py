#!/usr/bin/env python3
"""
SQL shell.

Opens a SQLite connection with the `infinidb` virtual-table module registered
and runs SQL against it, either interactively or from `--execute` arguments.

Usage:
    python sql_shell.py
    python sql_shell.py --llm-model "openai:gpt-4o-mini" \
        -c "CREATE VIRTUAL TABLE users USING infinidb('newsletter subscribers')" \
        -c "SELECT * FROM users LIMIT 5"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, List, Optional, Sequence, Tuple

import apsw

from infinidb import Configuration, InfiniDBError
from infinidb.db_connector import get_connection


def _format_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _format_table(columns: Sequence[str], rows: Sequence[Sequence[Any]], padding: int = 2) -> str:
    """Render a result set as left-aligned columns separated by `padding` spaces."""
    cells = [list(columns)] + [[_format_value(v) for v in row] for row in rows]
    widths = [max(len(r[i]) for r in cells) for i in range(len(columns))]
    lines = []
    for r in cells:
        line = (" " * padding).join(c.ljust(w) for c, w in zip(r, widths))
        lines.append(line.rstrip())
    return "\n".join(lines)


def run_statement(connection: apsw.Connection, sql: str) -> Tuple[List[str], List[Tuple[Any, ...]]]:
    """Execute `sql`; return (column names, rows), both empty for statements without results."""
    cursor = connection.cursor()
    cursor.execute(sql)
    try:
        columns = [d[0] for d in cursor.getdescription()]
    except apsw.ExecutionCompleteError:
        return [], []
    rows = [tuple(row) for row in cursor]
    return columns, rows


def _execute_and_print(connection: apsw.Connection, sql: str) -> bool:
    try:
        columns, rows = run_statement(connection, sql)
    except (apsw.Error, InfiniDBError) as e:
        print(f"Error: {e}")
        return False
    if columns:
        print(_format_table(columns, rows))
    return True


def _repl(connection: apsw.Connection) -> None:
    print("Welcome to InfiniDB REPL")
    print("Type 'exit' or 'quit' to leave.")
    while True:
        try:
            line = input("> ")
        except EOFError:
            break
        line = line.strip()
        if not line:
            continue
        if line.lower() in ("exit", "quit"):
            break
        _execute_and_print(connection, line)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="SQL shell over LLM-generated virtual tables.")
    p.add_argument("--database", type=str, default=":memory:", help="SQLite database path (default: in-memory).")
    p.add_argument("--llm-model", type=str, default=None, help="LangChain model id, e.g. 'openai:gpt-4o-mini'.")
    p.add_argument("--temperature", type=float, default=None, help="Sampling temperature for generation.")
    p.add_argument("--cache-dir", type=str, default=None, help="Directory for generated table data (default: .cache).")
    p.add_argument(
        "-c",
        "--execute",
        action="append",
        default=[],
        metavar="SQL",
        help="Statement to run; may be repeated. The shell exits after running them.",
    )
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )
    return p.parse_args(argv)


def main(args: argparse.Namespace) -> int:
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    config = Configuration.from_env(
        llm_model=args.llm_model,
        temperature=args.temperature,
        cache_dir=args.cache_dir,
    )
    connection = get_connection(config, database=args.database)
    try:
        if args.execute:
            ok = True
            for sql in args.execute:
                ok = _execute_and_print(connection, sql) and ok
            return 0 if ok else 1
        _repl(connection)
        return 0
    finally:
        connection.close()


def cli() -> None:
    sys.exit(main(_parse_args()))


if __name__ == "__main__":
    cli()
