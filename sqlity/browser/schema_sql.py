"""Rebuild CREATE TABLE / CREATE INDEX text from PRAGMA introspection.

The output is context for SQL generation, so it aims to be valid SQL that
describes the live schema rather than a byte-for-byte copy of the original
DDL. Defaults are emitted exactly as SQLite stored them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlity.shared.utils import format_count, quote_identifier

from .types import ColumnInfo, ForeignKeyRef, IndexInfo, ObjectKind, TableInfo, TableSchema

ANY_TYPE = "ANY"
_BARE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True, slots=True)
class SchemaEntry:
    """Everything needed to render one table or view."""

    info: TableInfo
    schema: TableSchema
    foreign_keys: Mapping[str, ForeignKeyRef]


def render_schema_sql(entries: Iterable[SchemaEntry]) -> str:
    """Render the full schema script, one block per table or view."""
    return "".join(render_table_block(entry) for entry in entries)


def render_table_block(entry: SchemaEntry) -> str:
    info = entry.info
    table = quote_identifier(info.name)
    pk_columns = [column for column in entry.schema.columns if column.pk]
    composite_pk = len(pk_columns) > 1

    clauses = [
        _column_clause(column, entry.foreign_keys.get(column.name), inline_pk=not composite_pk)
        for column in entry.schema.columns
    ]
    if composite_pk:
        ordered = sorted(pk_columns, key=lambda column: column.pk_order)
        clauses.append(f"  PRIMARY KEY ({_column_list(column.name for column in ordered)})")

    created_indexes: list[IndexInfo] = []
    for index in entry.schema.indexes:
        if index.origin == "u":
            clauses.append(f"  UNIQUE ({_column_list(index.columns)})")
        elif index.origin == "c":
            created_indexes.append(index)

    lines = [_comment_line(info)]
    lines.append(f"CREATE TABLE {table} (\n" + ",\n".join(clauses) + "\n);")
    for index in created_indexes:
        unique = "UNIQUE " if index.unique else ""
        lines.append(
            f"CREATE {unique}INDEX {quote_identifier(index.name)} ON {table} "
            f"({_column_list(index.columns)});"
        )
    return "\n".join(lines) + "\n\n"


def _comment_line(info: TableInfo) -> str:
    if info.kind is ObjectKind.VIEW:
        return f"-- {info.name} (view, {format_count(info.row_count)} rows)"
    return f"-- {info.name} ({format_count(info.row_count)} rows)"


def _column_clause(column: ColumnInfo, reference: ForeignKeyRef | None, *, inline_pk: bool) -> str:
    clause = f"  {_column_name(column.name)} {column.type or ANY_TYPE}"
    if column.pk and inline_pk:
        clause += " PRIMARY KEY"
    if column.not_null or (column.pk and inline_pk and _is_rowid_alias(column)):
        clause += " NOT NULL"
    if column.default_value is not None:
        clause += f" DEFAULT {column.default_value}"
    if reference is not None:
        clause += f" REFERENCES {quote_identifier(reference.table)}"
        if reference.column:
            clause += f"({quote_identifier(reference.column)})"
    return clause


def _is_rowid_alias(column: ColumnInfo) -> bool:
    # A lone INTEGER PRIMARY KEY aliases rowid and can never hold NULL, though
    # PRAGMA table_info reports notnull=0 for it.
    return column.type.upper() == "INTEGER"


def _column_name(name: str) -> str:
    if _BARE_NAME_RE.match(name):
        return name
    return quote_identifier(name)


def _column_list(names: Iterable[str]) -> str:
    return ", ".join(quote_identifier(name) for name in names)
