"""Output rendering helpers for the sqlity CLI."""

from __future__ import annotations

import csv
import json
import sys
from typing import IO, Any, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from sqlity.browser.types import QueryResult, TableInfo, TablePage, TableSchema
from sqlity.shared.logging import Logger
from sqlity.shared.utils import blob_to_text, format_count


def render_query_result(
    result: QueryResult,
    *,
    output_format: str,
    logger: Logger,
    stream: IO[str] | None = None,
) -> None:
    """Render a query result set to the desired format."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if not result.columns:
        logger.info(f"{result.rows_affected} row(s) affected in {result.elapsed_ms:.1f} ms.")
        return

    if fmt == "table":
        _render_table(result.columns, result.rows, stream=output_stream)
        logger.info(f"{len(result.rows)} row(s) in {result.elapsed_ms:.1f} ms.")
    elif fmt == "csv":
        _render_delimited(result, stream=output_stream)
    elif fmt == "json":
        _render_json(result, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")


def render_table_page(page: TablePage, *, logger: Logger, stream: IO[str] | None = None) -> None:
    output_stream = stream or sys.stdout
    _render_table(page.result.columns, page.result.rows, stream=output_stream)
    pages = max(page.page_count, 1)
    logger.info(
        f"Page {page.page + 1} of {pages} ({format_count(page.total_rows)} rows in {page.table})."
    )


def render_tables(tables: Sequence[TableInfo], *, logger: Logger, stream: IO[str] | None = None) -> None:
    output_stream = stream or sys.stdout
    if not tables:
        logger.info("No tables found.")
        return
    console = Console(file=output_stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Rows", justify="right")
    for info in tables:
        table.add_row(info.name, info.kind.value, format_count(info.row_count))
    console.print(table)


def render_table_schema(schema: TableSchema, *, stream: IO[str] | None = None) -> None:
    output_stream = stream or sys.stdout
    console = Console(file=output_stream, highlight=False, force_terminal=False)
    console.print(f"[bold]{schema.table}[/bold]")
    column_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    column_table.add_column("#", justify="right")
    column_table.add_column("Column")
    column_table.add_column("Type")
    column_table.add_column("PK")
    column_table.add_column("Not Null")
    column_table.add_column("Default")
    for column in schema.columns:
        column_table.add_row(
            str(column.cid),
            column.name,
            column.type,
            "✅" if column.pk else "",
            "✅" if column.not_null else "",
            column.default_value or "",
        )
    console.print(column_table)

    if schema.indexes:
        idx_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
        idx_table.add_column("Index")
        idx_table.add_column("Unique")
        idx_table.add_column("Columns")
        for index in schema.indexes:
            idx_table.add_row(index.name, "✅" if index.unique else "", ", ".join(index.columns))
        console.print(idx_table)


def _render_table(columns: Sequence[str], rows: Sequence[Sequence[Any]], *, stream: IO[str]) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE_HEAVY, show_header=bool(columns), header_style="bold")
    for column in columns:
        table.add_column(column or "")
    for row in rows:
        table.add_row(*[_stringify(cell) for cell in row])
    console.print(table)


def _render_delimited(result: QueryResult, *, stream: IO[str]) -> None:
    writer = csv.writer(stream)
    writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow(_stringify(cell) for cell in row)


def _render_json(result: QueryResult, *, stream: IO[str]) -> None:
    records = [
        {column: _convert_json_value(value) for column, value in zip(result.columns, row)}
        for row in result.rows
    ]
    json.dump(records, stream, indent=2)
    stream.write("\n")


def _stringify(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bytes):
        return f"<blob {len(value)} bytes>"
    return str(value)


def _convert_json_value(value: object) -> object:
    if isinstance(value, bytes):
        return blob_to_text(value)
    return value
