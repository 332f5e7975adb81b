"""SQLite engine adapter: one in-memory database image per open file.

The file is loaded wholesale into an in-memory connection on ``open()`` and
every mutating operation ends with ``flush()``, which serializes the complete
image and atomically replaces the file on disk. A single-row edit therefore
rewrites the whole database.
"""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
import time
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from sqlity.shared.exceptions import (
    DatabaseIOError,
    ImportBatchError,
    ImportFormatError,
    NotOpenError,
    SQLExecutionError,
)
from sqlity.shared.logging import Logger, get_logger
from sqlity.shared.utils import blob_to_text, quote_identifier

from .classify import StatementKind, classify_statement
from .coercion import DEFAULT_TYPE, cast_value
from .csv_codec import format_csv, parse_csv
from .schema_sql import SchemaEntry, render_schema_sql
from .types import (
    ColumnInfo,
    ForeignKeyRef,
    IndexInfo,
    ObjectKind,
    QueryResult,
    SortDirection,
    TableInfo,
    TablePage,
    TableSchema,
)

ROWID_COLUMN = "__rowid"

# Bytes 18/19 of the header hold the file format versions; 2 means WAL, which
# an in-memory image cannot use.
_WAL_HEADER_SLICE = slice(18, 20)
_WAL_VERSIONS = b"\x02\x02"
_ROLLBACK_VERSIONS = b"\x01\x01"

_SQLITE_ERRORS = (sqlite3.Error, sqlite3.Warning)
# Raised by the driver when a Python int does not fit a SQLite INTEGER.
_BIND_ERRORS = (*_SQLITE_ERRORS, OverflowError)


class Database:
    """Owns the in-memory image of one SQLite file and every operation on it."""

    def __init__(self, path: str | Path, *, logger: Logger | None = None) -> None:
        self._path = Path(path).expanduser()
        self._logger = logger or get_logger()
        self._connection: sqlite3.Connection | None = None
        self._dirty = False

    def __enter__(self) -> Database:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------
    # Lifecycle

    def open(self) -> None:
        """Load the file into a fresh in-memory image."""
        try:
            data = self._path.read_bytes()
        except OSError as exc:
            raise DatabaseIOError(f"Unable to read database file {self._path}: {exc}") from exc

        if data[_WAL_HEADER_SLICE] == _WAL_VERSIONS:
            self._logger.debug(f"{self._path.name} uses WAL; loading with a rollback journal.")
            data = data[:18] + _ROLLBACK_VERSIONS + data[20:]

        connection = sqlite3.connect(":memory:", isolation_level=None)
        try:
            if data:
                connection.deserialize(data)
            connection.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
            connection.execute("PRAGMA foreign_keys = ON;")
        except _SQLITE_ERRORS as exc:
            connection.close()
            raise DatabaseIOError(f"{self._path} is not a valid SQLite database: {exc}") from exc

        self._connection = connection
        self._dirty = False
        self._logger.debug(f"Opened {self._path} ({len(data)} bytes).")

    def close(self) -> None:
        """Flush pending changes and release the image."""
        if self._connection is None:
            return
        if self._dirty:
            self.flush()
        self._connection.close()
        self._connection = None
        self._logger.debug(f"Closed {self._path}.")

    def flush(self) -> None:
        """Serialize the whole image and atomically replace the file on disk."""
        connection = self._require_open()
        try:
            data = connection.serialize()
        except _SQLITE_ERRORS as exc:
            raise DatabaseIOError(f"Unable to serialize database image: {exc}") from exc
        self._write_file(data)
        self._dirty = False
        self._logger.debug(f"Flushed {len(data)} bytes to {self._path}.")

    def _write_file(self, data: bytes) -> None:
        parent = self._path.parent
        try:
            fd, temp_path = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=parent)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(temp_path, self._path)
            except Exception:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except OSError as exc:
            raise DatabaseIOError(f"Unable to write database file {self._path}: {exc}") from exc

    def _require_open(self) -> sqlite3.Connection:
        if self._connection is None:
            raise NotOpenError(f"Database {self._path} is not open.")
        return self._connection

    def _persist(self) -> None:
        self._dirty = True
        self.flush()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        connection = self._require_open()
        try:
            return connection.execute(sql, params)
        except _BIND_ERRORS as exc:
            raise SQLExecutionError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Metadata

    def list_tables(self) -> list[TableInfo]:
        """List tables and views by name; a failing count is reported as 0."""
        rows = self._execute(
            """
            SELECT name, type FROM sqlite_master
            WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """
        ).fetchall()
        tables: list[TableInfo] = []
        for name, kind in rows:
            tables.append(TableInfo(name=name, kind=ObjectKind(kind), row_count=self._safe_count(name)))
        return tables

    def _safe_count(self, table: str) -> int:
        try:
            return self._count_rows(table)
        except SQLExecutionError as exc:
            self._logger.debug(f"Row count for {table} unavailable: {exc}")
            return 0

    def _count_rows(self, table: str) -> int:
        row = self._execute(f"SELECT COUNT(*) FROM {quote_identifier(table)}").fetchone()
        return int(row[0]) if row else 0

    def describe_table(self, table: str) -> TableSchema:
        """Return column and index descriptors for ``table``."""
        column_rows = self._execute("SELECT * FROM pragma_table_info(?)", (table,)).fetchall()
        if not column_rows and not self._object_exists(table):
            raise SQLExecutionError(f"no such table: {table}")
        columns = tuple(
            ColumnInfo(
                cid=int(cid),
                name=name,
                type=declared or "",
                not_null=bool(not_null),
                default_value=default,
                pk=int(pk) > 0,
                pk_order=int(pk),
            )
            for cid, name, declared, not_null, default, pk in column_rows
        )

        indexes: list[IndexInfo] = []
        index_rows = self._execute(
            "SELECT name, \"unique\", origin, partial FROM pragma_index_list(?) ORDER BY seq",
            (table,),
        ).fetchall()
        for index_name, unique, origin, partial in index_rows:
            info_rows = self._execute(
                "SELECT name FROM pragma_index_info(?) ORDER BY seqno", (index_name,)
            ).fetchall()
            indexes.append(
                IndexInfo(
                    name=index_name,
                    unique=bool(unique),
                    columns=tuple(row[0] if row[0] is not None else "<expression>" for row in info_rows),
                    origin=origin,
                    partial=bool(partial),
                )
            )
        return TableSchema(table=table, columns=columns, indexes=tuple(indexes))

    def foreign_keys(self, table: str) -> dict[str, ForeignKeyRef]:
        """Map child column to parent reference for single-column foreign keys."""
        rows = self._execute(
            'SELECT id, "table", "from", "to" FROM pragma_foreign_key_list(?) ORDER BY id, seq',
            (table,),
        ).fetchall()
        grouped: dict[int, list[tuple[str, str, str | None]]] = {}
        for fk_id, parent, child, parent_column in rows:
            grouped.setdefault(int(fk_id), []).append((parent, child, parent_column))
        references: dict[str, ForeignKeyRef] = {}
        for members in grouped.values():
            if len(members) != 1:
                continue
            parent, child, parent_column = members[0]
            references[child] = ForeignKeyRef(table=parent, column=parent_column)
        return references

    def synthesize_schema_sql(self) -> str:
        """Generate CREATE TABLE / CREATE INDEX text for the live schema."""
        entries = [
            SchemaEntry(
                info=info,
                schema=self.describe_table(info.name),
                foreign_keys=self.foreign_keys(info.name),
            )
            for info in self.list_tables()
        ]
        return render_schema_sql(entries)

    def _object_exists(self, name: str) -> bool:
        row = self._execute(
            "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?", (name,)
        ).fetchone()
        return row is not None

    def _column_types(self, table: str) -> dict[str, str]:
        return {column.name: column.type for column in self.describe_table(table).columns}

    # ------------------------------------------------------------------
    # Free-form SQL

    def execute_query(self, sql: str) -> QueryResult:
        """Run one statement; mutations are flushed before returning."""
        connection = self._require_open()
        text = sql.strip()

        if classify_statement(text) is StatementKind.READ_ONLY:
            started = time.perf_counter()
            cursor = self._execute(text)
            try:
                rows = [tuple(row) for row in cursor.fetchall()]
            except _SQLITE_ERRORS as exc:
                raise SQLExecutionError(str(exc)) from exc
            elapsed_ms = (time.perf_counter() - started) * 1000
            columns = tuple(column[0] for column in cursor.description or ())
            return QueryResult(columns=columns, rows=rows, rows_affected=0, elapsed_ms=elapsed_ms)

        before = connection.total_changes
        started = time.perf_counter()
        self._execute(text)
        rows_affected = connection.total_changes - before
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._persist()
        return QueryResult(columns=(), rows=[], rows_affected=rows_affected, elapsed_ms=elapsed_ms)

    # ------------------------------------------------------------------
    # Paginated browsing

    def get_table_data(
        self,
        table: str,
        page: int,
        page_size: int,
        order_by: str | None = None,
        order_dir: SortDirection | str = SortDirection.ASC,
    ) -> TablePage:
        """Return one zero-based page of ``table`` with its ``rowid`` first."""
        total_rows = self._count_rows(table)
        direction = SortDirection.parse(order_dir)

        sql = f"SELECT rowid AS {ROWID_COLUMN}, * FROM {quote_identifier(table)}"
        if order_by:
            sql += f" ORDER BY {quote_identifier(order_by)} {direction.value}"
        sql += " LIMIT ? OFFSET ?"

        started = time.perf_counter()
        cursor = self._execute(sql, (page_size, page * page_size))
        rows = [tuple(row) for row in cursor.fetchall()]
        elapsed_ms = (time.perf_counter() - started) * 1000
        columns = tuple(column[0] for column in cursor.description or ())
        return TablePage(
            table=table,
            result=QueryResult(columns=columns, rows=rows, rows_affected=0, elapsed_ms=elapsed_ms),
            page=page,
            page_size=page_size,
            total_rows=total_rows,
        )

    # ------------------------------------------------------------------
    # Row edits

    def update_row(self, table: str, rowid: int, column: str, value: Any) -> int:
        """Set one cell, coercing ``value`` to the column's declared type."""
        declared = self._column_types(table).get(column, DEFAULT_TYPE)
        cursor = self._execute(
            f"UPDATE {quote_identifier(table)} SET {quote_identifier(column)} = ? WHERE rowid = ?",
            (cast_value(value, declared), rowid),
        )
        self._persist()
        return cursor.rowcount

    def insert_row(self, table: str, values: Mapping[str, Any]) -> int | None:
        """Insert the supplied columns only; returns the new rowid."""
        types = self._column_types(table)
        columns = list(values)
        if columns:
            placeholders = ", ".join("?" for _ in columns)
            sql = (
                f"INSERT INTO {quote_identifier(table)} "
                f"({', '.join(quote_identifier(name) for name in columns)}) VALUES ({placeholders})"
            )
            params = [cast_value(values[name], types.get(name, DEFAULT_TYPE)) for name in columns]
        else:
            sql = f"INSERT INTO {quote_identifier(table)} DEFAULT VALUES"
            params = []
        cursor = self._execute(sql, params)
        self._persist()
        return cursor.lastrowid

    def delete_rows(self, table: str, rowids: Sequence[int]) -> int:
        """Delete every row whose rowid is listed, in a single statement."""
        placeholders = ", ".join("?" for _ in rowids)
        cursor = self._execute(
            f"DELETE FROM {quote_identifier(table)} WHERE rowid IN ({placeholders})",
            list(rowids),
        )
        self._persist()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Export

    def _select_all(self, table: str) -> tuple[tuple[str, ...], list[tuple[Any, ...]]]:
        cursor = self._execute(f"SELECT * FROM {quote_identifier(table)}")
        rows = [tuple(row) for row in cursor.fetchall()]
        columns = tuple(column[0] for column in cursor.description or ())
        return columns, rows

    def export_csv(self, table: str) -> str:
        columns, rows = self._select_all(table)
        return format_csv(columns, rows)

    def export_json(self, table: str) -> str:
        columns, rows = self._select_all(table)
        records = [dict(zip(columns, row)) for row in rows]
        return json.dumps(records, indent=2, ensure_ascii=False, default=_json_default)

    # ------------------------------------------------------------------
    # Import

    def import_csv(self, table: str, text: str) -> int:
        """Insert CSV rows (header first) in one transaction; returns the count."""
        lines = parse_csv(text)
        if len(lines) < 2:
            return 0
        header = [name.strip() for name in lines[0]]
        _check_header(header)
        records = (
            [None if field == "" else field for field in line]
            for line in lines[1:]
            if line != [""]
        )
        return self._insert_batch(table, header, records)

    def import_json(self, table: str, text: str) -> int:
        """Insert an array of objects in one transaction; returns the count."""
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"Import file is not valid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise ImportFormatError("JSON import expects an array of objects.")
        if not payload:
            return 0
        for position, record in enumerate(payload, start=1):
            if not isinstance(record, dict):
                raise ImportFormatError(f"JSON record {position} is not an object.")
        header = list(payload[0].keys())
        _check_header(header)
        records = ([record.get(name) for name in header] for record in payload)
        return self._insert_batch(table, header, records)

    def _insert_batch(
        self,
        table: str,
        columns: Sequence[str],
        records: Iterable[Sequence[Any]],
    ) -> int:
        connection = self._require_open()
        types = self._column_types(table)
        declared = [types.get(name, DEFAULT_TYPE) for name in columns]
        sql = (
            f"INSERT INTO {quote_identifier(table)} "
            f"({', '.join(quote_identifier(name) for name in columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )

        imported = 0
        self._execute("BEGIN")
        try:
            for row_number, raw in enumerate(records, start=1):
                try:
                    if len(raw) != len(columns):
                        raise ValueError(f"expected {len(columns)} fields, found {len(raw)}")
                    values = [cast_value(value, kind) for value, kind in zip(raw, declared)]
                    connection.execute(sql, values)
                except (ValueError, *_BIND_ERRORS) as exc:
                    raise ImportBatchError(row_number, exc) from exc
                imported += 1
            self._execute("COMMIT")
        except Exception:
            if connection.in_transaction:
                connection.execute("ROLLBACK")
            raise

        self._logger.debug(f"Imported {imported} row(s) into {table}.")
        self._persist()
        return imported


def _check_header(header: Sequence[str]) -> None:
    if not header or any(not str(name).strip() for name in header):
        raise ImportFormatError("Import header is empty or contains a blank column name.")


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return blob_to_text(bytes(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
