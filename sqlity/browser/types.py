"""Data structures shared across the browser engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence, Union

CellValue = Union[str, int, float, bytes, None]


class ObjectKind(str, Enum):
    TABLE = "table"
    VIEW = "view"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, raw: str | SortDirection | None) -> SortDirection:
        if raw is None:
            return cls.ASC
        if isinstance(raw, SortDirection):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError as exc:
            raise ValueError(f"Sort direction must be ASC or DESC, got '{raw}'.") from exc


@dataclass(frozen=True, slots=True)
class TableInfo:
    """A table or view listed from the system catalog."""

    name: str
    kind: ObjectKind
    row_count: int


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column metadata from ``PRAGMA table_info``."""

    cid: int
    name: str
    type: str
    not_null: bool
    default_value: str | None
    pk: bool
    pk_order: int = 0


@dataclass(frozen=True, slots=True)
class IndexInfo:
    """Index metadata from ``PRAGMA index_list`` / ``PRAGMA index_info``.

    ``origin`` is ``c`` for CREATE INDEX, ``u`` for a UNIQUE constraint and
    ``pk`` for a PRIMARY KEY constraint.
    """

    name: str
    unique: bool
    columns: tuple[str, ...]
    origin: str = "c"
    partial: bool = False


@dataclass(frozen=True, slots=True)
class TableSchema:
    """Columns and indexes of a single table."""

    table: str
    columns: tuple[ColumnInfo, ...]
    indexes: tuple[IndexInfo, ...]

    def column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


@dataclass(frozen=True, slots=True)
class ForeignKeyRef:
    """Parent side of a single-column foreign key."""

    table: str
    column: str | None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Structured result set returned by the engine."""

    columns: tuple[str, ...]
    rows: Sequence[tuple[Any, ...]]
    rows_affected: int
    elapsed_ms: float

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True, slots=True)
class TablePage:
    """One page of table rows plus the table's total row count.

    The first result column is ``__rowid``, the handle used for later edits.
    """

    table: str
    result: QueryResult
    page: int
    page_size: int
    total_rows: int

    @property
    def page_count(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_rows / self.page_size)
