"""Typed request variants, one per browser operation.

UI payloads arrive as loose mappings such as ``{"type": "getTableData",
"table": "users", "page": 0, "pageSize": 50}``. ``decode_request`` validates
them once at the boundary so the dispatcher only ever sees typed requests.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from sqlity.browser.types import SortDirection
from sqlity.shared.exceptions import RequestError

TRANSFER_FORMATS = ("csv", "json")


@dataclass(frozen=True, slots=True)
class GetTables:
    pass


@dataclass(frozen=True, slots=True)
class Refresh:
    pass


@dataclass(frozen=True, slots=True)
class GetSchema:
    table: str


@dataclass(frozen=True, slots=True)
class GetSchemaSQL:
    pass


@dataclass(frozen=True, slots=True)
class ExecuteQuery:
    sql: str


@dataclass(frozen=True, slots=True)
class GetTableData:
    table: str
    page: int
    page_size: int
    order_by: str | None = None
    order_dir: SortDirection = SortDirection.ASC


@dataclass(frozen=True, slots=True)
class UpdateRow:
    table: str
    rowid: int
    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class InsertRow:
    table: str
    values: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeleteRows:
    table: str
    rowids: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class ExportTable:
    table: str
    format: str


@dataclass(frozen=True, slots=True)
class ImportTable:
    table: str
    format: str
    content: str


@dataclass(frozen=True, slots=True)
class SaveQuery:
    name: str
    sql: str


@dataclass(frozen=True, slots=True)
class GetSavedQueries:
    pass


@dataclass(frozen=True, slots=True)
class DeleteSavedQuery:
    name: str


@dataclass(frozen=True, slots=True)
class GetHistory:
    pass


@dataclass(frozen=True, slots=True)
class PinHistoryEntry:
    id: str


@dataclass(frozen=True, slots=True)
class AssistGenerate:
    prompt: str


@dataclass(frozen=True, slots=True)
class AssistExecute:
    sql: str
    message_id: str


Request = Union[
    GetTables,
    Refresh,
    GetSchema,
    GetSchemaSQL,
    ExecuteQuery,
    GetTableData,
    UpdateRow,
    InsertRow,
    DeleteRows,
    ExportTable,
    ImportTable,
    SaveQuery,
    GetSavedQueries,
    DeleteSavedQuery,
    GetHistory,
    PinHistoryEntry,
    AssistGenerate,
    AssistExecute,
]


# ---------------------------------------------------------------------------
# Field validators


def _text(key: str, raw: Any) -> str:
    if not isinstance(raw, str):
        raise RequestError(f"Field '{key}' must be a string.")
    return raw


def _name(key: str, raw: Any) -> str:
    value = _text(key, raw)
    if not value.strip():
        raise RequestError(f"Field '{key}' must not be empty.")
    return value


def _integer(key: str, raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise RequestError(f"Field '{key}' must be an integer.")
    return raw


def _non_negative(key: str, raw: Any) -> int:
    value = _integer(key, raw)
    if value < 0:
        raise RequestError(f"Field '{key}' must not be negative.")
    return value


def _positive(key: str, raw: Any) -> int:
    value = _integer(key, raw)
    if value <= 0:
        raise RequestError(f"Field '{key}' must be positive.")
    return value


def _rowids(key: str, raw: Any) -> tuple[int, ...]:
    if not isinstance(raw, (list, tuple)):
        raise RequestError(f"Field '{key}' must be a list of integers.")
    values = tuple(_integer(key, item) for item in raw)
    if not values:
        raise RequestError(f"Field '{key}' must list at least one row.")
    return values


def _values(key: str, raw: Any) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise RequestError(f"Field '{key}' must be an object keyed by column name.")
    return {str(column): value for column, value in raw.items()}


def _direction(key: str, raw: Any) -> SortDirection:
    try:
        return SortDirection.parse(raw)
    except ValueError as exc:
        raise RequestError(f"Field '{key}': {exc}") from exc


def _optional_name(key: str, raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    return _name(key, raw)


def _transfer_format(key: str, raw: Any) -> str:
    value = _text(key, raw).lower()
    if value not in TRANSFER_FORMATS:
        raise RequestError(f"Field '{key}' must be one of: {', '.join(TRANSFER_FORMATS)}.")
    return value


def _anything(key: str, raw: Any) -> Any:
    return raw


_Validator = Callable[[str, Any], Any]
_FieldSpec = tuple[str, str, _Validator, bool]

# type tag -> (request class, [(payload key, attribute, validator, required)])
_REQUEST_SPECS: dict[str, tuple[type, list[_FieldSpec]]] = {
    "getTables": (GetTables, []),
    "refresh": (Refresh, []),
    "getSchema": (GetSchema, [("table", "table", _name, True)]),
    "getSchemaSQL": (GetSchemaSQL, []),
    "executeQuery": (ExecuteQuery, [("sql", "sql", _name, True)]),
    "getTableData": (
        GetTableData,
        [
            ("table", "table", _name, True),
            ("page", "page", _non_negative, True),
            ("pageSize", "page_size", _positive, True),
            ("orderBy", "order_by", _optional_name, False),
            ("orderDir", "order_dir", _direction, False),
        ],
    ),
    "updateRow": (
        UpdateRow,
        [
            ("table", "table", _name, True),
            ("rowid", "rowid", _integer, True),
            ("column", "column", _name, True),
            ("value", "value", _anything, True),
        ],
    ),
    "insertRow": (
        InsertRow,
        [("table", "table", _name, True), ("values", "values", _values, False)],
    ),
    "deleteRows": (
        DeleteRows,
        [("table", "table", _name, True), ("rowids", "rowids", _rowids, True)],
    ),
    "exportTable": (
        ExportTable,
        [("table", "table", _name, True), ("format", "format", _transfer_format, True)],
    ),
    "importTable": (
        ImportTable,
        [
            ("table", "table", _name, True),
            ("format", "format", _transfer_format, True),
            ("content", "content", _text, True),
        ],
    ),
    "saveQuery": (
        SaveQuery,
        [("name", "name", _name, True), ("sql", "sql", _name, True)],
    ),
    "getSavedQueries": (GetSavedQueries, []),
    "deleteSavedQuery": (DeleteSavedQuery, [("name", "name", _name, True)]),
    "getHistory": (GetHistory, []),
    "pinResult": (PinHistoryEntry, [("id", "id", _name, True)]),
    "aiAssist": (AssistGenerate, [("prompt", "prompt", _name, True)]),
    "aiExecute": (
        AssistExecute,
        [("sql", "sql", _name, True), ("msgId", "message_id", _text, True)],
    ),
}

REQUEST_TYPES = tuple(_REQUEST_SPECS)


def decode_request(payload: Mapping[str, Any]) -> Request:
    """Validate a loose message payload and build its typed request."""
    if not isinstance(payload, Mapping):
        raise RequestError("Request payload must be an object.")
    tag = payload.get("type")
    if not isinstance(tag, str) or tag not in _REQUEST_SPECS:
        raise RequestError(f"Unknown request type: {tag!r}.")

    request_cls, specs = _REQUEST_SPECS[tag]
    kwargs: dict[str, Any] = {}
    for key, attribute, validator, required in specs:
        if key not in payload:
            if required:
                raise RequestError(f"Request '{tag}' is missing field '{key}'.")
            continue
        kwargs[attribute] = validator(key, payload[key])
    return request_cls(**kwargs)
