"""Route typed requests to the engine and session state.

``Workspace`` guarantees one open ``Database`` per file; each open file gets a
``BrowserSession`` that handles requests for it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from sqlity.assist.llm_client import AssistClient
from sqlity.browser.engine import Database
from sqlity.shared.config import AppConfig
from sqlity.shared.exceptions import AssistUnavailableError, NotOpenError
from sqlity.shared.logging import Logger, get_logger
from sqlity.shared.utils import blob_to_text

from . import requests as rq
from .state import SessionRegistry, SessionState


@dataclass(frozen=True, slots=True)
class Response:
    """Outbound message: a kind tag plus its data."""

    kind: str
    data: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-friendly ``{"type": kind, ...}`` mapping."""
        payload = {key: _plain(value) for key, value in self.data.items()}
        payload["type"] = self.kind
        return payload


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _plain(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return blob_to_text(bytes(value))
    return value


class BrowserSession:
    """Handles requests for one open database file."""

    def __init__(
        self,
        database: Database,
        state: SessionState,
        *,
        assist: AssistClient | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.database = database
        self.state = state
        self._assist = assist
        self._logger = logger or get_logger()
        self._handlers: dict[type, Callable[[Any], Response]] = {
            rq.GetTables: self._tables,
            rq.Refresh: self._tables,
            rq.GetSchema: self._schema,
            rq.GetSchemaSQL: self._schema_sql,
            rq.ExecuteQuery: self._execute,
            rq.GetTableData: self._table_data,
            rq.UpdateRow: self._update_row,
            rq.InsertRow: self._insert_row,
            rq.DeleteRows: self._delete_rows,
            rq.ExportTable: self._export,
            rq.ImportTable: self._import,
            rq.SaveQuery: self._save_query,
            rq.GetSavedQueries: self._saved_queries,
            rq.DeleteSavedQuery: self._delete_saved_query,
            rq.GetHistory: self._history,
            rq.PinHistoryEntry: self._pin,
            rq.AssistGenerate: self._assist_generate,
            rq.AssistExecute: self._assist_execute,
        }

    def handle(self, request: rq.Request) -> Response:
        """Run ``request``; engine and assist errors propagate unchanged."""
        handler = self._handlers.get(type(request))
        if handler is None:  # pragma: no cover - decode_request prevents this
            raise TypeError(f"Unsupported request: {request!r}")
        self._logger.debug(f"Handling {type(request).__name__} for {self.database.path.name}")
        return handler(request)

    def handle_payload(self, payload: Mapping[str, Any]) -> Response:
        return self.handle(rq.decode_request(payload))

    # ------------------------------------------------------------------
    # Handlers

    def _tables(self, _: Any) -> Response:
        return Response("tables", {"tables": self.database.list_tables()})

    def _schema(self, request: rq.GetSchema) -> Response:
        schema = self.database.describe_table(request.table)
        return Response(
            "schema",
            {"table": request.table, "columns": schema.columns, "indexes": schema.indexes},
        )

    def _schema_sql(self, _: rq.GetSchemaSQL) -> Response:
        return Response("schemaSQL", {"sql": self.database.synthesize_schema_sql()})

    def _execute(self, request: rq.ExecuteQuery) -> Response:
        result = self.database.execute_query(request.sql)
        self.state.record(request.sql, result.row_count)
        return Response("queryResult", {"result": result, "sql": request.sql})

    def _table_data(self, request: rq.GetTableData) -> Response:
        page = self.database.get_table_data(
            request.table,
            request.page,
            request.page_size,
            request.order_by,
            request.order_dir,
        )
        return Response(
            "tableData",
            {
                "table": page.table,
                "result": page.result,
                "page": page.page,
                "totalRows": page.total_rows,
                "pageSize": page.page_size,
            },
        )

    def _update_row(self, request: rq.UpdateRow) -> Response:
        self.database.update_row(request.table, request.rowid, request.column, request.value)
        return Response("info", {"message": "Row updated."})

    def _insert_row(self, request: rq.InsertRow) -> Response:
        self.database.insert_row(request.table, request.values)
        return Response("info", {"message": "Row inserted."})

    def _delete_rows(self, request: rq.DeleteRows) -> Response:
        deleted = self.database.delete_rows(request.table, request.rowids)
        return Response("info", {"message": f"{deleted} row(s) deleted."})

    def _export(self, request: rq.ExportTable) -> Response:
        if request.format == "csv":
            content = self.database.export_csv(request.table)
        else:
            content = self.database.export_json(request.table)
        return Response(
            "exported",
            {"table": request.table, "format": request.format, "content": content},
        )

    def _import(self, request: rq.ImportTable) -> Response:
        if request.format == "csv":
            count = self.database.import_csv(request.table, request.content)
        else:
            count = self.database.import_json(request.table, request.content)
        return Response("info", {"message": f"Imported {count} row(s).", "count": count})

    def _save_query(self, request: rq.SaveQuery) -> Response:
        self.state.save_query(request.name, request.sql)
        return self._saved_queries(request)

    def _saved_queries(self, _: Any) -> Response:
        return Response("savedQueries", {"queries": self.state.saved_queries()})

    def _delete_saved_query(self, request: rq.DeleteSavedQuery) -> Response:
        self.state.delete_saved_query(request.name)
        return self._saved_queries(request)

    def _history(self, _: Any) -> Response:
        return Response("history", {"entries": self.state.history()})

    def _pin(self, request: rq.PinHistoryEntry) -> Response:
        self.state.toggle_pin(request.id)
        return self._history(request)

    def _assist_generate(self, request: rq.AssistGenerate) -> Response:
        if self._assist is None:
            raise AssistUnavailableError("AI assist is not configured for this session.")
        schema_sql = self.database.synthesize_schema_sql()
        sql = self._assist.generate(request.prompt, schema_sql)
        return Response("aiResult", {"prompt": request.prompt, "sql": sql})

    def _assist_execute(self, request: rq.AssistExecute) -> Response:
        result = self.database.execute_query(request.sql)
        self.state.record(request.sql, result.row_count)
        return Response(
            "aiQueryResult",
            {"msgId": request.message_id, "result": result, "sql": request.sql},
        )


class Workspace:
    """Opens at most one BrowserSession per database file."""

    def __init__(
        self,
        config: AppConfig,
        logger: Logger | None = None,
        *,
        registry: SessionRegistry | None = None,
        assist: AssistClient | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or get_logger()
        self.registry = registry or SessionRegistry(history_limit=config.session.history_limit)
        self._assist = assist
        self._sessions: dict[Path, BrowserSession] = {}

    def open(self, path: str | Path) -> BrowserSession:
        key = Path(path).expanduser().resolve()
        session = self._sessions.get(key)
        if session is not None:
            return session
        database = Database(key, logger=self._logger)
        database.open()
        session = BrowserSession(
            database,
            self.registry.state_for(key),
            assist=self._assist,
            logger=self._logger,
        )
        self._sessions[key] = session
        return session

    def session(self, path: str | Path) -> BrowserSession:
        key = Path(path).expanduser().resolve()
        try:
            return self._sessions[key]
        except KeyError as exc:
            raise NotOpenError(f"Database {key} is not open.") from exc

    def close(self, path: str | Path) -> None:
        key = Path(path).expanduser().resolve()
        session = self._sessions.pop(key, None)
        if session is not None:
            session.database.close()

    def close_all(self) -> None:
        for key in list(self._sessions):
            self.close(key)

    def __len__(self) -> int:
        return len(self._sessions)
