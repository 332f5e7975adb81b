from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from sqlity.assist.llm_client import AssistClient
from sqlity.session.dispatch import Response, Workspace
from sqlity.shared import paths
from sqlity.shared.config import AppConfig, load_config
from sqlity.shared.exceptions import (
    AssistUnavailableError,
    NotOpenError,
    RequestError,
    SQLExecutionError,
)
from sqlity.shared.logging import get_logger


class _FakeCompletions:
    def __init__(self, content: str) -> None:
        self.content = content
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _config(tmp_path: Path) -> AppConfig:
    return load_config(env={paths.CONFIG_DIR_ENV: str(tmp_path / "cfg")})


def _workspace(tmp_path: Path, completions: _FakeCompletions | None = None) -> Workspace:
    config = _config(tmp_path)
    assist = None
    if completions is not None:
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        assist = AssistClient(config, get_logger(), client=client)
    return Workspace(config, get_logger(), assist=assist)


def test_response_payload_is_json_friendly() -> None:
    response = Response("exported", {"content": b"\x01\x02", "items": (1, 2)})
    payload = response.to_payload()
    assert payload == {"type": "exported", "content": "0102", "items": [1, 2]}
    json.dumps(payload)


def test_workspace_opens_one_session_per_file(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)

    first = workspace.open(users_db)
    second = workspace.open(str(users_db))

    assert first is second
    assert len(workspace) == 1
    assert workspace.session(users_db) is first

    workspace.close(users_db)
    assert len(workspace) == 0
    assert first.database.is_open is False
    with pytest.raises(NotOpenError):
        workspace.session(users_db)


def test_session_state_survives_reopen(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)
    session.handle_payload({"type": "executeQuery", "sql": "SELECT * FROM users"})
    workspace.close_all()

    reopened = workspace.open(users_db)
    payload = reopened.handle_payload({"type": "getHistory"}).to_payload()

    assert reopened is not session
    assert [entry["sql"] for entry in payload["entries"]] == ["SELECT * FROM users"]
    workspace.close_all()


def test_tables_and_schema_requests(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    tables = session.handle_payload({"type": "getTables"}).to_payload()
    schema = session.handle_payload({"type": "getSchema", "table": "users"}).to_payload()
    schema_sql = session.handle_payload({"type": "getSchemaSQL"}).to_payload()

    assert tables["type"] == "tables"
    assert tables["tables"][0] == {"name": "adults", "kind": "view", "row_count": 2}
    assert schema["type"] == "schema"
    assert [column["name"] for column in schema["columns"]][:2] == ["id", "name"]
    assert schema["indexes"][0]["name"] == "idx_users_name"
    assert 'CREATE TABLE "users"' in schema_sql["sql"]
    workspace.close_all()


def test_query_results_are_recorded_in_history(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    payload = session.handle_payload(
        {"type": "executeQuery", "sql": "SELECT name FROM users ORDER BY name"}
    ).to_payload()
    history = session.state.history()

    assert payload["type"] == "queryResult"
    assert payload["result"]["columns"] == ["name"]
    assert payload["result"]["rows"] == [["Ada"], ["Grace"], ["Linus"]]
    assert history[0].sql == "SELECT name FROM users ORDER BY name"
    assert history[0].row_count == 3

    pinned = session.handle_payload({"type": "pinResult", "id": history[0].id}).to_payload()
    assert pinned["entries"][0]["pinned"] is True
    workspace.close_all()


def test_engine_errors_propagate(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    with pytest.raises(SQLExecutionError):
        session.handle_payload({"type": "executeQuery", "sql": "SELECT * FROM ghosts"})
    with pytest.raises(RequestError):
        session.handle_payload({"type": "executeQuery"})
    assert session.state.history() == []
    workspace.close_all()


def test_table_data_and_row_edits(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    page = session.handle_payload(
        {"type": "getTableData", "table": "users", "page": 0, "pageSize": 2, "orderBy": "name"}
    ).to_payload()
    assert page["type"] == "tableData"
    assert page["totalRows"] == 3
    assert page["pageSize"] == 2
    assert page["result"]["columns"][0] == "__rowid"
    assert len(page["result"]["rows"]) == 2

    updated = session.handle_payload(
        {"type": "updateRow", "table": "users", "rowid": 1, "column": "age", "value": "37"}
    ).to_payload()
    inserted = session.handle_payload(
        {"type": "insertRow", "table": "users", "values": {"name": "Alan"}}
    ).to_payload()
    deleted = session.handle_payload(
        {"type": "deleteRows", "table": "users", "rowids": [3]}
    ).to_payload()

    assert updated == {"type": "info", "message": "Row updated."}
    assert inserted["message"] == "Row inserted."
    assert deleted["message"] == "1 row(s) deleted."
    rows = session.database.execute_query("SELECT name, age FROM users ORDER BY id").rows
    assert list(rows) == [("Ada", 37), ("Grace", 45), ("Alan", None)]
    workspace.close_all()


def test_export_and_import_requests(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    exported = session.handle_payload(
        {"type": "exportTable", "table": "orders", "format": "csv"}
    ).to_payload()
    imported = session.handle_payload(
        {
            "type": "importTable",
            "table": "orders",
            "format": "json",
            "content": json.dumps([{"user_id": 2, "total": "12.5"}]),
        }
    ).to_payload()

    assert exported["type"] == "exported"
    assert exported["content"].split("\n")[0] == "id,user_id,total"
    assert imported == {"type": "info", "message": "Imported 1 row(s).", "count": 1}
    workspace.close_all()


def test_saved_queries_requests(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    session.handle_payload({"type": "saveQuery", "name": "all", "sql": "SELECT * FROM users"})
    saved = session.handle_payload(
        {"type": "saveQuery", "name": "adults", "sql": "SELECT * FROM adults"}
    ).to_payload()
    after_delete = session.handle_payload({"type": "deleteSavedQuery", "name": "all"}).to_payload()
    listing = session.handle_payload({"type": "getSavedQueries"}).to_payload()

    assert [query["name"] for query in saved["queries"]] == ["all", "adults"]
    assert [query["name"] for query in after_delete["queries"]] == ["adults"]
    assert listing == after_delete
    workspace.close_all()


def test_assist_requires_a_client(users_db: Path, tmp_path: Path) -> None:
    workspace = _workspace(tmp_path)
    session = workspace.open(users_db)

    with pytest.raises(AssistUnavailableError):
        session.handle_payload({"type": "aiAssist", "prompt": "oldest user"})
    workspace.close_all()


def test_assist_generate_and_execute(users_db: Path, tmp_path: Path) -> None:
    completions = _FakeCompletions("```sql\nSELECT name FROM users ORDER BY age DESC LIMIT 1\n```")
    workspace = _workspace(tmp_path, completions)
    session = workspace.open(users_db)

    generated = session.handle_payload({"type": "aiAssist", "prompt": "oldest user"}).to_payload()
    executed = session.handle_payload(
        {"type": "aiExecute", "sql": generated["sql"], "msgId": "msg-7"}
    ).to_payload()

    assert generated == {
        "type": "aiResult",
        "prompt": "oldest user",
        "sql": "SELECT name FROM users ORDER BY age DESC LIMIT 1",
    }
    user_message = completions.calls[0]["messages"][1]["content"]
    assert 'CREATE TABLE "users"' in user_message
    assert user_message.endswith("Request: oldest user")
    assert executed["type"] == "aiQueryResult"
    assert executed["msgId"] == "msg-7"
    assert executed["result"]["rows"] == [["Grace"]]
    assert session.state.history()[0].sql == generated["sql"]
    workspace.close_all()
