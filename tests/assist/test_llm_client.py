from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from sqlity.assist import llm_client
from sqlity.assist.llm_client import AssistClient, build_prompt, strip_code_fences
from sqlity.shared import paths
from sqlity.shared.config import AppConfig, load_config
from sqlity.shared.exceptions import AssistPermissionError, AssistUnavailableError
from sqlity.shared.logging import get_logger


class _Completions:
    def __init__(self, *, content: str | None = "SELECT 1", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: _Completions) -> Any:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _config(tmp_path: Path, **env: str) -> AppConfig:
    return load_config(env={paths.CONFIG_DIR_ENV: str(tmp_path / "cfg"), **env})


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SELECT 1", "SELECT 1"),
        ("  SELECT 1;\n", "SELECT 1;"),
        ("```sql\nSELECT * FROM t\n```", "SELECT * FROM t"),
        ("```SQL\nSELECT 1\n```  ", "SELECT 1"),
        ("```\nSELECT 1\n```", "SELECT 1"),
        ("```sql SELECT 1```", "SELECT 1"),
    ],
)
def test_strip_code_fences(raw: str, expected: str) -> None:
    assert strip_code_fences(raw) == expected


def test_build_prompt_embeds_schema() -> None:
    messages = build_prompt("count users", "CREATE TABLE users (id INTEGER);")
    assert messages[0]["role"] == "system"
    assert "SQLite" in messages[0]["content"]
    assert messages[1] == {
        "role": "user",
        "content": "Schema:\nCREATE TABLE users (id INTEGER);\n\nRequest: count users",
    }


def test_generate_calls_model_and_strips_fences(tmp_path: Path) -> None:
    completions = _Completions(content="```sql\nSELECT COUNT(*) FROM users\n```")
    config = _config(tmp_path, SQLITY_ASSIST_MODEL="test-model")
    client = AssistClient(config, get_logger(), client=_client(completions))

    sql = client.generate("how many users", "CREATE TABLE users (id INTEGER);")

    assert sql == "SELECT COUNT(*) FROM users"
    assert completions.calls[0]["model"] == "test-model"
    assert completions.calls[0]["temperature"] == 0


def test_generate_without_consent_is_refused(tmp_path: Path) -> None:
    completions = _Completions()
    config = _config(tmp_path, SQLITY_ASSIST_CONSENT="false")
    client = AssistClient(config, get_logger(), client=_client(completions))

    with pytest.raises(AssistPermissionError):
        client.generate("anything", "")
    assert completions.calls == []


def test_disabled_assist_is_unavailable(tmp_path: Path) -> None:
    config = _config(tmp_path, SQLITY_ASSIST_ENABLED="false")
    client = AssistClient(config, get_logger(), client=_client(_Completions()))

    assert client.available is False
    with pytest.raises(AssistUnavailableError, match="disabled"):
        client.generate("anything", "")


def test_missing_api_key_is_unavailable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SQLITY_TEST_MISSING_KEY", raising=False)
    monkeypatch.setattr(llm_client, "OpenAI", object)
    config = _config(tmp_path, SQLITY_ASSIST_API_KEY_ENV="SQLITY_TEST_MISSING_KEY")
    client = AssistClient(config, get_logger())

    assert client.available is False
    with pytest.raises(AssistUnavailableError, match="SQLITY_TEST_MISSING_KEY"):
        client.generate("anything", "")


def test_unsupported_provider_is_unavailable(tmp_path: Path) -> None:
    config = _config(tmp_path, SQLITY_ASSIST_PROVIDER="carrier-pigeon")
    client = AssistClient(config, get_logger())

    with pytest.raises(AssistUnavailableError, match="carrier-pigeon"):
        client.generate("anything", "")


def test_provider_errors_are_translated(tmp_path: Path) -> None:
    config = _config(tmp_path)
    refused = AssistClient(
        config, get_logger(), client=_client(_Completions(error=PermissionError("nope")))
    )
    broken = AssistClient(
        config, get_logger(), client=_client(_Completions(error=RuntimeError("timeout")))
    )

    with pytest.raises(AssistPermissionError):
        refused.generate("anything", "")
    with pytest.raises(AssistUnavailableError, match="timeout"):
        broken.generate("anything", "")


def test_empty_model_output_becomes_empty_sql(tmp_path: Path) -> None:
    client = AssistClient(_config(tmp_path), get_logger(), client=_client(_Completions(content=None)))
    assert client.generate("anything", "") == ""
