"""LLM client that turns a natural-language request into SQL."""

from __future__ import annotations

import os
import re
from typing import Any

from sqlity.shared.config import AppConfig
from sqlity.shared.exceptions import AssistPermissionError, AssistUnavailableError
from sqlity.shared.logging import Logger

try:  # Optional dependency
    import openai
    from openai import OpenAI  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - dependency optional at runtime
    openai = None  # type: ignore
    OpenAI = None  # type: ignore

_OPENING_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")

SYSTEM_PROMPT = (
    "You are a SQLite expert. Given the database schema below, generate ONLY the SQL query "
    "(no explanation, no markdown fences) for the user's request."
)


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence (optionally language-tagged) around SQL."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE_RE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def build_prompt(prompt: str, schema_sql: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Schema:\n{schema_sql}\n\nRequest: {prompt}"},
    ]


class AssistClient:
    """Thin wrapper around the configured LLM provider.

    ``client`` may be supplied to reuse an existing SDK client; otherwise one
    is created from the API key named in the configuration.
    """

    def __init__(self, config: AppConfig, logger: Logger, *, client: Any | None = None) -> None:
        settings = config.assist
        self._logger = logger
        self._model = settings.model
        self._provider = settings.provider.lower()
        self._enabled = settings.enabled
        self._consent = settings.consent
        self._api_key_env = settings.api_key_env
        self._client = client
        self._unavailable_reason: str | None = None
        if self._client is None and self._enabled:
            self._client = self._bootstrap_client()
        elif not self._enabled:
            self._unavailable_reason = "AI assist is disabled in the configuration."

    @property
    def available(self) -> bool:
        return self._enabled and self._client is not None

    def _bootstrap_client(self) -> Any | None:
        if self._provider != "openai":
            self._unavailable_reason = f"LLM provider '{self._provider}' is not supported."
            return None
        if OpenAI is None:
            self._unavailable_reason = (
                "openai package is not installed. Install extras with 'pip install sqlity[llm]'."
            )
            return None
        api_key = os.environ.get(self._api_key_env)
        if not api_key:
            self._unavailable_reason = f"Environment variable {self._api_key_env} is not set."
            return None
        return OpenAI(api_key=api_key)

    def generate(self, prompt: str, schema_sql: str) -> str:
        """Return SQL for ``prompt`` given the schema script ``schema_sql``."""
        if not self._consent:
            raise AssistPermissionError(
                "AI assist has not been granted consent; set assist.consent to true to allow it."
            )
        if not self.available:
            raise AssistUnavailableError(
                f"No language model available: {self._unavailable_reason or 'client not configured.'}"
            )

        self._logger.debug(f"Assist request: model={self._model} schema_chars={len(schema_sql)}")
        try:
            response = self._client.chat.completions.create(  # type: ignore[union-attr]
                model=self._model,
                messages=build_prompt(prompt, schema_sql),
                temperature=0,
            )
        except Exception as exc:
            raise _translate_error(exc) from exc

        raw_output = _extract_text(response)
        self._logger.debug(
            "Assist raw output preview: "
            f"{(raw_output[:500] + '…') if len(raw_output) > 500 else raw_output}"
        )
        return strip_code_fences(raw_output)


def _translate_error(exc: Exception) -> Exception:
    if openai is not None and isinstance(
        exc, (openai.PermissionDeniedError, openai.AuthenticationError)
    ):
        return AssistPermissionError(f"AI assist was refused by the provider: {exc}")
    if isinstance(exc, PermissionError):
        return AssistPermissionError(f"AI assist was refused by the provider: {exc}")
    return AssistUnavailableError(f"AI assist request failed: {exc}")


def _extract_text(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise AssistUnavailableError(f"Unexpected LLM response structure: {exc}") from exc
    return content or ""
