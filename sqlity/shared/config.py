"""Configuration loading utilities for the database browser."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class BrowseSettings:
    """Paginated browsing defaults."""

    page_size: int
    max_page_size: int


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Per-file session state limits."""

    history_limit: int


@dataclass(frozen=True, slots=True)
class AssistSettings:
    """Natural-language SQL assist provider configuration."""

    enabled: bool
    provider: str
    model: str
    api_key_env: str
    consent: bool


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    browse: BrowseSettings
    session: SessionSettings
    assist: AssistSettings

    def with_assist_consent(self, consent: bool) -> AppConfig:
        """Return a copy with the assist consent flag replaced."""
        return replace(self, assist=replace(self.assist, consent=consent))


def _default_config() -> dict[str, Any]:
    return {
        "browse": {
            "page_size": 100,
            "max_page_size": 1000,
        },
        "session": {
            "history_limit": 100,
        },
        "assist": {
            "enabled": True,
            "provider": "openai",
            "model": "gpt-4o-mini",
            "api_key_env": "OPENAI_API_KEY",
            "consent": True,
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "browse.page_size": ("SQLITY_PAGE_SIZE", int),
    "browse.max_page_size": ("SQLITY_MAX_PAGE_SIZE", int),
    "session.history_limit": ("SQLITY_HISTORY_LIMIT", int),
    "assist.enabled": ("SQLITY_ASSIST_ENABLED", bool),
    "assist.provider": ("SQLITY_ASSIST_PROVIDER", str),
    "assist.model": ("SQLITY_ASSIST_MODEL", str),
    "assist.api_key_env": ("SQLITY_ASSIST_API_KEY_ENV", str),
    "assist.consent": ("SQLITY_ASSIST_CONSENT", bool),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is bool:
        lowered = cleaned.lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError("expected boolean (true/false)")
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        browse = BrowseSettings(
            page_size=int(data["browse"]["page_size"]),
            max_page_size=int(data["browse"]["max_page_size"]),
        )
        session = SessionSettings(history_limit=int(data["session"]["history_limit"]))
        assist_cfg = data["assist"]
        assist = AssistSettings(
            enabled=bool(assist_cfg["enabled"]),
            provider=str(assist_cfg["provider"]),
            model=str(assist_cfg["model"]),
            api_key_env=str(assist_cfg["api_key_env"]),
            consent=bool(assist_cfg["consent"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if browse.page_size <= 0 or browse.max_page_size <= 0:
        raise ConfigurationError("browse.page_size and browse.max_page_size must be positive.")
    if browse.page_size > browse.max_page_size:
        raise ConfigurationError("browse.page_size cannot exceed browse.max_page_size.")
    if session.history_limit <= 0:
        raise ConfigurationError("session.history_limit must be positive.")

    return AppConfig(
        source_path=source_path,
        browse=browse,
        session=session,
        assist=assist,
    )
