from __future__ import annotations

from pathlib import Path

import pytest

from sqlity.shared import paths
from sqlity.shared.config import AppConfig, load_config
from sqlity.shared.exceptions import ConfigurationError


def test_load_config_defaults(tmp_path: Path) -> None:
    cfg = load_config(env={paths.CONFIG_DIR_ENV: str(tmp_path / "config")})
    assert isinstance(cfg, AppConfig)
    assert cfg.source_path == tmp_path / "config" / "config.yaml"
    assert cfg.browse.page_size == 100
    assert cfg.browse.max_page_size == 1000
    assert cfg.session.history_limit == 100
    assert cfg.assist.enabled is True
    assert cfg.assist.provider == "openai"
    assert cfg.assist.api_key_env == "OPENAI_API_KEY"
    assert cfg.assist.consent is True


def test_load_config_from_yaml(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(
        """
        browse:
          page_size: 25
        assist:
          model: gpt-4o
          consent: false
        """,
        encoding="utf-8",
    )
    cfg = load_config(config_path=cfg_file, env={})
    assert cfg.source_path == cfg_file
    assert cfg.browse.page_size == 25
    assert cfg.browse.max_page_size == 1000
    assert cfg.assist.model == "gpt-4o"
    assert cfg.assist.consent is False
    assert cfg.assist.provider == "openai"


def test_load_config_env_overrides(tmp_path: Path) -> None:
    env = {
        paths.CONFIG_DIR_ENV: str(tmp_path / "config"),
        "SQLITY_PAGE_SIZE": "50",
        "SQLITY_MAX_PAGE_SIZE": "200",
        "SQLITY_HISTORY_LIMIT": "10",
        "SQLITY_ASSIST_ENABLED": "no",
        "SQLITY_ASSIST_MODEL": " local-model ",
        "SQLITY_ASSIST_CONSENT": "off",
    }
    cfg = load_config(env=env)
    assert cfg.browse.page_size == 50
    assert cfg.browse.max_page_size == 200
    assert cfg.session.history_limit == 10
    assert cfg.assist.enabled is False
    assert cfg.assist.model == "local-model"
    assert cfg.assist.consent is False


def test_config_path_env_override(tmp_path: Path) -> None:
    cfg_file = tmp_path / "elsewhere.yaml"
    cfg_file.write_text("session:\n  history_limit: 7\n", encoding="utf-8")
    cfg = load_config(env={paths.CONFIG_FILE_ENV: str(cfg_file)})
    assert cfg.session.history_limit == 7


def test_with_assist_consent_returns_copy(tmp_path: Path) -> None:
    cfg = load_config(env={paths.CONFIG_DIR_ENV: str(tmp_path / "config")})
    revoked = cfg.with_assist_consent(False)
    assert revoked.assist.consent is False
    assert cfg.assist.consent is True
    assert revoked.browse == cfg.browse


def test_invalid_yaml_raises_configuration_error(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("- just a list", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(config_path=cfg_file)


def test_unparseable_yaml_raises_configuration_error(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("browse: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(config_path=cfg_file)


@pytest.mark.parametrize(
    "env",
    [
        {"SQLITY_PAGE_SIZE": "0"},
        {"SQLITY_PAGE_SIZE": "2000"},
        {"SQLITY_HISTORY_LIMIT": "-1"},
        {"SQLITY_PAGE_SIZE": "lots"},
        {"SQLITY_ASSIST_CONSENT": "maybe"},
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path: Path, env: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        load_config(env={paths.CONFIG_DIR_ENV: str(tmp_path / "config"), **env})
