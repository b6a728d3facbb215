from __future__ import annotations

from pathlib import Path

import pytest

from inventory_alarm.config.loader import (
    AppConfig,
    ConfigError,
    default_config,
    load_app_config,
    load_config,
)
from inventory_alarm.mapping.resolver import DEFAULT_KEYWORDS, Role

API_KEY = "sk-test-0123456789abcdefghij"


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.expiry_warning_days == 5
    assert cfg.keywords.for_role(Role.QUANTITY) == ("on hand", "재고")
    assert cfg.keywords.for_role(Role.ITEM_NAME) == DEFAULT_KEYWORDS[Role.ITEM_NAME]
    assert cfg.database.host == "db.local"
    assert cfg.database.port == 5433
    assert cfg.database.table == "stock_rows"
    assert cfg.summarizer.max_items == 3
    assert cfg.summarizer.api_key is None
    assert cfg.summarizer.available is False


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError):
        load_config(temp_workdir / "config" / "not_exists.yml")


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("keywords: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "invalid yaml" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


@pytest.mark.parametrize(
    "snippet",
    [
        "keywords:\n  colour: [red]\n",
        "expiry_warning_days: 0\n",
        "database:\n  table: \"bad name\"\n",
        "summarizer:\n  max_items: 500\n",
        "summarizer:\n  api_key: sk-in-yaml\n",
    ],
)
def test_load_config_schema_violations(write_config: Path, snippet: str):
    write_config.write_text(snippet, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_empty_file_uses_defaults(write_config: Path):
    write_config.write_text("", encoding="utf-8")
    cfg = load_config(write_config)
    assert cfg.expiry_warning_days == 7
    assert cfg.database.table == "inventory_rows"


def test_api_key_from_env_only(write_config: Path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", API_KEY)
    assert load_config(write_config).summarizer.available is True
    monkeypatch.setenv("OPENAI_API_KEY", "short")
    assert load_config(write_config).summarizer.api_key is None


def test_load_app_config_defaults_without_file(temp_workdir: Path):
    cfg = load_app_config()
    assert isinstance(cfg, AppConfig)
    assert cfg == default_config()


def test_load_app_config_env_path(temp_workdir: Path, sample_config_yaml: str, monkeypatch):
    other = temp_workdir / "custom.yml"
    other.write_text(sample_config_yaml, encoding="utf-8")
    monkeypatch.setenv("INVENTORY_ALARM_CONFIG", str(other))
    assert load_app_config().database.table == "stock_rows"


def test_load_app_config_explicit_path_must_exist(temp_workdir: Path):
    with pytest.raises(ConfigError):
        load_app_config(temp_workdir / "missing.yml")
