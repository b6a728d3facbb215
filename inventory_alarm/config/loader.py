from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..mapping.projector import DEFAULT_EXPIRY_WARNING_DAYS
from ..mapping.resolver import KeywordTable

"""Config loader.

Responsibilities:
- Load the YAML config (default config/alarm.yml, env INVENTORY_ALARM_CONFIG)
- Validate it against config_schema.json (no unknown keys)
- Apply defaults for every omitted section
- Read secrets (summarizer API key) from the environment only
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/alarm.yml")
CONFIG_PATH_ENV = "INVENTORY_ALARM_CONFIG"
API_KEY_ENV = "OPENAI_API_KEY"
MIN_API_KEY_LENGTH = 20


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "inventory_rows"


@dataclass(frozen=True)
class SummarizerConfig:
    enabled: bool = True
    model: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    timeout_seconds: float = 30.0
    max_items: int = 10  # shortage items sent in the prompt
    api_key: str | None = None  # from OPENAI_API_KEY only

    @property
    def available(self) -> bool:
        return self.enabled and self.api_key is not None


@dataclass(frozen=True)
class AppConfig:
    keywords: KeywordTable = field(default_factory=KeywordTable.default)
    expiry_warning_days: int = DEFAULT_EXPIRY_WARNING_DAYS
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)


def _api_key_from_env() -> str | None:
    key = (os.getenv(API_KEY_ENV) or "").strip()
    # shorter values are placeholders, not keys
    return key if len(key) >= MIN_API_KEY_LENGTH else None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def default_config() -> AppConfig:
    return AppConfig(summarizer=SummarizerConfig(api_key=_api_key_from_env()))


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    sm_raw = data.get("summarizer", {})
    defaults = SummarizerConfig()
    return AppConfig(
        keywords=KeywordTable.from_mapping(data.get("keywords")),
        expiry_warning_days=data.get("expiry_warning_days", DEFAULT_EXPIRY_WARNING_DAYS),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
            table=db_raw.get("table", DatabaseConfig.table),
        ),
        summarizer=SummarizerConfig(
            enabled=sm_raw.get("enabled", defaults.enabled),
            model=sm_raw.get("model", defaults.model),
            api_base=sm_raw.get("api_base", defaults.api_base),
            timeout_seconds=float(sm_raw.get("timeout_seconds", defaults.timeout_seconds)),
            max_items=sm_raw.get("max_items", defaults.max_items),
            api_key=_api_key_from_env(),
        ),
    )


def resolve_config_path() -> Path:
    return Path(os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def load_app_config(path: Path | None = None) -> AppConfig:
    """Load the config file when present, built-in defaults otherwise.

    An explicitly given path must exist.
    """
    if path is not None:
        return load_config(path)
    candidate = resolve_config_path()
    if candidate.exists():
        return load_config(candidate)
    return default_config()
