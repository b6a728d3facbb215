"""Runtime wiring shared by the CLI and the HTTP service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .config.loader import AppConfig, load_app_config
from .db.postgres import PostgresRowStore, resolve_dsn
from .db.store import InMemoryRowStore, RowStore
from .logging.error_log import ErrorLogBuffer
from .mapping.extractor import RowFieldExtractor
from .mapping.projector import FixedSchemaProjector
from .mapping.resolver import KeywordResolver
from .services.alarm import StockAlarmService
from .services.summarizer import OpenAISummarizer

logger = logging.getLogger(__name__)

DISABLE_DB_ENV = "DISABLE_DB_CONNECT"


def db_disabled() -> bool:
    return os.getenv(DISABLE_DB_ENV) == "1"


def open_store(config: AppConfig) -> tuple[RowStore, str]:
    """Connect the configured store; returns (store, "live" | "mock").

    Raises:
        StoreUnavailableError: PostgreSQL could not be reached
    """
    if db_disabled():
        logger.info("DB connect disabled via %s=1 -> in-memory store", DISABLE_DB_ENV)
        return InMemoryRowStore(), "mock"
    store = PostgresRowStore.connect(resolve_dsn(config.database), table=config.database.table)
    store.ensure_schema()
    logger.info("connected to PostgreSQL table=%s", store.table)
    return store, "live"


@dataclass(slots=True)
class Runtime:
    config: AppConfig
    store: RowStore
    extractor: RowFieldExtractor
    projector: FixedSchemaProjector
    service: StockAlarmService
    summarizer: OpenAISummarizer | None
    db_mode: str = "mock"

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()


def build_runtime(
    config: AppConfig | None = None,
    store: RowStore | None = None,
    *,
    config_path: Path | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = False,
) -> Runtime:
    cfg = config or load_app_config(config_path)
    if store is None:
        store, db_mode = open_store(cfg)
    else:
        db_mode = "live" if isinstance(store, PostgresRowStore) else "mock"

    extractor = RowFieldExtractor(KeywordResolver(cfg.keywords))
    projector = FixedSchemaProjector(extractor, expiry_warning_days=cfg.expiry_warning_days)
    service = StockAlarmService(
        store,
        extractor=extractor,
        error_log=error_log if error_log is not None else ErrorLogBuffer(),
        show_progress=show_progress,
    )
    summarizer = OpenAISummarizer(cfg.summarizer) if cfg.summarizer.available else None
    return Runtime(
        config=cfg,
        store=store,
        extractor=extractor,
        projector=projector,
        service=service,
        summarizer=summarizer,
        db_mode=db_mode,
    )
