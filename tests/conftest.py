# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest

from inventory_alarm.db.store import InMemoryRowStore, StoreWriteError
from inventory_alarm.logging.init import reset_logging
from inventory_alarm.models.row import InventoryRow

ENV_VARS = (
    "DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE",
    "OPENAI_API_KEY", "INVENTORY_ALARM_CONFIG", "DISABLE_DB_CONNECT",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """expiry_warning_days: 5
keywords:
  quantity: ["on hand", "재고"]
database:
  host: db.local
  port: 5433
  user: appuser
  password: secret
  database: inventory
  table: stock_rows
summarizer:
  enabled: true
  model: gpt-4o-mini
  max_items: 3
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "alarm.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_row():
    def _make(
        fields: dict[str, Any],
        row_id: int = 1,
        file_group: str = "stock.xlsx",
        sequence_index: int = 0,
        **kwargs: Any,
    ) -> InventoryRow:
        return InventoryRow(
            id=row_id,
            file_group=file_group,
            sequence_index=sequence_index,
            fields=dict(fields),
            **kwargs,
        )

    return _make


class FlakyStore(InMemoryRowStore):
    """In-memory store whose writes fail for selected row ids."""

    def __init__(self, rows=(), failing_ids=()) -> None:
        super().__init__(rows)
        self.failing_ids = set(failing_ids)
        self.writes: list[InventoryRow] = []

    def put_row(self, row: InventoryRow) -> None:
        if row.id in self.failing_ids:
            raise StoreWriteError(f"write rejected for row {row.id}")
        self.writes.append(row)
        super().put_row(row)


@pytest.fixture()
def flaky_store():
    return FlakyStore


@pytest.fixture()
def stock_rows(make_row) -> list[InventoryRow]:
    return [
        make_row({"품목명": "볼트", "현재 재고": "45", "단위": "EA"}, row_id=1, sequence_index=0),
        make_row({"품목명": "너트", "현재 재고": "1,200", "단위": "EA"}, row_id=2, sequence_index=1),
        make_row({"품목명": "와셔", "현재 재고": "abc"}, row_id=3, sequence_index=2),
    ]


@pytest.fixture()
def store(stock_rows) -> InMemoryRowStore:
    return InMemoryRowStore(stock_rows)
