from __future__ import annotations

import json
from pathlib import Path

from inventory_alarm.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file_group", "row_id", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(file_group="stock.xlsx", row_id=10, error_type="STORE_WRITE", message="disk full")
    data = json.loads(rec.to_json_line())
    assert data["file_group"] == "stock.xlsx"
    assert data["row_id"] == 10
    assert data["error_type"] == "STORE_WRITE"
    assert data["timestamp"].endswith("Z")
    assert set(data) == KEYS


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("재고.xlsx", -1, "STORE_ERROR", "실패")
    assert "재고.xlsx" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("stock.xlsx", 1, "STORE_WRITE", "rejected"))
    buf.append(ErrorRecord.create("stock.xlsx", 2, "ROW_NOT_FOUND", "row not found: 2"))
    path = buf.flush()
    assert path.parent == Path("logs")
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw)) == KEYS
    assert len(buf) == 0


def test_error_log_buffer_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("g", 1, "STORE_WRITE", "a"))
    first = buf.flush()
    buf.append(ErrorRecord.create("g", 2, "STORE_WRITE", "b"))
    assert buf.flush() == first
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_clean_run_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()
