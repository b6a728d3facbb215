from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from inventory_alarm.api.app import create_app
from inventory_alarm.config.loader import SummarizerConfig, default_config
from inventory_alarm.excel.codec import XLSX_MIME, decode
from inventory_alarm.models.projection import FIXED_COLUMNS
from inventory_alarm.runtime import build_runtime
from inventory_alarm.services.summarizer import OpenAISummarizer

"""HTTP surface contract: camelCase payloads, status-code mapping."""

QTY = "현재 재고"


@pytest.fixture()
def client(store, temp_workdir):
    runtime = build_runtime(config=default_config(), store=store)
    return TestClient(create_app(runtime))


def test_health(client):
    body = client.get("/health").json()
    assert body == {"status": "healthy", "dbMode": "mock", "summarizer": False}


def test_confirm_then_check(client):
    res = client.put("/inventory/alarm/confirm", json={"rowId": 1})
    assert res.status_code == 200
    assert res.json() == {"rowId": 1, "baseline": 45, "alarmStatus": False}

    res = client.post("/inventory/alarm/check", json={"rowId": 1, "fields": {QTY: "30"}})
    assert res.status_code == 200
    assert res.json() == {"rowId": 1, "alarmStatus": True, "currentStock": 30, "baseStock": 45}


def test_confirm_explicit_baseline(client):
    body = client.put("/inventory/alarm/confirm", json={"rowId": 2, "baseline": 5000}).json()
    assert body["baseline"] == 5000
    assert body["alarmStatus"] is False


def test_check_unconfirmed(client):
    body = client.post("/inventory/alarm/check", json={"rowId": 1}).json()
    assert body == {"rowId": 1, "alarmStatus": False, "currentStock": 45, "baseStock": None}


@pytest.mark.parametrize(
    "method,path,payload",
    [
        ("post", "/inventory/alarm/check", {}),
        ("put", "/inventory/alarm/confirm", {"baseline": 3}),
        ("patch", "/inventory/alarm/bulk-confirm", {}),
        ("patch", "/inventory/alarm/bulk-confirm", {"rowIds": []}),
    ],
)
def test_validation_errors_are_400(client, method, path, payload):
    assert getattr(client, method)(path, json=payload).status_code == 400


def test_unknown_row_is_404(client):
    assert client.post("/inventory/alarm/check", json={"rowId": 99}).status_code == 404
    assert client.put("/inventory/alarm/confirm", json={"rowId": 99}).status_code == 404
    assert client.patch("/inventory/rows/99", json={"fields": {"a": 1}}).status_code == 404


def test_bulk_confirm_file_group(client):
    res = client.patch("/inventory/alarm/bulk-confirm", json={"fileGroup": "stock.xlsx"})
    assert res.status_code == 200
    body = res.json()
    assert (body["successCount"], body["failCount"], body["totalProcessed"]) == (3, 0, 3)


def test_bulk_confirm_row_ids_with_missing(client):
    body = client.patch("/inventory/alarm/bulk-confirm", json={"rowIds": [1, 99]}).json()
    assert (body["successCount"], body["failCount"], body["totalProcessed"]) == (1, 1, 2)
    assert body["failedRowIds"] == [99]


def test_bulk_confirm_empty_group_is_404(client):
    assert client.patch("/inventory/alarm/bulk-confirm", json={"fileGroup": "nope"}).status_code == 404


def test_edit_and_list_alarms(client):
    client.put("/inventory/alarm/confirm", json={"rowId": 1})
    res = client.patch("/inventory/rows/1", json={"fields": {QTY: "10"}})
    assert res.status_code == 200
    assert res.json()["alarm"] is True

    alarms = client.get("/inventory/alarm").json()
    assert [a["id"] for a in alarms] == [1]
    assert alarms[0]["fields"][QTY] == "10"
    assert client.get("/inventory/alarm", params={"fileGroup": "other"}).json() == []


def test_file_rows_projection(client):
    body = client.get("/inventory/files/stock.xlsx/rows").json()
    assert body["columns"] == list(FIXED_COLUMNS)
    assert body["sourceHeaders"] == ["품목명", QTY, "단위"]
    first = body["rows"][0]
    assert first["itemName"] == "볼트"
    assert first["currentQuantity"] == 45
    assert first["unit"] == "EA"
    assert first["specification"] == "-"
    assert first["status"] == "normal"


def test_upload_csv_then_project(client):
    data = "Item,Stock,Unit\nbolt,5,EA\nnut,7,EA\n".encode("utf-8")
    res = client.post("/inventory/files/new.csv/upload", content=data, headers={"content-type": "text/csv"})
    assert res.status_code == 200
    assert res.json() == {"fileGroup": "new.csv", "headers": ["Item", "Stock", "Unit"], "imported": 2}

    rows = client.get("/inventory/files/new.csv/rows").json()["rows"]
    assert [r["itemName"] for r in rows] == ["bolt", "nut"]


def test_upload_invalid_payload_is_400(client):
    res = client.post("/inventory/files/x/upload", content=b"", headers={"content-type": XLSX_MIME})
    assert res.status_code == 400


def test_export_xlsx(client):
    res = client.get("/inventory/files/stock.xlsx/export")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith(XLSX_MIME)
    table = decode(res.content, XLSX_MIME)
    assert table.headers == list(FIXED_COLUMNS)
    assert table.rows[0][:2] == [1, "볼트"]


def test_export_csv(client):
    res = client.get("/inventory/files/stock.xlsx/export", params={"format": "csv"})
    assert res.status_code == 200
    assert res.text.splitlines()[0] == ",".join(FIXED_COLUMNS)


def test_briefing_template(client):
    client.patch("/inventory/alarm/bulk-confirm", json={"fileGroup": "stock.xlsx"})
    client.patch("/inventory/rows/2", json={"fields": {QTY: "600"}})
    body = client.post("/inventory/briefing", json={"fileGroup": "stock.xlsx"}).json()
    assert body["source"] == "template"
    assert body["stats"]["lowStockCount"] == 1
    assert body["stats"]["lowStockItems"][0]["shortagePercent"] == 50
    assert "critical 1" in body["text"]


def test_storage_failure_is_503(stock_rows, flaky_store, temp_workdir):
    store = flaky_store(stock_rows, failing_ids={1})
    client = TestClient(create_app(build_runtime(config=default_config(), store=store)))
    assert client.put("/inventory/alarm/confirm", json={"rowId": 1}).status_code == 503


def test_briefing_falls_back_when_summarizer_misconfigured(store, temp_workdir):
    runtime = build_runtime(config=default_config(), store=store)
    runtime.summarizer = OpenAISummarizer(
        SummarizerConfig(api_key="k" * 32, api_base="https://example.com:notaport/v1")
    )
    client = TestClient(create_app(runtime))
    res = client.post("/inventory/briefing", json={"fileGroup": "stock.xlsx"})
    assert res.status_code == 200
    assert res.json()["source"] == "template"
