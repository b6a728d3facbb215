"""FastAPI application exposing stock-alarm confirmation and inventory views."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from ..db.store import RowNotFoundError, StoreError
from ..excel.codec import CSV_MIME, XLSX_MIME, CodecError, decode, encode, import_table
from ..mapping.projector import display_headers
from ..models.projection import FIXED_COLUMNS
from ..models.row import InventoryRow
from ..runtime import Runtime, build_runtime
from ..services.briefing import generate_briefing

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckRequest(_CamelModel):
    row_id: int = Field(alias="rowId")
    fields: dict[str, Any] | None = None


class ConfirmRequest(_CamelModel):
    row_id: int = Field(alias="rowId")
    baseline: float | None = None


class BulkConfirmRequest(_CamelModel):
    file_group: str | None = Field(default=None, alias="fileGroup")
    row_ids: list[int] | None = Field(default=None, alias="rowIds")


class EditRequest(_CamelModel):
    fields: dict[str, Any]


class BriefingRequest(_CamelModel):
    file_group: str = Field(alias="fileGroup")
    use_llm: bool = Field(default=True, alias="useLlm")


def row_to_dict(row: InventoryRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "fileGroup": row.file_group,
        "sequenceIndex": row.sequence_index,
        "fields": row.fields,
        "baseline": row.baseline,
        "alarm": row.effective_alarm,
        "expiryDate": row.expiry_date.isoformat() if row.expiry_date else None,
    }


def get_runtime(request: Request) -> Runtime:
    runtime: Runtime = request.app.state.runtime
    return runtime


def _source_headers(rows: list[InventoryRow]) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        for key in row.fields:
            seen.setdefault(key, None)
    return display_headers(seen)


def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the app; a given runtime is used as-is and not closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "runtime", None) is None
        if owned:
            app.state.runtime = build_runtime()
        try:
            yield
        finally:
            if owned:
                app.state.runtime.close()

    api = FastAPI(title="Inventory Alarm Service", version="1.0.0", lifespan=lifespan)
    if runtime is not None:
        api.state.runtime = runtime

    @api.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @api.exception_handler(RowNotFoundError)
    async def _not_found(request: Request, exc: RowNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @api.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "storage unavailable"})

    @api.exception_handler(CodecError)
    async def _codec_error(request: Request, exc: CodecError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @api.get("/health")
    def health(runtime: Runtime = Depends(get_runtime)) -> dict:
        return {
            "status": "healthy",
            "dbMode": runtime.db_mode,
            "summarizer": runtime.summarizer is not None,
        }

    @api.post("/inventory/alarm/check")
    def check_alarm(body: CheckRequest, runtime: Runtime = Depends(get_runtime)) -> dict:
        result = runtime.service.check(body.row_id, body.fields)
        return {
            "rowId": result.row_id,
            "alarmStatus": result.alarm_status,
            "currentStock": result.current_stock,
            "baseStock": result.base_stock,
        }

    @api.put("/inventory/alarm/confirm")
    def confirm_alarm(body: ConfirmRequest, runtime: Runtime = Depends(get_runtime)) -> dict:
        row = runtime.service.confirm(body.row_id, body.baseline)
        return {"rowId": row.id, "baseline": row.baseline, "alarmStatus": row.alarm}

    @api.patch("/inventory/alarm/bulk-confirm")
    def bulk_confirm(body: BulkConfirmRequest, runtime: Runtime = Depends(get_runtime)) -> dict:
        if not body.file_group and not body.row_ids:
            raise HTTPException(status_code=400, detail="fileGroup or rowIds is required")
        result = runtime.service.bulk_confirm(file_group=body.file_group, row_ids=body.row_ids)
        if result.total_processed == 0:
            raise HTTPException(status_code=404, detail="no rows to confirm")
        return {
            "successCount": result.success_count,
            "failCount": result.fail_count,
            "totalProcessed": result.total_processed,
            "failedRowIds": list(result.failed_row_ids),
        }

    @api.get("/inventory/alarm")
    def list_alarms(
        file_group: str | None = Query(None, alias="fileGroup"),
        runtime: Runtime = Depends(get_runtime),
    ) -> list[dict]:
        return [row_to_dict(r) for r in runtime.service.list_alarms(file_group)]

    @api.patch("/inventory/rows/{row_id}")
    def edit_row(row_id: int, body: EditRequest, runtime: Runtime = Depends(get_runtime)) -> dict:
        return row_to_dict(runtime.service.edit_fields(row_id, body.fields))

    @api.get("/inventory/files/{file_group}/rows")
    def file_rows(file_group: str, runtime: Runtime = Depends(get_runtime)) -> dict:
        rows = runtime.store.range_by_file_group(file_group)
        return {
            "fileGroup": file_group,
            "columns": list(FIXED_COLUMNS),
            "sourceHeaders": _source_headers(rows),
            "rows": [fr.to_dict() for fr in runtime.projector.project_rows(rows)],
        }

    @api.post("/inventory/files/{file_group}/upload")
    async def upload_file(file_group: str, request: Request, runtime: Runtime = Depends(get_runtime)) -> dict:
        data = await request.body()
        table = await run_in_threadpool(decode, data, request.headers.get("content-type"))
        created = await run_in_threadpool(import_table, runtime.store, file_group, table)
        logger.info("imported file_group=%s rows=%d", file_group, len(created))
        return {
            "fileGroup": file_group,
            "headers": display_headers(table.headers),
            "imported": len(created),
        }

    @api.get("/inventory/files/{file_group}/export")
    def export_file(
        file_group: str,
        fmt: str = Query("xlsx", alias="format", pattern="^(xlsx|csv)$"),
        runtime: Runtime = Depends(get_runtime),
    ) -> Response:
        rows = runtime.projector.project_rows(runtime.store.range_by_file_group(file_group))
        mime = CSV_MIME if fmt == "csv" else XLSX_MIME
        content = encode(FIXED_COLUMNS, [fr.values() for fr in rows], mime)
        return Response(
            content=content,
            media_type=mime,
            headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_group)}.{fmt}"},
        )

    @api.post("/inventory/briefing")
    def briefing(body: BriefingRequest, runtime: Runtime = Depends(get_runtime)) -> dict:
        rows = runtime.store.range_by_file_group(body.file_group)
        summarizer = runtime.summarizer if body.use_llm else None
        result = generate_briefing(rows, body.file_group, summarizer, runtime.extractor)
        return {
            "fileGroup": result.file_group,
            "source": result.source,
            "text": result.text,
            "stats": result.stats.to_dict(),
        }

    return api
