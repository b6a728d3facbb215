from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

import numpy as np
import pandas as pd

from ..db.store import RowStore
from ..mapping.projector import coerce_date
from ..mapping.resolver import contains_any, normalize_header
from ..models.row import CellValue, InventoryRow

logger = logging.getLogger(__name__)

"""Tabular codec (xlsx / xls / csv <-> headers + rows).

The first row of a sheet is the header row; remaining rows are data.
- empty header cells become "Column N" (1-based position)
- repeated header names get a " (N)" suffix so record keys stay unique
- fully empty rows are skipped
- cells are normalized to str | int | float | bool | None; a cell that cannot
  be normalized becomes None instead of failing the whole decode

.xls needs the optional xlrd engine (`pip install inventory-alarm[xls]`).
"""

__all__ = [
    "CSV_MIME",
    "CodecError",
    "TabularData",
    "XLSX_MIME",
    "decode",
    "decode_sheets",
    "encode",
    "expiry_column",
    "import_table",
    "normalize_cell",
]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIME = "text/csv"

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"

# tried in order; Korean Excel exports CSV as cp949
CSV_ENCODINGS = ("utf-8-sig", "cp949")

EXPIRY_KEYWORDS = ("유통기한", "만료일", "소비기한", "expiry", "expiration", "bestbefore")


class CodecError(Exception):
    """The payload as a whole could not be decoded or encoded."""


@dataclass(frozen=True)
class TabularData:
    headers: list[str]
    rows: list[list[CellValue]]
    sheet_name: str | None = None

    def records(self) -> list[dict[str, CellValue]]:
        """Rows as header -> value dicts in column order."""
        return [dict(zip(self.headers, row, strict=False)) for row in self.rows]


def normalize_cell(value: Any) -> CellValue:
    try:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        if isinstance(value, (int, np.integer)):
            return int(value)
        if isinstance(value, (float, np.floating)):
            f = float(value)
            if not math.isfinite(f):
                return None
            return int(f) if f.is_integer() else f
        if isinstance(value, datetime):
            # Excel stores plain dates as midnight datetimes
            if value.time() == time(0):
                return value.date().isoformat()
            return value.isoformat()
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, str):
            stripped = value.strip()
            return stripped if stripped else None
        return str(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _header_names(raw: Sequence[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(raw):
        cell = normalize_cell(value)
        name = str(cell) if cell is not None else f"Column {idx + 1}"
        count = seen.get(name, 0) + 1
        seen[name] = count
        headers.append(name if count == 1 else f"{name} ({count})")
    return headers


def _frame_to_table(df: pd.DataFrame, sheet_name: str | None = None) -> TabularData:
    if df.shape[0] == 0:
        return TabularData(headers=[], rows=[], sheet_name=sheet_name)
    headers = _header_names(df.iloc[0].tolist())
    rows: list[list[CellValue]] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        cells = [normalize_cell(v) for v in raw]
        if all(c is None for c in cells):
            continue
        rows.append(cells)
    return TabularData(headers=headers, rows=rows, sheet_name=sheet_name)


def _is_csv(data: bytes, mime_hint: str | None) -> bool:
    hint = (mime_hint or "").lower()
    if "csv" in hint or hint.startswith("text/"):
        return True
    if "sheet" in hint or "excel" in hint or hint.endswith((".xlsx", ".xls")):
        return False
    return not (data.startswith(_ZIP_MAGIC) or data.startswith(_OLE_MAGIC))


def _decode_text(data: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    logger.warning("csv payload is not %s, undecodable bytes replaced", "/".join(CSV_ENCODINGS))
    return data.decode("utf-8", errors="replace")


def _read_csv(data: bytes) -> pd.DataFrame:
    """Read CSV cells as strings; rows are cut or padded to the header width."""
    text = _decode_text(data)
    width = len(next(csv.reader(io.StringIO(text)), []))

    def trim(bad_line: list[str]) -> list[str]:
        return bad_line[:width]

    return pd.read_csv(
        io.StringIO(text),
        header=None,
        dtype=object,
        keep_default_na=False,
        na_values=[""],
        engine="python",
        on_bad_lines=trim,
    )


def decode_sheets(data: bytes, mime_hint: str | None = None) -> list[TabularData]:
    """Decode every sheet (a CSV payload is a single unnamed sheet)."""
    if not data:
        raise CodecError("empty payload")
    try:
        if _is_csv(data, mime_hint):
            return [_frame_to_table(_read_csv(data))]
        sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None)
    except pd.errors.EmptyDataError:
        return [TabularData(headers=[], rows=[])]
    except Exception as e:
        raise CodecError(f"could not decode spreadsheet: {e}") from e
    return [_frame_to_table(df, str(name)) for name, df in sheets.items()]


def decode(data: bytes, mime_hint: str | None = None) -> TabularData:
    """Decode the first sheet."""
    return decode_sheets(data, mime_hint)[0]


def encode(
    headers: Sequence[str],
    rows: Iterable[Sequence[CellValue]],
    mime_hint: str | None = None,
    sheet_name: str = "Sheet1",
) -> bytes:
    """Write headers + rows as xlsx (default) or csv."""
    frame = pd.DataFrame([list(r) for r in rows], columns=list(headers))
    try:
        if "csv" in (mime_hint or "").lower():
            return frame.to_csv(index=False).encode("utf-8")
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
        return buffer.getvalue()
    except (ValueError, TypeError) as e:
        raise CodecError(f"could not encode spreadsheet: {e}") from e


def expiry_column(headers: Sequence[str]) -> str | None:
    """First header naming an expiry date, if any."""
    for header in headers:
        if contains_any(normalize_header(header), EXPIRY_KEYWORDS):
            return header
    return None


def import_table(store: RowStore, file_group: str, table: TabularData) -> list[InventoryRow]:
    """Append decoded rows to a file group as unconfirmed rows.

    A recognizable expiry column also fills each row's expiry_date.
    """
    records = table.records()
    column = expiry_column(table.headers)
    expiry_dates = [coerce_date(r.get(column)) for r in records] if column is not None else None
    return store.append_rows(file_group, records, expiry_dates)
