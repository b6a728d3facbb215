from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any, Protocol

from ..models.row import CellValue, InventoryRow

"""Storage collaborator interface and in-memory implementation.

The alarm engine only needs keyed get / put / range-by-file-group / delete
plus bulk append. Every failure is raised as a StoreError subclass so callers
can tell I/O failures from domain outcomes.
"""

__all__ = [
    "InMemoryRowStore",
    "RowNotFoundError",
    "RowStore",
    "StoreError",
    "StoreUnavailableError",
    "StoreWriteError",
]


class StoreError(Exception):
    """Base class for storage collaborator failures."""


class RowNotFoundError(StoreError):
    def __init__(self, row_id: Any) -> None:
        super().__init__(f"row not found: {row_id}")
        self.row_id = row_id


class StoreWriteError(StoreError):
    pass


class StoreUnavailableError(StoreError):
    pass


class RowStore(Protocol):
    def get_row(self, row_id: Any) -> InventoryRow: ...

    def put_row(self, row: InventoryRow) -> None: ...

    def range_by_file_group(self, file_group: str) -> list[InventoryRow]: ...

    def delete_row(self, row_id: Any) -> None: ...

    def append_rows(
        self,
        file_group: str,
        records: Iterable[Mapping[str, CellValue]],
        expiry_dates: Sequence[date | None] | None = None,
    ) -> list[InventoryRow]: ...

    def list_alarming(self, file_group: str | None = None) -> list[InventoryRow]: ...


class InMemoryRowStore:
    """Dict-backed store, used for tests and DISABLE_DB_CONNECT=1 mode."""

    def __init__(self, rows: Iterable[InventoryRow] = ()) -> None:
        self._rows: dict[Any, InventoryRow] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        for row in rows:
            self._rows[row.id] = row
        numeric_ids = [r for r in self._rows if isinstance(r, int)]
        if numeric_ids:
            self._ids = itertools.count(max(numeric_ids) + 1)

    def __len__(self) -> int:
        return len(self._rows)

    def get_row(self, row_id: Any) -> InventoryRow:
        with self._lock:
            try:
                return self._rows[row_id]
            except KeyError:
                raise RowNotFoundError(row_id) from None

    def put_row(self, row: InventoryRow) -> None:
        with self._lock:
            if row.id not in self._rows:
                raise RowNotFoundError(row.id)
            self._rows[row.id] = row

    def range_by_file_group(self, file_group: str) -> list[InventoryRow]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.file_group == file_group]
        return sorted(rows, key=lambda r: r.sequence_index)

    def delete_row(self, row_id: Any) -> None:
        with self._lock:
            if self._rows.pop(row_id, None) is None:
                raise RowNotFoundError(row_id)

    def append_rows(
        self,
        file_group: str,
        records: Iterable[Mapping[str, CellValue]],
        expiry_dates: Sequence[date | None] | None = None,
    ) -> list[InventoryRow]:
        created: list[InventoryRow] = []
        with self._lock:
            # max + 1 keeps indexes unique after deletes
            indexes = [r.sequence_index for r in self._rows.values() if r.file_group == file_group]
            start = max(indexes) + 1 if indexes else 0
            for offset, record in enumerate(records):
                expiry = expiry_dates[offset] if expiry_dates is not None and offset < len(expiry_dates) else None
                row = InventoryRow(
                    id=next(self._ids),
                    file_group=file_group,
                    sequence_index=start + offset,
                    fields=dict(record),
                    expiry_date=expiry,
                )
                self._rows[row.id] = row
                created.append(row)
        return created

    def list_alarming(self, file_group: str | None = None) -> list[InventoryRow]:
        with self._lock:
            rows = [
                r for r in self._rows.values()
                if r.effective_alarm and (file_group is None or r.file_group == file_group)
            ]
        return sorted(rows, key=lambda r: (r.file_group, r.sequence_index))

