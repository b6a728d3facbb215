from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from ..db.store import RowNotFoundError, RowStore, StoreError, StoreUnavailableError, StoreWriteError
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..logging.init import log_summary
from ..mapping.extractor import RowFieldExtractor
from ..models.results import BulkConfirmResult, CheckResult
from ..models.row import CellValue, InventoryRow, is_shortage
from .progress import ProgressTracker
from .summary import render_summary_line

logger = logging.getLogger(__name__)

"""Stock-alarm state machine.

States per row (see models.row.AlarmState):
    UNCONFIRMED         baseline is None
    CONFIRMED_NORMAL    baseline set, alarm False
    CONFIRMED_ALARMING  baseline set, alarm True

confirm() and edit() are the only entry points that write `alarm`. Each one
builds the new row first and returns it only after the store accepted the
write, so a failed write never leaves a half-applied transition behind.
"""

__all__ = [
    "StockAlarmService",
    "evaluate",
]


def evaluate(row: InventoryRow, extractor: RowFieldExtractor) -> InventoryRow:
    """Recompute the cached alarm flag. Pure; the caller persists the result."""
    current = extractor.quantity(row.fields)
    alarm = is_shortage(row.baseline, current if current is not None else 0)
    if alarm == row.alarm:
        return row
    return replace(row, alarm=alarm)


def _error_type(exc: StoreError) -> str:
    if isinstance(exc, RowNotFoundError):
        return "ROW_NOT_FOUND"
    if isinstance(exc, StoreUnavailableError):
        return "STORE_UNAVAILABLE"
    if isinstance(exc, StoreWriteError):
        return "STORE_WRITE"
    return "STORE_ERROR"


class StockAlarmService:
    """Confirm / Edit / BulkConfirm over a RowStore."""

    def __init__(
        self,
        store: RowStore,
        extractor: RowFieldExtractor | None = None,
        error_log: ErrorLogBuffer | None = None,
        show_progress: bool | None = False,
    ) -> None:
        self.store = store
        self.extractor = extractor or RowFieldExtractor()
        self.error_log = error_log
        self.show_progress = show_progress

    def current_quantity(self, row: InventoryRow) -> float:
        quantity = self.extractor.quantity(row.fields)
        return quantity if quantity is not None else 0

    # ---- Confirm -------------------------------------------------------------
    def _confirm_row(self, row: InventoryRow, baseline: float | None = None) -> InventoryRow:
        if baseline is None:
            quantity = self.extractor.quantity(row.fields)
            baseline = quantity if quantity is not None else 0
        confirmed = replace(row, baseline=baseline, alarm=False)
        self.store.put_row(confirmed)
        logger.debug("confirmed row_id=%s baseline=%s", row.id, baseline)
        return confirmed

    def confirm(self, row_id: Any, baseline: float | None = None) -> InventoryRow:
        """Set the baseline (explicit, else current quantity, else 0) and clear the alarm.

        Raises:
            RowNotFoundError: unknown row id
            StoreError: the write failed; the returned state was not applied
        """
        return self._confirm_row(self.store.get_row(row_id), baseline)

    def bulk_confirm(
        self,
        file_group: str | None = None,
        row_ids: Iterable[Any] | None = None,
    ) -> BulkConfirmResult:
        """Confirm every selected row with its own current quantity.

        Rows are processed sequentially; one row's storage failure is counted
        and logged, and processing continues with the next row. Explicit
        row_ids take precedence over file_group.
        """
        ids = list(row_ids) if row_ids is not None else []
        if not ids and not file_group:
            raise ValueError("file_group or row_ids is required")

        started = time.perf_counter()
        targets: list[Any] = ids if ids else list(self.store.range_by_file_group(file_group or ""))
        group_label = file_group or ""

        success = 0
        failed: list[Any] = []
        with ProgressTracker(len(targets), enabled=self.show_progress) as progress:
            for target in targets:
                row_id = target if ids else target.id
                try:
                    row = self.store.get_row(target) if ids else target
                    self._confirm_row(row)
                    success += 1
                    progress.advance(True)
                except StoreError as e:
                    failed.append(row_id)
                    progress.advance(False)
                    logger.warning("confirm failed row_id=%s: %s", row_id, e)
                    if self.error_log is not None:
                        self.error_log.append(
                            ErrorRecord.create(
                                file_group=group_label,
                                row_id=row_id,
                                error_type=_error_type(e),
                                message=str(e),
                            )
                        )
                progress.set_postfix(ok=success, ng=len(failed))

        result = BulkConfirmResult(
            success_count=success,
            fail_count=len(failed),
            total_processed=len(targets),
            elapsed_seconds=time.perf_counter() - started,
            failed_row_ids=tuple(failed),
        )
        # the SUMMARY label comes from the formatter
        log_summary(render_summary_line(result, file_group).removeprefix("SUMMARY "))
        if self.error_log is not None and failed:
            path = self.error_log.flush()
            logger.info("error log written: %s", path)
        return result

    # ---- Edit ----------------------------------------------------------------
    def edit(self, row_id: Any, field_key: str, value: CellValue) -> InventoryRow:
        return self.edit_fields(row_id, {field_key: value})

    def edit_fields(self, row_id: Any, updates: Mapping[str, CellValue]) -> InventoryRow:
        """Merge field updates; confirmed rows are re-evaluated before the write."""
        edited = self.store.get_row(row_id).with_fields(updates)
        if edited.is_confirmed:
            edited = evaluate(edited, self.extractor)
        self.store.put_row(edited)
        return edited

    # ---- Evaluate ------------------------------------------------------------
    def check(self, row_id: Any, fields: Mapping[str, CellValue] | None = None) -> CheckResult:
        """Evaluate one row, optionally after merging new field values.

        An unconfirmed row reports alarm False and is only written when
        `fields` changed it.
        """
        row = self.store.get_row(row_id)
        if fields:
            row = row.with_fields(fields)
        if row.is_confirmed:
            evaluated = evaluate(row, self.extractor)
            if fields or evaluated is not row:
                self.store.put_row(evaluated)
            row = evaluated
        elif fields:
            self.store.put_row(row)
        return CheckResult(
            row_id=row.id,
            alarm_status=row.effective_alarm,
            current_stock=self.current_quantity(row),
            base_stock=row.baseline,
        )

    def list_alarms(self, file_group: str | None = None) -> list[InventoryRow]:
        return self.store.list_alarming(file_group)
