from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Protocol

import pandas as pd

from ..mapping.extractor import RowFieldExtractor, parse_number
from ..mapping.projector import FixedSchemaProjector
from ..models.briefing import Briefing, BriefingStats, ClassifiedRow, ColumnStats, LowStockItem, Severity
from ..models.row import InventoryRow
from .summarizer import SummarizerError

logger = logging.getLogger(__name__)

"""Briefing aggregator.

summarize() computes BriefingStats in one linear pass; both the LLM prompt
and the template sentence are rendered from that value, so any number in a
briefing always matches the stats.

Low-stock rule: baseline set and current < baseline (a zero baseline counts
as 100% short). Severity: >= 50% critical, 20-49% warning, lower stays
normal but is still counted in low_stock_count.
"""

__all__ = [
    "BriefingAggregator",
    "Summarizer",
    "classify_rows",
    "generate_briefing",
    "numeric_stats",
    "render_template",
    "round_half_up",
    "severity_for",
    "summarize",
]

CRITICAL_PERCENT = 50
WARNING_PERCENT = 20
NUMERIC_COLUMN_RATIO = 0.3
TEMPLATE_TOP_ITEMS = 3


class Summarizer(Protocol):
    def summarize(self, stats: BriefingStats, file_group: str) -> str: ...


def round_half_up(value: float) -> int:
    """Round .5 towards +inf (so -0.5 -> 0, 2.5 -> 3)."""
    return math.floor(value + 0.5)


def severity_for(shortage_percent: int) -> Severity:
    if shortage_percent >= CRITICAL_PERCENT:
        return Severity.CRITICAL
    if shortage_percent >= WARNING_PERCENT:
        return Severity.WARNING
    return Severity.NORMAL


def numeric_stats(rows: Sequence[InventoryRow]) -> dict[str, ColumnStats]:
    """min/max/avg/sum/count for columns where > 30% of rows hold a number (id excluded)."""
    if not rows:
        return {}
    frame = pd.DataFrame([row.fields for row in rows])
    stats: dict[str, ColumnStats] = {}
    for column in frame.columns:
        name = str(column)
        if name.lower() == "id":
            continue
        values = pd.to_numeric(frame[column].map(parse_number), errors="coerce").dropna()
        if len(values) <= len(rows) * NUMERIC_COLUMN_RATIO:
            continue
        stats[name] = ColumnStats(
            min=float(values.min()),
            max=float(values.max()),
            avg=float(values.mean()),
            sum=float(values.sum()),
            count=int(values.count()),
        )
    return stats


class BriefingAggregator:
    def __init__(self, extractor: RowFieldExtractor | None = None) -> None:
        self.projector = FixedSchemaProjector(extractor or RowFieldExtractor())

    def _shortage(self, row: InventoryRow) -> tuple[float, float, int] | None:
        """(current, shortage, percent) for a short confirmed row, else None."""
        if row.baseline is None:
            return None
        current = self.projector.current_quantity(row)
        if not current < row.baseline:
            return None
        shortage = row.baseline - current
        percent = round_half_up(shortage / row.baseline * 100) if row.baseline > 0 else 100
        return current, shortage, percent

    def summarize(self, rows: Sequence[InventoryRow]) -> BriefingStats:
        confirmed = 0
        total_shortage: float = 0
        critical = warning = 0
        items: list[LowStockItem] = []
        for index, row in enumerate(rows):
            if row.baseline is not None:
                confirmed += 1
            short = self._shortage(row)
            if short is None:
                continue
            current, shortage, percent = short
            items.append(
                LowStockItem(
                    item_name=self.projector.item_name(row, index),
                    current_stock=current,
                    base_stock=row.baseline,
                    shortage=shortage,
                    shortage_percent=percent,
                    row_id=row.id,
                )
            )
            total_shortage += shortage
            severity = severity_for(percent)
            if severity is Severity.CRITICAL:
                critical += 1
            elif severity is Severity.WARNING:
                warning += 1

        # sorted() is stable: equal percentages keep input order
        items = sorted(items, key=lambda item: item.shortage_percent, reverse=True)
        return BriefingStats(
            total_rows=len(rows),
            confirmed_items=confirmed,
            low_stock_count=len(items),
            total_shortage=total_shortage,
            critical_count=critical,
            warning_count=warning,
            low_stock_items=items,
            numeric_stats=numeric_stats(rows),
        )

    def classify_rows(self, rows: Sequence[InventoryRow]) -> list[ClassifiedRow]:
        classified = []
        for row in rows:
            short = self._shortage(row)
            role = Severity.NORMAL if short is None else severity_for(short[2])
            classified.append(ClassifiedRow(row=row, role=role))
        return classified


def summarize(rows: Sequence[InventoryRow], extractor: RowFieldExtractor | None = None) -> BriefingStats:
    return BriefingAggregator(extractor).summarize(rows)


def classify_rows(rows: Sequence[InventoryRow], extractor: RowFieldExtractor | None = None) -> list[ClassifiedRow]:
    return BriefingAggregator(extractor).classify_rows(rows)


def _num(value: float) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def render_template(stats: BriefingStats, file_group: str) -> str:
    """Deterministic briefing built only from `stats`."""
    parts = [f"{file_group}: {stats.total_rows} rows, {stats.confirmed_items} confirmed."]
    if stats.confirmed_items == 0:
        parts.append("No baselines are confirmed yet, so shortages cannot be tracked.")
        return " ".join(parts)
    if stats.low_stock_count == 0:
        parts.append("All confirmed items are at or above their baseline.")
        return " ".join(parts)

    parts.append(
        f"{stats.low_stock_count} items are below baseline "
        f"(critical {stats.critical_count}, warning {stats.warning_count}), "
        f"total shortage {_num(stats.total_shortage)}."
    )
    top = ", ".join(
        f"{item.item_name} {_num(item.current_stock)}/{_num(item.base_stock)} ({item.shortage_percent}%)"
        for item in stats.low_stock_items[:TEMPLATE_TOP_ITEMS]
    )
    parts.append(f"Most urgent: {top}.")
    return " ".join(parts)


def generate_briefing(
    rows: Sequence[InventoryRow],
    file_group: str,
    summarizer: Summarizer | None = None,
    extractor: RowFieldExtractor | None = None,
) -> Briefing:
    """Stats plus text; the template replaces the summarizer whenever it is absent or raises."""
    stats = summarize(rows, extractor)
    if summarizer is not None:
        try:
            text = summarizer.summarize(stats, file_group)
            return Briefing(file_group=file_group, stats=stats, text=text, source="llm")
        except SummarizerError as e:
            logger.warning("summarizer unavailable, using template briefing: %s", e)
        except Exception as e:
            logger.warning("summarizer failed, using template briefing: %s", e, exc_info=True)
    return Briefing(file_group=file_group, stats=stats, text=render_template(stats, file_group), source="template")
