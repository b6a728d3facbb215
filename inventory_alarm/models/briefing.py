from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .row import InventoryRow

"""Briefing statistics models.

BriefingStats is the single source of numbers for both the LLM prompt and the
deterministic template; neither renderer recomputes anything.
"""

__all__ = [
    "Briefing",
    "BriefingStats",
    "ClassifiedRow",
    "ColumnStats",
    "LowStockItem",
    "Severity",
]


class Severity(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class LowStockItem:
    item_name: str
    current_stock: float
    base_stock: float
    shortage: float
    shortage_percent: int
    row_id: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowId": self.row_id,
            "itemName": self.item_name,
            "currentStock": self.current_stock,
            "baseStock": self.base_stock,
            "shortage": self.shortage,
            "shortagePercent": self.shortage_percent,
        }


@dataclass(frozen=True)
class ColumnStats:
    min: float
    max: float
    avg: float
    sum: float
    count: int


@dataclass(frozen=True)
class BriefingStats:
    total_rows: int
    confirmed_items: int
    low_stock_count: int
    total_shortage: float
    critical_count: int
    warning_count: int
    low_stock_items: list[LowStockItem] = field(default_factory=list)
    numeric_stats: dict[str, ColumnStats] = field(default_factory=dict)

    @property
    def normal_count(self) -> int:
        """Confirmed rows that are not short."""
        return self.confirmed_items - self.low_stock_count

    def to_dict(self, max_items: int | None = None) -> dict[str, Any]:
        items = self.low_stock_items if max_items is None else self.low_stock_items[:max_items]
        return {
            "totalRows": self.total_rows,
            "confirmedItems": self.confirmed_items,
            "lowStockCount": self.low_stock_count,
            "totalShortage": self.total_shortage,
            "criticalCount": self.critical_count,
            "warningCount": self.warning_count,
            "lowStockItems": [i.to_dict() for i in items],
            "numericStats": {k: asdict(v) for k, v in self.numeric_stats.items()},
        }


@dataclass(frozen=True)
class ClassifiedRow:
    """Row with its severity for one snapshot; not stored."""
    row: InventoryRow
    role: Severity


@dataclass(frozen=True)
class Briefing:
    file_group: str
    stats: BriefingStats
    text: str
    source: str  # "llm" | "template"
