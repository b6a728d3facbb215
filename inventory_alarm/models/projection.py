from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Fixed 7-column display schema.

Every row, whatever its original headers, is projected into
sequence-number / item-name / specification / unit / current-quantity /
baseline-quantity / status for list rendering and export.
"""

__all__ = [
    "FIXED_COLUMNS",
    "FixedRow",
    "RowStatus",
]

FIXED_COLUMNS: tuple[str, ...] = (
    "No",
    "Item",
    "Specification",
    "Unit",
    "Current Stock",
    "Base Stock",
    "Status",
)


class RowStatus(Enum):
    """Display status, evaluated in declaration order (first match wins)."""
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring-soon"
    SHORTAGE = "shortage"
    NORMAL = "normal"


@dataclass(frozen=True)
class FixedRow:
    sequence_number: int  # sequence_index + 1
    item_name: str
    specification: str  # "-" when unresolved
    unit: str  # "-" when unresolved
    current_quantity: float
    baseline_quantity: float  # 0 when unconfirmed
    status: RowStatus
    row_id: Any = None

    def values(self) -> list[Any]:
        """Cell values in FIXED_COLUMNS order."""
        return [
            self.sequence_number,
            self.item_name,
            self.specification,
            self.unit,
            self.current_quantity,
            self.baseline_quantity,
            self.status.value,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowId": self.row_id,
            "sequenceNumber": self.sequence_number,
            "itemName": self.item_name,
            "specification": self.specification,
            "unit": self.unit,
            "currentQuantity": self.current_quantity,
            "baselineQuantity": self.baseline_quantity,
            "status": self.status.value,
        }
