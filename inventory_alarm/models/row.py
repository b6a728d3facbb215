from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any

"""InventoryRow domain model.

One row of user supplied spreadsheet data plus the confirmation state
(baseline / alarm) owned by the stock-alarm service.

`alarm` is a cached projection of (fields, baseline). It is only written by
services.alarm and must be read through `effective_alarm`, which applies the
rule "no baseline -> no alarm" even when the stored flag says otherwise.
"""

__all__ = [
    "AlarmState",
    "CellValue",
    "InventoryRow",
    "is_shortage",
]

CellValue = str | int | float | bool | None


class AlarmState(Enum):
    """Per-row confirmation lifecycle.

    UNCONFIRMED -> CONFIRMED_NORMAL <-> CONFIRMED_ALARMING
    There is no terminal state; rows live until deleted by the store.
    """
    UNCONFIRMED = "unconfirmed"
    CONFIRMED_NORMAL = "confirmed_normal"
    CONFIRMED_ALARMING = "confirmed_alarming"


@dataclass(frozen=True)
class InventoryRow:
    """A single stored inventory row.

    Attributes:
        id: Identifier assigned by the store on creation (immutable)
        file_group: Logical dataset (originating spreadsheet) of the row
        sequence_index: 0-based position inside file_group
        fields: Header -> cell value, in spreadsheet column order
        baseline: Confirmed reference quantity; None until confirmed
        alarm: Cached "current quantity < baseline" flag
        expiry_date: Optional expiry date used by the display projection
    """
    id: Any
    file_group: str
    sequence_index: int
    fields: dict[str, CellValue]
    baseline: float | None = None
    alarm: bool = False
    expiry_date: date | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.baseline is not None

    @property
    def effective_alarm(self) -> bool:
        # stored flag is ignored when baseline was cleared outside the alarm service
        return bool(self.alarm) and self.baseline is not None

    @property
    def state(self) -> AlarmState:
        if self.baseline is None:
            return AlarmState.UNCONFIRMED
        if self.alarm:
            return AlarmState.CONFIRMED_ALARMING
        return AlarmState.CONFIRMED_NORMAL

    def with_fields(self, updates: Mapping[str, CellValue]) -> InventoryRow:
        """Return a copy with `updates` merged into fields (existing key order kept)."""
        merged = dict(self.fields)
        merged.update(updates)
        return replace(self, fields=merged)


def is_shortage(baseline: float | None, current_quantity: float) -> bool:
    """The alarm comparison: confirmed, positive baseline and current below it."""
    return baseline is not None and baseline > 0 and current_quantity < baseline
