from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from ..models.projection import FixedRow, RowStatus
from ..models.row import InventoryRow, is_shortage
from .extractor import RowFieldExtractor
from .resolver import Role

"""Fixed-schema projector.

Projects an arbitrary row into the 7-column display schema. Pure: it reads
row.baseline directly and never touches row.alarm.

Status priority (first match wins):
    expired        expiry_date on or before today
    expiring-soon  0 < days until expiry <= expiry_warning_days
    shortage       baseline set, baseline > 0 and current < baseline
    normal
"""

__all__ = [
    "DEFAULT_EXPIRY_WARNING_DAYS",
    "FixedSchemaProjector",
    "HIDDEN_DISPLAY_COLUMNS",
    "coerce_date",
    "display_headers",
]

DEFAULT_EXPIRY_WARNING_DAYS = 7
HIDDEN_DISPLAY_COLUMNS = ("id",)
MISSING_TEXT = "-"


def display_headers(headers: Iterable[str]) -> list[str]:
    """Headers to render (storage-only columns such as id removed)."""
    return [h for h in headers if str(h).lower() not in HIDDEN_DISPLAY_COLUMNS]


def coerce_date(value: object) -> date | None:
    """date / datetime / ISO string -> date; anything else -> None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        return None


class FixedSchemaProjector:
    def __init__(
        self,
        extractor: RowFieldExtractor | None = None,
        expiry_warning_days: int = DEFAULT_EXPIRY_WARNING_DAYS,
    ) -> None:
        self.extractor = extractor or RowFieldExtractor()
        self.expiry_warning_days = expiry_warning_days

    def item_name(self, row: InventoryRow, sequence_index: int) -> str:
        name = self.extractor.extract(row.fields, Role.ITEM_NAME)
        return name if name is not None else f"Item {sequence_index + 1}"

    def current_quantity(self, row: InventoryRow) -> float:
        quantity = self.extractor.quantity(row.fields)
        return quantity if quantity is not None else 0

    def status(self, row: InventoryRow, current_quantity: float, today: date | None = None) -> RowStatus:
        expiry = coerce_date(row.expiry_date)
        if expiry is not None:
            days_until = (expiry - (today or date.today())).days
            if days_until <= 0:
                return RowStatus.EXPIRED
            if days_until <= self.expiry_warning_days:
                return RowStatus.EXPIRING_SOON
        if is_shortage(row.baseline, current_quantity):
            return RowStatus.SHORTAGE
        return RowStatus.NORMAL

    def project(self, row: InventoryRow, sequence_index: int, today: date | None = None) -> FixedRow:
        current = self.current_quantity(row)
        specification = self.extractor.extract(row.fields, Role.SPECIFICATION)
        unit = self.extractor.extract(row.fields, Role.UNIT)
        return FixedRow(
            sequence_number=sequence_index + 1,
            item_name=self.item_name(row, sequence_index),
            specification=specification if specification is not None else MISSING_TEXT,
            unit=unit if unit is not None else MISSING_TEXT,
            current_quantity=current,
            baseline_quantity=row.baseline if row.baseline is not None else 0,
            status=self.status(row, current, today),
            row_id=row.id,
        )

    def project_rows(self, rows: Iterable[InventoryRow], today: date | None = None) -> list[FixedRow]:
        """Project rows numbered by their position in `rows`."""
        return [self.project(row, i, today) for i, row in enumerate(rows)]
