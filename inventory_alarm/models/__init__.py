"""Domain models for the inventory alarm service.

Rows and their confirmation state, the fixed display projection, service
results and briefing statistics. All models are frozen dataclasses.
"""

from .briefing import Briefing, BriefingStats, ClassifiedRow, ColumnStats, LowStockItem, Severity
from .error_record import ErrorRecord
from .projection import FIXED_COLUMNS, FixedRow, RowStatus
from .results import BulkConfirmResult, CheckResult
from .row import AlarmState, CellValue, InventoryRow, is_shortage

__all__ = [
    # Row state
    "AlarmState",
    "CellValue",
    "InventoryRow",
    "is_shortage",
    # Projection
    "FIXED_COLUMNS",
    "FixedRow",
    "RowStatus",
    # Service results
    "BulkConfirmResult",
    "CheckResult",
    "ErrorRecord",
    # Briefing
    "Briefing",
    "BriefingStats",
    "ClassifiedRow",
    "ColumnStats",
    "LowStockItem",
    "Severity",
]
