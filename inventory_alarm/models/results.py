from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Result models returned by the stock-alarm service.

These mirror the response shapes of the confirmation HTTP surface so the API
layer only has to rename keys.
"""


@dataclass(frozen=True)
class CheckResult:
    """Outcome of an alarm evaluation for one row."""
    row_id: Any
    alarm_status: bool
    current_stock: float  # 0 when no quantity column resolves
    base_stock: float | None  # None = unconfirmed


@dataclass(frozen=True)
class BulkConfirmResult:
    """Aggregated outcome of a bulk confirmation.

    Per-row failures are isolated: success_count + fail_count == total_processed.
    """
    success_count: int
    fail_count: int
    total_processed: int
    elapsed_seconds: float = 0.0
    failed_row_ids: tuple[Any, ...] = field(default_factory=tuple)

    @property
    def partial_failure(self) -> bool:
        return self.fail_count > 0
