from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

"""ErrorRecord model for per-row failure logging.

Bulk confirmation isolates storage failures per row; each failure becomes one
ErrorRecord written as a JSON line by logging.error_log.ErrorLogBuffer.
The key set is fixed (no extra keys).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file_group: File group being processed
        row_id: Row identifier; -1 when the failure is not tied to a row
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Storage error message or description
    """
    timestamp: str  # ISO8601 UTC
    file_group: str
    row_id: Any
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file_group: str, row_id: Any, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file_group=file_group,
            row_id=row_id,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, default=str)
