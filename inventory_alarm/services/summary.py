from __future__ import annotations

from ..models.results import BulkConfirmResult

"""SUMMARY line rendering for bulk confirmation.

Format:
    SUMMARY rows={processed}/{total} success={success} failed={failed} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: BulkConfirmResult, file_group: str | None = None) -> str:
    """Render a SUMMARY line from a BulkConfirmResult.

    Examples:
        >>> render_summary_line(BulkConfirmResult(2, 1, 3, elapsed_seconds=0.5))
        'SUMMARY rows=3/3 success=2 failed=1 elapsed_sec=0.5'
        >>> render_summary_line(BulkConfirmResult(1, 0, 1, elapsed_seconds=2.0), "stock.xlsx")
        'SUMMARY file_group=stock.xlsx rows=1/1 success=1 failed=0 elapsed_sec=2'
    """
    processed = result.success_count + result.fail_count
    prefix = "SUMMARY "
    if file_group is not None:
        prefix += f"file_group={file_group} "
    return (
        f"{prefix}rows={processed}/{result.total_processed} "
        f"success={result.success_count} "
        f"failed={result.fail_count} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
