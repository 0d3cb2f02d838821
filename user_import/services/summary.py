from __future__ import annotations

from ..models.processing_result import ImportSummary

"""Summary line rendering.

Format::

    SUMMARY users={total} created={created} skipped={skipped} failed={failed} errors={errors} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(total_users: int, summary: ImportSummary) -> str:
    """Render the SUMMARY line for a finished batch.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> s = ImportSummary(
        ...     created=2, skipped_duplicates=1, failed=0, imported_usernames=["a", "b"],
        ...     errors=['User "c" already exists'], start_time=t, end_time=t, elapsed_seconds=4.0,
        ... )
        >>> render_summary_line(3, s)
        'SUMMARY users=3 created=2 skipped=1 failed=0 errors=1 elapsed_sec=4'
    """
    return (
        f"SUMMARY users={total_users} "
        f"created={summary.created} "
        f"skipped={summary.skipped} "
        f"failed={summary.failed} "
        f"errors={len(summary.errors)} "
        f"elapsed_sec={_format_seconds(summary.elapsed_seconds)}"
    )
