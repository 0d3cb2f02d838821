from __future__ import annotations

import doctest
from datetime import UTC, datetime

import pytest

import user_import.services.summary as summary_module
from user_import.models.processing_result import ImportSummary
from user_import.services.summary import render_summary_line


def _summary(elapsed: float) -> ImportSummary:
    t = datetime(2025, 1, 1, tzinfo=UTC)
    return ImportSummary(
        created=1, skipped_duplicates=0, failed=1, imported_usernames=["a"],
        errors=['User "b": Failed to create user'], start_time=t, end_time=t, elapsed_seconds=elapsed,
    )


@pytest.mark.parametrize(
    "elapsed,expected",
    [(0.0, "0"), (12.0, "12"), (1.234, "1.23"), (0.5, "0.5"), (0.0012, "0.0012")],
)
def test_elapsed_formatting(elapsed, expected):
    line = render_summary_line(2, _summary(elapsed))
    assert line == f"SUMMARY users=2 created=1 skipped=0 failed=1 errors=1 elapsed_sec={expected}"


def test_docstring_examples():
    result = doctest.testmod(summary_module)
    assert result.failed == 0
    assert result.attempted > 0
