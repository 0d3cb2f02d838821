from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ImportErrorRecord model for error logging.

Structured record written to the JSON Lines error log for every batch-level
failure: structural file errors, duplicate pre-check aborts, and per-user
commit failures or soft duplicates. Records never carry secret material.
"""

__all__ = [
    "ImportErrorRecord",
    "ERROR_TYPES",
]

ERROR_TYPES = frozenset({"STRUCTURAL", "DUPLICATE_PRECHECK", "ALREADY_EXISTS", "COMMIT_FAILED"})


@dataclass(frozen=True)
class ImportErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        username: Affected user. Empty for file-level errors
        step: Step identifier the error belongs to. Empty when no step applies
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human-readable reason (server-supplied where available)
    """
    timestamp: str  # ISO8601 UTC
    username: str
    step: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(username: str, step: str, error_type: str, message: str) -> ImportErrorRecord:
        """Create a new ImportErrorRecord with current UTC timestamp.

        Parameters:
            username: Affected user ('' for file-level errors)
            step: Step identifier ('' when no step applies)
            error_type: Error classification in UPPER_SNAKE_CASE format
            message: Error description

        Returns:
            New ImportErrorRecord instance with current UTC timestamp
        """
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ImportErrorRecord(
            timestamp=ts,
            username=username,
            step=step,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to JSON Lines format (fixed key set, no extras)."""
        return json.dumps(asdict(self), ensure_ascii=False)
