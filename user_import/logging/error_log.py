from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ImportErrorRecord

"""Error log buffering.

- JSON Lines, fixed schema (no extra keys)
- One ``import-errors-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- Records are buffered in memory and appended on ``flush()``
"""

__all__ = [
    "ImportErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects ImportErrorRecords for one run and appends them on flush.

    Single operator flow, so no locking.
    """
    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._records: list[ImportErrorRecord] = []
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"import-errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ImportErrorRecord]:
        return list(self._records)

    def append(self, record: ImportErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file.

        Returns the file path, or None when nothing was buffered (no file is
        created for a clean run).
        """
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for rec in self._records:
                f.write(rec.to_json_line() + "\n")
        self._records.clear()
        return fp
