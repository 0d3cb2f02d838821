from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from ..errors import ImportFileError

"""Import file readers.

JSON / YAML files are parsed as-is and handed to the normalizer in whatever
shape they have. CSV / XLSX files are read with pandas as a flat roster (one
header row, one user per row) and returned in the bare-array shape.
"""

__all__ = [
    "SUPPORTED_SUFFIXES",
    "ROSTER_COLUMNS",
    "read_import_file",
    "read_roster",
]

SUPPORTED_SUFFIXES = (".json", ".yml", ".yaml", ".csv", ".xlsx")

# 表形式ファイルで認識する列 (それ以外の列は無視)
ROSTER_COLUMNS = ("username", "email", "role", "instance_admin", "instanceAdmin")


def read_roster(path: Path) -> list[dict[str, Any]]:
    """Read a CSV / XLSX roster into a list of user dicts.

    Blank cells are omitted from the row dict so that absent values fall back
    to the normalizer's defaults. Rows that are entirely blank are skipped.
    """
    try:
        if path.suffix.lower() == ".csv":
            df = pd.read_csv(path, dtype=str, keep_default_na=True)
        else:
            df = pd.read_excel(path, dtype=str, engine="openpyxl")
    except (OSError, ValueError) as e:
        raise ImportFileError(f"Failed to read file: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    if "username" not in df.columns:
        raise ImportFileError('Roster must have a "username" column')

    rows: list[dict[str, Any]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        row: dict[str, Any] = {}
        for col in ROSTER_COLUMNS:
            if col not in df.columns:
                continue
            val = raw[col]
            if pd.isna(val):
                continue
            text = str(val).strip()
            if text:
                row[col] = text
        rows.append(row)
    return rows


def read_import_file(path: Path) -> Any:
    """Read ``path`` and return its raw parsed content.

    Raises:
        ImportFileError: unsupported extension, unreadable file, or a parse error
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ImportFileError(
            f"Unsupported import file type: {path.suffix or '(none)'} "
            f"(expected one of {', '.join(SUPPORTED_SUFFIXES)})"
        )
    if not path.exists():
        raise ImportFileError(f"Import file not found: {path}")

    if suffix in (".csv", ".xlsx"):
        return read_roster(path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ImportFileError(f"Failed to read file: {e}") from e

    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ImportFileError(f"Invalid JSON: {e}") from e
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ImportFileError(f"Invalid YAML: {e}") from e
