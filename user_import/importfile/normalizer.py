from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import ImportFileError
from ..models.import_record import ImportFile, UserImportRecord
from .reader import read_import_file

"""Credential Normalizer: raw import content -> canonical user records.

Accepted shapes, in order of precedence:

1. ``{"users": [...]}``  (items may be flat or carry a nested ``user`` object)
2. ``{"user": {...}, "portainerInstances": [...], ...}``  (single export)
3. ``[...]``  (bare array)

Whenever an item carries a nested ``user`` object, identity fields are read
from the nested object first and configuration arrays from the sibling level
first, for both the ``users`` and the single ``user`` shapes. A file with any
malformed record is rejected as a whole.
"""

__all__ = [
    "NormalizationResult",
    "normalize_import_data",
    "load_import_file",
    "parse_instance_admin",
    "STRUCTURE_ERROR",
]

STRUCTURE_ERROR = 'Invalid import file: must have a "users" array or a "user" object'
MISSING_USERNAME_ERROR = 'Each user must have a "username" field'
EMPTY_FILE_ERROR = "Import file contains no users"

IDENTITY_FIELDS = ("username", "email", "role", "instanceAdmin", "instance_admin")
CONFIG_FIELDS = (
    "portainerInstances",
    "dockerHubCredentials",
    "discordWebhooks",
    "trackedApps",
    "trackedImages",
)

_TRUE_STRINGS = {"true", "1", "yes"}


@dataclass(frozen=True)
class NormalizationResult:
    """Tagged result: either accepted records or a structural error."""
    ok: bool
    records: list[UserImportRecord] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def accepted(cls, records: list[UserImportRecord]) -> NormalizationResult:
        return cls(ok=True, records=records)

    @classmethod
    def rejected(cls, error: str) -> NormalizationResult:
        return cls(ok=False, error=error)


def _is_truthy_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def parse_instance_admin(item: Mapping[str, Any]) -> bool:
    """``instanceAdmin`` wins over ``instance_admin`` when both are present."""
    if item.get("instanceAdmin") is not None:
        return _is_truthy_flag(item["instanceAdmin"])
    return _is_truthy_flag(item.get("instance_admin"))


def _merge_nested(item: Mapping[str, Any], nested: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key in IDENTITY_FIELDS:
        if nested.get(key) is not None:
            merged[key] = nested[key]
        elif item.get(key) is not None:
            merged[key] = item[key]
    for key in CONFIG_FIELDS:
        if item.get(key) is not None:
            merged[key] = item[key]
        elif nested.get(key) is not None:
            merged[key] = nested[key]
    return merged


def _flatten(item: Any) -> Any:
    if isinstance(item, Mapping) and isinstance(item.get("user"), Mapping):
        return _merge_nested(item, item["user"])
    return item


def _as_list(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, Mapping)]
    return []


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_record(item: Mapping[str, Any]) -> UserImportRecord:
    hub = item.get("dockerHubCredentials")
    return UserImportRecord(
        username=str(item["username"]).strip(),
        email=_optional_text(item.get("email")),
        role=_optional_text(item.get("role")),
        instance_admin=parse_instance_admin(item),
        portainer_instances=_as_list(item.get("portainerInstances")),
        docker_hub_credentials=dict(hub) if isinstance(hub, Mapping) and hub else None,
        discord_webhooks=_as_list(item.get("discordWebhooks")),
        tracked_apps=_as_list(item.get("trackedApps")),
        tracked_images=_as_list(item.get("trackedImages")),
    )


def _select_items(raw: Any) -> list[Any] | None:
    if isinstance(raw, Mapping):
        if isinstance(raw.get("users"), list):
            return [_flatten(item) for item in raw["users"]]
        if isinstance(raw.get("user"), Mapping):
            return [_merge_nested(raw, raw["user"])]
        return None
    if isinstance(raw, list):
        return [_flatten(item) for item in raw]
    return None


def normalize_import_data(raw: Any) -> NormalizationResult:
    """Normalize raw parsed file content into ``UserImportRecord`` objects."""
    items = _select_items(raw)
    if items is None:
        return NormalizationResult.rejected(STRUCTURE_ERROR)
    if not items:
        return NormalizationResult.rejected(EMPTY_FILE_ERROR)

    records: list[UserImportRecord] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, Mapping):
            return NormalizationResult.rejected(MISSING_USERNAME_ERROR)
        username = item.get("username")
        if not isinstance(username, str) or not username.strip():
            return NormalizationResult.rejected(MISSING_USERNAME_ERROR)
        record = _to_record(item)
        if record.username in seen:
            return NormalizationResult.rejected(
                f'Duplicate username "{record.username}" in import file'
            )
        seen.add(record.username)
        records.append(record)
    return NormalizationResult.accepted(records)


def load_import_file(path: Path) -> ImportFile:
    """Read and normalize ``path``.

    Raises:
        ImportFileError: on any read, parse or structural failure
    """
    result = normalize_import_data(read_import_file(path))
    if not result.ok:
        raise ImportFileError(result.error or STRUCTURE_ERROR)
    return ImportFile(users=result.records, source=str(path))
