from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import load_dotenv
from jsonschema.exceptions import ValidationError

from ..errors import ImportPipelineError
from ..models.config_models import (
    DEFAULT_MIN_PASSWORD_LENGTH,
    DEFAULT_ROLE,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_VALIDATION_WORKERS,
    ApiConfig,
    AppConfig,
    ImportSettings,
)

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/import.yml``)
- Apply environment overrides (``DASHBOARD_API_URL`` / ``DASHBOARD_API_TIMEOUT``)
- Validate against ``config_schema.json`` shipped next to this module
- Apply defaults for every optional key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

ENV_API_URL = "DASHBOARD_API_URL"
ENV_API_TIMEOUT = "DASHBOARD_API_TIMEOUT"


class ConfigError(ImportPipelineError):
    pass


def load_env_file(path: Path, override: bool = True) -> bool:
    """Load ``.env`` into the process environment via python-dotenv.

    override=True: .env の値を既存の環境変数より優先する。
    Returns True when a file was found and loaded.
    """
    if not path.exists():
        return False
    return bool(load_dotenv(dotenv_path=path, override=override))


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or unreadable, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _apply_env_overrides(data: dict[str, Any]) -> None:
    url = os.getenv(ENV_API_URL)
    timeout = os.getenv(ENV_API_TIMEOUT)
    if url or timeout:
        api = data.get("api")
        if not isinstance(api, dict):
            api = {}
            data["api"] = api
        if url:
            api["base_url"] = url
        if timeout:
            try:
                api["timeout_seconds"] = float(timeout)
            except ValueError as e:
                raise ConfigError(f"invalid {ENV_API_TIMEOUT}: {timeout!r}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top-level value must be a mapping")

    _apply_env_overrides(data)
    _validate_config_schema(data)

    api_raw = data["api"]
    imp_raw = data.get("import", {})
    api = ApiConfig(
        base_url=str(api_raw["base_url"]).rstrip("/"),
        timeout_seconds=float(api_raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        verify_tls=bool(api_raw.get("verify_tls", True)),
    )
    settings = ImportSettings(
        default_role=imp_raw.get("default_role", DEFAULT_ROLE),
        min_password_length=imp_raw.get("min_password_length", DEFAULT_MIN_PASSWORD_LENGTH),
        validation_workers=imp_raw.get("validation_workers", DEFAULT_VALIDATION_WORKERS),
    )
    return AppConfig(api=api, settings=settings, logs_dir=data.get("logs_dir", "./logs"))
