from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the user import tool.

Built by ``user_import.config.loader.load_config`` from ``config/import.yml``
(plus environment overrides). Defaults here are the values used when a key
is absent from the YAML file.
"""

DEFAULT_ROLE = "Administrator"
DEFAULT_MIN_PASSWORD_LENGTH = 8
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_VALIDATION_WORKERS = 8


@dataclass(frozen=True)
class ApiConfig:
    """Dashboard API connection settings.

    ``DASHBOARD_API_URL`` / ``DASHBOARD_API_TIMEOUT`` take precedence over
    these values when set.
    """
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS  # transport timeout (per request)
    verify_tls: bool = True


@dataclass(frozen=True)
class ImportSettings:
    """Behavior of the import flow itself."""
    default_role: str = DEFAULT_ROLE  # role が未指定のユーザーに適用
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    validation_workers: int = DEFAULT_VALIDATION_WORKERS  # per-item fan-out の上限


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    api: ApiConfig
    settings: ImportSettings = field(default_factory=ImportSettings)
    logs_dir: str = "./logs"
