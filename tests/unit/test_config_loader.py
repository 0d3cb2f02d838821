from __future__ import annotations

import os
from pathlib import Path

import pytest

from user_import.config.loader import ConfigError, load_config, load_env_file


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.api.base_url == "http://dashboard.local:3000"
    assert cfg.api.timeout_seconds == 5.0
    assert cfg.api.verify_tls is True
    assert cfg.settings.default_role == "Administrator"
    assert cfg.settings.validation_workers == 4
    assert cfg.logs_dir == "./logs"


def test_defaults_applied(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("api:\n  base_url: https://dash.example.com/\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.api.base_url == "https://dash.example.com"
    assert cfg.api.timeout_seconds == 30.0
    assert cfg.settings.min_password_length == 8
    assert cfg.settings.validation_workers == 8


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "not_exists.yml")


def test_load_config_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("api: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(path)


def test_load_config_missing_required(temp_workdir: Path):
    path = temp_workdir / "config" / "import.yml"
    path.write_text("import:\n  default_role: Viewer\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(path)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


@pytest.mark.parametrize(
    "text",
    [
        "api:\n  base_url: http://x\nunknown: 1\n",
        "api:\n  base_url: http://x\nimport:\n  min_password_length: 0\n",
        "api:\n  base_url: http://x\n  timeout_seconds: -1\n",
    ],
)
def test_schema_violations(temp_workdir: Path, text: str):
    path = temp_workdir / "config" / "import.yml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="config validation failed"):
        load_config(path)


def test_env_overrides(write_config: Path, monkeypatch):
    monkeypatch.setenv("DASHBOARD_API_URL", "https://override.example.com")
    monkeypatch.setenv("DASHBOARD_API_TIMEOUT", "12.5")
    cfg = load_config(write_config)
    assert cfg.api.base_url == "https://override.example.com"
    assert cfg.api.timeout_seconds == 12.5


def test_env_override_invalid_timeout(write_config: Path, monkeypatch):
    monkeypatch.setenv("DASHBOARD_API_TIMEOUT", "soon")
    with pytest.raises(ConfigError, match="DASHBOARD_API_TIMEOUT"):
        load_config(write_config)


def test_env_file_overrides_environment(write_config: Path, temp_workdir: Path, monkeypatch):
    monkeypatch.setenv("DASHBOARD_API_URL", "https://from-process.example.com")
    env = temp_workdir / ".env"
    env.write_text("DASHBOARD_API_URL=https://from-dotenv.example.com\n", encoding="utf-8")
    assert load_env_file(env) is True
    assert os.environ["DASHBOARD_API_URL"] == "https://from-dotenv.example.com"
    assert load_config(write_config).api.base_url == "https://from-dotenv.example.com"


def test_env_file_missing(temp_workdir: Path):
    assert load_env_file(temp_workdir / ".env") is False
