# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
import threading
from pathlib import Path
from typing import Any

import pytest

from user_import.client.api import ApiResult, CreateUserResult, TokenResult
from user_import.errors import ApiError
from user_import.logging.init import reset_logging


class FakeApi:
    """In-memory stand-in for the dashboard API (implements ``ImportApi``).

    Tokens are issued as ``tok-<username>-<n>``; verification succeeds only
    for the most recently issued token of that user.
    """

    def __init__(self) -> None:
        self.existing: set[str] = set()
        self.unreachable: set[str] = set()  # existence check raises ApiError
        self.tokens: dict[str, str] = {}
        self.token_failures: dict[str, str | None] = {}
        self.portainer: dict[str, ApiResult] = {}
        self.dockerhub: ApiResult = ApiResult(True)
        self.discord: dict[str, ApiResult] = {}
        self.create: dict[str, CreateUserResult | ApiError] = {}
        self.calls: list[tuple[str, Any]] = []
        self.payloads: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._issued = 0

    def _call(self, name: str, arg: Any) -> None:
        with self._lock:
            self.calls.append((name, arg))

    def calls_to(self, name: str) -> list[Any]:
        return [arg for n, arg in self.calls if n == name]

    def check_user_exists(self, username: str) -> bool:
        self._call("check_user_exists", username)
        if username in self.unreachable:
            raise ApiError("GET /api/auth/check-user-exists failed: timed out")
        return username in self.existing

    def _issue(self, name: str, username: str) -> TokenResult:
        self._call(name, username)
        if username in self.token_failures:
            return TokenResult(False, error=self.token_failures[username])
        self._issued += 1
        token = f"tok-{username}-{self._issued}"
        self.tokens[username] = token
        return TokenResult(True, token=token)

    def generate_instance_admin_token(self, username: str) -> TokenResult:
        return self._issue("generate", username)

    def regenerate_instance_admin_token(self, username: str) -> TokenResult:
        return self._issue("regenerate", username)

    def verify_instance_admin_token(self, username: str, token: str) -> ApiResult:
        self._call("verify", (username, token))
        if self.tokens.get(username) == token:
            return ApiResult(True)
        return ApiResult(False, "Invalid or expired token")

    def validate_portainer(self, url, auth_type, *, api_key=None, username=None, password=None) -> ApiResult:
        self._call("validate_portainer", (url, auth_type))
        return self.portainer.get(url, ApiResult(True))

    def validate_dockerhub(self, username: str, token: str) -> ApiResult:
        self._call("validate_dockerhub", username)
        return self.dockerhub

    def validate_discord_webhook(self, webhook_url: str) -> ApiResult:
        self._call("validate_discord", webhook_url)
        return self.discord.get(webhook_url, ApiResult(True))

    def create_user_with_config(self, payload: dict[str, Any]) -> CreateUserResult:
        username = payload["userData"]["username"]
        self._call("create", username)
        self.payloads.append(payload)
        outcome = self.create.get(username, CreateUserResult(True))
        if isinstance(outcome, ApiError):
            raise outcome
        return outcome


@pytest.fixture()
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("DASHBOARD_API_URL", raising=False)
        monkeypatch.delenv("DASHBOARD_API_TIMEOUT", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """api:
  base_url: http://dashboard.local:3000
  timeout_seconds: 5
import:
  default_role: Administrator
  min_password_length: 8
  validation_workers: 4
logs_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_users() -> dict[str, Any]:
    return {
        "users": [
            {"username": "alice", "email": "alice@example.com", "instanceAdmin": True},
            {
                "username": "bob",
                "role": "Viewer",
                "portainerInstances": [
                    {"url": "https://p1.example.com", "name": "prod", "auth_type": "apikey"},
                    {"url": "https://p2.example.com", "name": "staging", "auth_type": "password"},
                ],
                "dockerHubCredentials": {"username": "bobhub"},
                "discordWebhooks": [{"id": 7, "server_name": "ops"}],
                "trackedApps": [{"name": "grafana"}],
            },
        ]
    }


@pytest.fixture()
def write_import_file(temp_workdir: Path):
    def _write(data: Any, name: str = "users.json") -> Path:
        path = temp_workdir / "data" / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write
