from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import requests

from user_import.client.api import DashboardApiClient
from user_import.importfile.normalizer import load_import_file
from user_import.logging.error_log import ErrorLogBuffer
from user_import.models.config_models import ApiConfig
from user_import.services.controller import ImportBatchController, TransitionStatus

"""Whole batch through the real HTTP client with a mocked requests session.

Checks the wire paths and bodies the controller produces, including that
HTTP error statuses with JSON bodies are read as ordinary results.
"""

HOOK = "https://discord.com/api/webhooks/99/abcDEF"


class RoutedSession:
    """Answers ``Session.request`` from a path -> handler table."""

    def __init__(self) -> None:
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.created: list[dict[str, Any]] = []

    def _resp(self, status: int, body: dict[str, Any]) -> MagicMock:
        resp = MagicMock()
        resp.status_code = status
        resp.json.return_value = body
        return resp

    def request(self, method, url, json=None, params=None, timeout=None, verify=None):
        path = url.split("://", 1)[1].split("/", 1)[1]
        path = "/" + path
        self.requests.append((method, path, json if json is not None else params))
        if path == "/api/auth/check-user-exists":
            if params["username"] == "flaky":
                raise requests.Timeout("read timed out")
            return self._resp(200, {"success": True, "exists": False})
        if path == "/api/auth/generate-instance-admin-token":
            return self._resp(200, {"success": True, "token": "srv-token"})
        if path == "/api/auth/verify-instance-admin-token":
            if json["token"] == "srv-token":
                return self._resp(200, {"success": True})
            return self._resp(401, {"success": False, "error": "Invalid token"})
        if path == "/api/discord/test":
            return self._resp(200, {"success": True})
        if path == "/api/auth/create-user-with-config":
            self.created.append(json)
            if json["userData"]["username"] == "flaky":
                return self._resp(409, {"success": True, "skipped": True, "message": 'User "flaky" already exists'})
            return self._resp(201, {"success": True})
        return self._resp(404, {"success": False, "error": "not found"})

    def close(self) -> None:
        pass


def test_batch_over_http(write_import_file, temp_workdir: Path):
    path = write_import_file(
        {
            "users": [
                {"username": "root", "instanceAdmin": "yes", "discordWebhooks": [{"id": 1, "server_name": "ops"}]},
                {"username": "flaky"},
            ]
        }
    )
    session = RoutedSession()
    log = ErrorLogBuffer(temp_workdir / "logs")
    with DashboardApiClient(ApiConfig(base_url="http://dash:3000"), session=session) as api:
        controller = ImportBatchController(api, error_log=log)
        controller.start(load_import_file(path))

        controller.enter_verification_token("guess")
        assert controller.next().message == "Invalid token"
        controller.enter_verification_token("srv-token")
        controller.next()
        controller.enter_password("longenough", "longenough")
        controller.next()
        controller.update_discord(0, HOOK)
        assert controller.next().status is TransitionStatus.USER_COMMITTED

        controller.enter_password("longenough", "longenough")
        result = controller.next()

    assert result.status is TransitionStatus.COMPLETED
    assert result.summary.imported_usernames == ["root"]
    assert result.summary.errors == ['User "flaky" already exists']
    assert [r.error_type for r in log.records] == ["ALREADY_EXISTS"]

    root_payload = session.created[0]
    assert root_payload["userData"]["instanceAdmin"] is True
    assert root_payload["verificationToken"] == "srv-token"
    assert root_payload["credentials"]["discordWebhooks"] == [{"id": 1, "serverName": "ops", "webhookUrl": HOOK}]
    assert ("POST", "/api/discord/test", {"webhookUrl": HOOK}) in session.requests
    assert "Authorization" not in session.headers
