from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from user_import.client.api import (
    CHECK_USER_EXISTS,
    CREATE_USER,
    VALIDATE_PORTAINER,
    VERIFY_TOKEN,
    DashboardApiClient,
)
from user_import.errors import ApiError
from user_import.models.config_models import ApiConfig


def _response(status: int, body) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture()
def session() -> MagicMock:
    s = MagicMock(spec=requests.Session)
    s.headers = {"Authorization": "Bearer leftover"}
    return s


@pytest.fixture()
def client(session) -> DashboardApiClient:
    return DashboardApiClient(ApiConfig(base_url="http://dash/", timeout_seconds=7), session=session)


def test_no_authorization_header(client, session):
    assert "Authorization" not in session.headers
    assert session.headers["Content-Type"] == "application/json"


def test_check_user_exists(client, session):
    session.request.return_value = _response(200, {"success": True, "exists": True})
    assert client.check_user_exists("alice") is True
    session.request.assert_called_once_with(
        "GET",
        f"http://dash{CHECK_USER_EXISTS}",
        json=None,
        params={"username": "alice"},
        timeout=7,
        verify=True,
    )


def test_generate_token(client, session):
    session.request.return_value = _response(200, {"success": True, "token": "abc"})
    result = client.generate_instance_admin_token("alice")
    assert result.success and result.token == "abc"
    assert "abc" not in repr(result)


def test_error_status_with_json_body_is_a_result(client, session):
    session.request.return_value = _response(400, {"success": False, "error": "Invalid token"})
    result = client.verify_instance_admin_token("alice", "nope")
    assert not result.success
    assert result.error == "Invalid token"
    assert session.request.call_args.args[1].endswith(VERIFY_TOKEN)
    assert session.request.call_args.kwargs["json"] == {"username": "alice", "token": "nope"}


def test_portainer_body_by_auth_type(client, session):
    session.request.return_value = _response(200, {"success": True})
    client.validate_portainer("https://p", "apikey", api_key="k")
    assert session.request.call_args.kwargs["json"] == {"url": "https://p", "authType": "apikey", "apiKey": "k"}
    client.validate_portainer("https://p", "password", username="u", password="pw")
    assert session.request.call_args.kwargs["json"] == {
        "url": "https://p", "authType": "password", "username": "u", "password": "pw",
    }
    assert session.request.call_args.args[1].endswith(VALIDATE_PORTAINER)


def test_create_user_skipped(client, session):
    session.request.return_value = _response(200, {"success": True, "skipped": True, "message": "exists"})
    result = client.create_user_with_config({"userData": {"username": "a"}})
    assert result.success and result.skipped and result.message == "exists"
    assert session.request.call_args.args[1].endswith(CREATE_USER)


def test_transport_error_raises_api_error(client, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ApiError):
        client.validate_dockerhub("u", "t")


def test_non_json_body_raises_api_error(client, session):
    session.request.return_value = _response(502, ValueError("no json"))
    with pytest.raises(ApiError) as e:
        client.validate_discord_webhook("https://discord.com/api/webhooks/1/a")
    assert e.value.status_code == 502


def test_non_object_body_raises_api_error(client, session):
    session.request.return_value = _response(200, ["unexpected"])
    with pytest.raises(ApiError):
        client.check_user_exists("a")


def test_context_manager_closes_session(session):
    with DashboardApiClient(ApiConfig(base_url="http://dash"), session=session):
        pass
    session.close.assert_called_once()
