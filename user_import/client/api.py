from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from ..errors import ApiError
from ..models.config_models import ApiConfig

"""Dashboard API client.

Thin wrapper over the dashboard endpoints the import flow depends on. Each
call returns a small result object; transport failures (connection errors,
timeouts, unparsable bodies) raise ``ApiError`` and it is up to the caller
to fold them into a step or commit result.

Requests are sent without an Authorization header. Secrets in request
bodies are never logged.
"""

__all__ = [
    "ApiResult",
    "TokenResult",
    "CreateUserResult",
    "ImportApi",
    "DashboardApiClient",
]

logger = logging.getLogger(__name__)

CHECK_USER_EXISTS = "/api/auth/check-user-exists"
GENERATE_TOKEN = "/api/auth/generate-instance-admin-token"
REGENERATE_TOKEN = "/api/auth/regenerate-instance-admin-token"
VERIFY_TOKEN = "/api/auth/verify-instance-admin-token"
VALIDATE_PORTAINER = "/api/portainer/instances/validate"
VALIDATE_DOCKERHUB = "/api/docker-hub/credentials/validate"
TEST_DISCORD_WEBHOOK = "/api/discord/test"
CREATE_USER = "/api/auth/create-user-with-config"


@dataclass(frozen=True)
class ApiResult:
    """Uniform pass/fail/reason result."""
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class TokenResult:
    """Generate / regenerate result. ``token`` is an opaque handle, never shown."""
    success: bool
    token: str | None = field(default=None, repr=False)
    error: str | None = None


@dataclass(frozen=True)
class CreateUserResult:
    success: bool
    skipped: bool = False
    message: str | None = None
    error: str | None = None


class ImportApi(Protocol):
    """Collaborator contract consumed by the import services."""

    def check_user_exists(self, username: str) -> bool: ...

    def generate_instance_admin_token(self, username: str) -> TokenResult: ...

    def regenerate_instance_admin_token(self, username: str) -> TokenResult: ...

    def verify_instance_admin_token(self, username: str, token: str) -> ApiResult: ...

    def validate_portainer(
        self,
        url: str,
        auth_type: str,
        *,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> ApiResult: ...

    def validate_dockerhub(self, username: str, token: str) -> ApiResult: ...

    def validate_discord_webhook(self, webhook_url: str) -> ApiResult: ...

    def create_user_with_config(self, payload: dict[str, Any]) -> CreateUserResult: ...


class DashboardApiClient:
    """``requests``-based implementation of ``ImportApi``."""

    def __init__(self, config: ApiConfig, session: requests.Session | None = None) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout_seconds
        self.verify_tls = config.verify_tls
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.session.headers.pop("Authorization", None)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> DashboardApiClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=json_body,
                params=params,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.RequestException as e:
            logger.debug(f"{method} {path} transport error: {e.__class__.__name__}")
            raise ApiError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                f"{method} {path} returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise ApiError(
                f"{method} {path} returned an unexpected response body",
                status_code=response.status_code,
            )
        # 4xx/5xx でも JSON body があれば通常の結果として扱う (server の error を保持)
        logger.debug(f"{method} {path} -> HTTP {response.status_code} success={body.get('success')}")
        return body

    @staticmethod
    def _error(body: dict[str, Any]) -> str | None:
        err = body.get("error")
        return str(err) if err else None

    def check_user_exists(self, username: str) -> bool:
        body = self._request("GET", CHECK_USER_EXISTS, params={"username": username})
        return bool(body.get("success")) and bool(body.get("exists"))

    def _token(self, path: str, username: str) -> TokenResult:
        body = self._request("POST", path, json_body={"username": username})
        token = body.get("token")
        return TokenResult(
            success=bool(body.get("success")) and bool(token),
            token=str(token) if token else None,
            error=self._error(body),
        )

    def generate_instance_admin_token(self, username: str) -> TokenResult:
        return self._token(GENERATE_TOKEN, username)

    def regenerate_instance_admin_token(self, username: str) -> TokenResult:
        return self._token(REGENERATE_TOKEN, username)

    def verify_instance_admin_token(self, username: str, token: str) -> ApiResult:
        body = self._request("POST", VERIFY_TOKEN, json_body={"username": username, "token": token})
        return ApiResult(success=bool(body.get("success")), error=self._error(body))

    def validate_portainer(
        self,
        url: str,
        auth_type: str,
        *,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> ApiResult:
        data: dict[str, Any] = {"url": url, "authType": auth_type}
        if auth_type == "apikey":
            data["apiKey"] = api_key
        else:
            data["username"] = username
            data["password"] = password
        body = self._request("POST", VALIDATE_PORTAINER, json_body=data)
        return ApiResult(success=bool(body.get("success")), error=self._error(body))

    def validate_dockerhub(self, username: str, token: str) -> ApiResult:
        body = self._request("POST", VALIDATE_DOCKERHUB, json_body={"username": username, "token": token})
        return ApiResult(success=bool(body.get("success")), error=self._error(body))

    def validate_discord_webhook(self, webhook_url: str) -> ApiResult:
        body = self._request("POST", TEST_DISCORD_WEBHOOK, json_body={"webhookUrl": webhook_url})
        return ApiResult(success=bool(body.get("success")), error=self._error(body))

    def create_user_with_config(self, payload: dict[str, Any]) -> CreateUserResult:
        body = self._request("POST", CREATE_USER, json_body=payload)
        message = body.get("message")
        return CreateUserResult(
            success=bool(body.get("success")),
            skipped=bool(body.get("skipped")),
            message=str(message) if message else None,
            error=self._error(body),
        )
