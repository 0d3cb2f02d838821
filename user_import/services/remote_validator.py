from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..client.api import ApiResult, ImportApi
from ..errors import ApiError
from ..models.config_models import DEFAULT_VALIDATION_WORKERS
from ..models.credentials import AUTH_TYPE_API_KEY
from ..models.state import PerUserImportState
from ..models.steps import REMOTE_VALIDATED_STEPS, StepType

"""Remote Credential Validator.

One external call per item (Portainer instance, Docker Hub pair, Discord
webhook). Items of a step are validated concurrently on a thread pool and
joined before anything is decided; the step then fails with the first
failing item *by original index*, so the reported cause is deterministic.
"""

__all__ = [
    "RemoteValidation",
    "ItemCheck",
    "RemoteCredentialValidator",
]

logger = logging.getLogger(__name__)

PORTAINER_FALLBACK = "Authentication failed"
DOCKERHUB_FALLBACK = "Docker Hub authentication failed"
DISCORD_FALLBACK = "Webhook test failed"


@dataclass(frozen=True)
class RemoteValidation:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class ItemCheck:
    """One item to validate: a label for operator context and the call to make."""
    label: str
    call: Callable[[], ApiResult]
    fallback: str


def _run_check(check: ItemCheck) -> RemoteValidation:
    try:
        result = check.call()
    except ApiError as e:
        # 通信エラーも認証拒否と同じ形で返す
        return RemoteValidation(False, f"{check.label}: {e.error or check.fallback}")
    if result.success:
        return RemoteValidation(True)
    return RemoteValidation(False, f"{check.label}: {result.error or check.fallback}")


class RemoteCredentialValidator:
    def __init__(self, api: ImportApi, max_workers: int = DEFAULT_VALIDATION_WORKERS) -> None:
        self.api = api
        self.max_workers = max(1, max_workers)

    def build_checks(self, step: StepType, state: PerUserImportState) -> list[ItemCheck]:
        """Items of ``step`` that need a remote call, in original order."""
        creds = state.credentials
        checks: list[ItemCheck] = []
        if step is StepType.PORTAINER:
            for cred in creds.portainer_instances:
                if cred.auth_type == AUTH_TYPE_API_KEY:
                    def call(c=cred) -> ApiResult:
                        return self.api.validate_portainer(c.url, c.auth_type, api_key=c.api_key)
                else:
                    def call(c=cred) -> ApiResult:
                        return self.api.validate_portainer(
                            c.url, c.auth_type, username=c.username, password=c.password
                        )
                label = f'Portainer instance "{cred.display_name}" ({cred.url or "no URL"})'
                checks.append(ItemCheck(label, call, PORTAINER_FALLBACK))
        elif step is StepType.DOCKERHUB:
            hub = creds.docker_hub
            if hub.username and hub.token:
                checks.append(
                    ItemCheck(
                        f'Docker Hub account "{hub.username}"',
                        lambda: self.api.validate_dockerhub(hub.username, hub.token),
                        DOCKERHUB_FALLBACK,
                    )
                )
        elif step is StepType.DISCORD:
            for index, hook in enumerate(creds.discord_webhooks):
                if not hook.webhook_url:
                    continue
                checks.append(
                    ItemCheck(
                        f'Discord webhook "{hook.display_name(index)}"',
                        lambda url=hook.webhook_url: self.api.validate_discord_webhook(url),
                        DISCORD_FALLBACK,
                    )
                )
        return checks

    def validate(self, step: StepType, state: PerUserImportState) -> RemoteValidation:
        """Validate every item of ``step`` and reduce to a single pass/fail.

        Never called for skipped steps; PASSWORD and the verification step
        are not remotely validated.
        """
        if step not in REMOTE_VALIDATED_STEPS or state.is_skipped(step):
            return RemoteValidation(True)
        checks = self.build_checks(step, state)
        if not checks:
            return RemoteValidation(True)

        logger.debug(f"user={state.username} step={step} remote checks={len(checks)}")
        workers = min(self.max_workers, len(checks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="credcheck") as pool:
            # map() は入力順で結果を返す -> 最初の失敗 (index 順) を採用
            results = list(pool.map(_run_check, checks))

        for result in results:
            if not result.success:
                logger.info(f"user={state.username} step={step} remote validation failed: {result.error}")
                return result
        return RemoteValidation(True)
