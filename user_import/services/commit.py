from __future__ import annotations

import logging
from typing import Any

from ..client.api import CreateUserResult, ImportApi
from ..errors import ApiError
from ..models.config_models import DEFAULT_ROLE
from ..models.import_record import UserImportRecord
from ..models.processing_result import CommitResult, CommitStatus
from ..models.state import PerUserImportState
from ..models.steps import StepType
from .verification import grants_instance_admin

"""User commit: payload construction and outcome classification.

The payload carries the *gated* instance admin flag and nothing belonging to
a skipped step: neither its attached configuration nor its credentials.
"""

__all__ = [
    "build_commit_payload",
    "classify_create_result",
    "commit_user",
]

logger = logging.getLogger(__name__)

COMMIT_FALLBACK = "Failed to create user"

# configData のキー -> そのデータを扱うステップ
_CONFIG_STEP = {
    "portainerInstances": StepType.PORTAINER,
    "dockerHubCredentials": StepType.DOCKERHUB,
    "discordWebhooks": StepType.DISCORD,
}


def _config_data(record: UserImportRecord, state: PerUserImportState) -> dict[str, Any]:
    attached: dict[str, Any] = {
        "portainerInstances": record.portainer_instances or None,
        "dockerHubCredentials": record.docker_hub_credentials,
        "discordWebhooks": record.discord_webhooks or None,
        "trackedApps": record.tracked_apps or None,
        "trackedImages": record.tracked_images or None,
    }
    config: dict[str, Any] = {}
    for key, value in attached.items():
        if value is None:
            continue
        step = _CONFIG_STEP.get(key)
        if step is not None and state.is_skipped(step):
            continue
        config[key] = value
    return config


def _credentials(state: PerUserImportState, plan: list[StepType]) -> dict[str, Any]:
    creds = state.credentials
    active = [s for s in plan if not state.is_skipped(s)]
    out: dict[str, Any] = {}
    if StepType.PORTAINER in active and creds.portainer_instances:
        out["portainerInstances"] = [c.to_payload() for c in creds.portainer_instances]
    if StepType.DOCKERHUB in active and not creds.docker_hub.is_empty:
        out["dockerHub"] = creds.docker_hub.to_payload()
    if StepType.DISCORD in active and creds.discord_webhooks:
        out["discordWebhooks"] = [c.to_payload() for c in creds.discord_webhooks]
    return out


def build_commit_payload(
    record: UserImportRecord,
    state: PerUserImportState,
    plan: list[StepType],
    default_role: str = DEFAULT_ROLE,
) -> dict[str, Any]:
    """Build the create-user request body for one user."""
    config = _config_data(record, state)
    credentials = _credentials(state, plan)
    return {
        "userData": {
            "username": record.username,
            "password": state.password,
            "email": record.email,
            "role": record.role or default_role,
            "instanceAdmin": grants_instance_admin(record, state),
        },
        "configData": config or None,
        "credentials": credentials or None,
        "skippedSteps": [s.value for s in state.ordered_skipped_steps(plan)],
        "verificationToken": state.verification_token or None,
    }


def classify_create_result(username: str, result: CreateUserResult) -> CommitResult:
    if result.success and result.skipped:
        message = result.message or f'User "{username}" already exists'
        return CommitResult(username, CommitStatus.SKIPPED_DUPLICATE, message)
    if result.success:
        return CommitResult(username, CommitStatus.CREATED)
    return CommitResult(username, CommitStatus.FAILED, f'User "{username}": {result.error or COMMIT_FALLBACK}')


def commit_user(
    api: ImportApi,
    record: UserImportRecord,
    state: PerUserImportState,
    plan: list[StepType],
    default_role: str = DEFAULT_ROLE,
) -> CommitResult:
    """Send the commit call and classify the outcome. Never raises ``ApiError``."""
    payload = build_commit_payload(record, state, plan, default_role)
    logger.debug(
        f"user={record.username} commit instanceAdmin={payload['userData']['instanceAdmin']} "
        f"skipped={payload['skippedSteps']}"
    )
    try:
        result = api.create_user_with_config(payload)
    except ApiError as e:
        return CommitResult(record.username, CommitStatus.FAILED, f'User "{record.username}": {e.error or COMMIT_FALLBACK}')
    return classify_create_result(record.username, result)
