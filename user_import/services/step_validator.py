from __future__ import annotations

import re

from ..models.config_models import DEFAULT_MIN_PASSWORD_LENGTH
from ..models.credentials import AUTH_TYPE_API_KEY, AUTH_TYPE_PASSWORD, CredentialBundle
from ..models.error_key import ErrorKey, StepErrors
from ..models.state import PerUserImportState
from ..models.steps import StepType

"""Step Validator (local, synchronous).

Every function here is pure: same input, same error map. A step with no
applicable items never produces errors.
"""

__all__ = [
    "DISCORD_WEBHOOK_PATTERN",
    "validate_discord_webhook_url",
    "validate_password_step",
    "validate_portainer_step",
    "validate_dockerhub_step",
    "validate_discord_step",
    "validate_step",
]

DISCORD_WEBHOOK_PATTERN = re.compile(r"^https://discord\.com/api/webhooks/\d+/[A-Za-z0-9_-]+$")


def validate_discord_webhook_url(url: str | None) -> str | None:
    """Return an error message for ``url``, or None when it is well formed."""
    if not url or not url.strip():
        return "Webhook URL is required"
    if not DISCORD_WEBHOOK_PATTERN.match(url.strip()):
        return "Invalid webhook URL format. Expected: https://discord.com/api/webhooks/{id}/{token}"
    return None


def validate_password_step(
    password: str | None,
    confirmation: str | None = None,
    min_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
) -> StepErrors:
    errors: StepErrors = {}
    if not password or len(password) < min_length:
        errors[ErrorKey(StepType.PASSWORD, field="password")] = (
            f"Password must be at least {min_length} characters long"
        )
    # confirmation はローカル比較のみ (commit には送らない)
    if confirmation is not None and confirmation != password:
        errors[ErrorKey(StepType.PASSWORD, field="confirmation")] = "Passwords do not match"
    return errors


def validate_portainer_step(credentials: CredentialBundle) -> StepErrors:
    errors: StepErrors = {}
    for index, cred in enumerate(credentials.portainer_instances):
        if cred.auth_type == AUTH_TYPE_API_KEY:
            if not cred.api_key:
                errors[ErrorKey(StepType.PORTAINER, index, "api_key")] = "API key is required"
        elif cred.auth_type == AUTH_TYPE_PASSWORD:
            if not cred.username:
                errors[ErrorKey(StepType.PORTAINER, index, "username")] = "Username is required"
            if not cred.password:
                errors[ErrorKey(StepType.PORTAINER, index, "password")] = "Password is required"
    return errors


def validate_dockerhub_step(credentials: CredentialBundle) -> StepErrors:
    """All-or-nothing: both fields empty is valid (intentionally unset)."""
    errors: StepErrors = {}
    hub = credentials.docker_hub
    if hub.username or hub.token:
        if not hub.username:
            errors[ErrorKey(StepType.DOCKERHUB, field="username")] = "Username is required"
        if not hub.token:
            errors[ErrorKey(StepType.DOCKERHUB, field="token")] = "Token is required"
    return errors


def validate_discord_step(credentials: CredentialBundle) -> StepErrors:
    errors: StepErrors = {}
    for index, cred in enumerate(credentials.discord_webhooks):
        message = validate_discord_webhook_url(cred.webhook_url)
        if message:
            errors[ErrorKey(StepType.DISCORD, index, "webhook_url")] = message
    return errors


def validate_step(
    step: StepType,
    state: PerUserImportState,
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
) -> StepErrors:
    """Dispatch to the local validator for ``step``.

    INSTANCE_ADMIN_VERIFICATION has no local checks; it is gated by the
    verification protocol instead.
    """
    if step is StepType.PASSWORD:
        return validate_password_step(state.password, state.password_confirmation, min_password_length)
    if step is StepType.PORTAINER:
        return validate_portainer_step(state.credentials)
    if step is StepType.DOCKERHUB:
        return validate_dockerhub_step(state.credentials)
    if step is StepType.DISCORD:
        return validate_discord_step(state.credentials)
    return {}
