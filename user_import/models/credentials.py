from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .import_record import UserImportRecord

"""Credential bundle collected from the operator during import.

Each entry is seeded with the identifying fields found in the import record
and empty secret fields. Secrets are excluded from ``repr`` so a bundle can be
logged or printed while debugging without leaking anything.
"""

__all__ = [
    "AUTH_TYPE_API_KEY",
    "AUTH_TYPE_PASSWORD",
    "PortainerCredential",
    "DockerHubCredential",
    "DiscordWebhookCredential",
    "CredentialBundle",
    "seed_credentials",
]

AUTH_TYPE_API_KEY = "apikey"
AUTH_TYPE_PASSWORD = "password"


@dataclass
class PortainerCredential:
    url: str
    name: str
    auth_type: str = AUTH_TYPE_API_KEY
    username: str = ""
    password: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)

    @property
    def display_name(self) -> str:
        return self.name or "Unknown"

    def to_payload(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "auth_type": self.auth_type,
            "username": self.username,
            "password": self.password,
            "apiKey": self.api_key,
        }


@dataclass
class DockerHubCredential:
    username: str = ""
    token: str = field(default="", repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.username and not self.token

    def to_payload(self) -> dict[str, Any]:
        return {"username": self.username, "token": self.token}


@dataclass
class DiscordWebhookCredential:
    id: Any = None
    server_name: str = ""
    webhook_url: str = field(default="", repr=False)

    def display_name(self, index: int) -> str:
        return self.server_name or f"Webhook {index + 1}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serverName": self.server_name,
            "webhookUrl": self.webhook_url,
        }


@dataclass
class CredentialBundle:
    """Per-user third-party secrets (Portainer, Docker Hub, Discord)."""
    portainer_instances: list[PortainerCredential] = field(default_factory=list)
    docker_hub: DockerHubCredential = field(default_factory=DockerHubCredential)
    discord_webhooks: list[DiscordWebhookCredential] = field(default_factory=list)

    def wipe_secrets(self) -> None:
        """Blank every secret field; identifying fields are kept."""
        for inst in self.portainer_instances:
            inst.api_key = ""
            inst.password = ""
        self.docker_hub.token = ""
        for hook in self.discord_webhooks:
            hook.webhook_url = ""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def seed_credentials(record: UserImportRecord) -> CredentialBundle:
    """Build the initial credential skeleton for ``record``.

    Identifying fields are copied from the import record; every secret field
    starts empty and must be entered by the operator.
    """
    portainer = [
        PortainerCredential(
            url=_text(inst.get("url")),
            name=_text(inst.get("name")),
            auth_type=_text(inst.get("auth_type")) or AUTH_TYPE_API_KEY,
        )
        for inst in record.portainer_instances
    ]
    hub_cfg = record.docker_hub_credentials or {}
    docker_hub = DockerHubCredential(username=_text(hub_cfg.get("username")))
    discord = [
        DiscordWebhookCredential(
            id=hook.get("id"),
            server_name=_text(hook.get("server_name") or hook.get("serverName")),
        )
        for hook in record.discord_webhooks
    ]
    return CredentialBundle(
        portainer_instances=portainer,
        docker_hub=docker_hub,
        discord_webhooks=discord,
    )
