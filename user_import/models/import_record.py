from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Imported user records.

A ``UserImportRecord`` is the canonical, normalized form of one user entry
from an import file. It is treated as immutable for the lifetime of a batch;
the step plan and the credential skeleton are both derived from it.
"""

__all__ = [
    "UserImportRecord",
    "ImportFile",
]


@dataclass(frozen=True)
class UserImportRecord:
    """One user entry from the import file.

    Attributes:
        username: Required, unique within the batch
        email: Optional contact address
        role: Requested role; None means the configured default role
        instance_admin: True when the file requested the instance admin tier
        portainer_instances: Attached Portainer instance configs (raw dicts)
        docker_hub_credentials: Attached Docker Hub config (raw dict) or None
        discord_webhooks: Attached Discord webhook configs (raw dicts)
        tracked_apps: Attached tracked app configs, passed through at commit
        tracked_images: Attached tracked image configs, passed through at commit
    """
    username: str
    email: str | None = None
    role: str | None = None
    instance_admin: bool = False
    portainer_instances: list[dict[str, Any]] = field(default_factory=list)
    docker_hub_credentials: dict[str, Any] | None = None
    discord_webhooks: list[dict[str, Any]] = field(default_factory=list)
    tracked_apps: list[dict[str, Any]] = field(default_factory=list)
    tracked_images: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_portainer(self) -> bool:
        return len(self.portainer_instances) > 0

    @property
    def has_dockerhub(self) -> bool:
        return bool(self.docker_hub_credentials)

    @property
    def has_discord(self) -> bool:
        return len(self.discord_webhooks) > 0


@dataclass(frozen=True)
class ImportFile:
    """Normalized import file: users in file order."""
    users: list[UserImportRecord]
    source: str = ""

    @property
    def usernames(self) -> list[str]:
        return [u.username for u in self.users]

    @property
    def instance_admin_users(self) -> list[str]:
        """Usernames that request the instance admin tier (shown before the batch starts)."""
        return [u.username for u in self.users if u.instance_admin]

    def __len__(self) -> int:
        return len(self.users)
