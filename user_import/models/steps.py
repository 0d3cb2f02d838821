from __future__ import annotations

from enum import Enum

"""Step vocabulary for the per-user import flow."""

__all__ = [
    "StepType",
    "SKIPPABLE_STEPS",
    "REMOTE_VALIDATED_STEPS",
]


class StepType(str, Enum):
    """One step of a user's import plan. Values are the wire identifiers."""

    INSTANCE_ADMIN_VERIFICATION = "instance_admin_verification"
    PASSWORD = "password"
    PORTAINER = "portainer"
    DOCKERHUB = "dockerhub"
    DISCORD = "discord"

    def __str__(self) -> str:
        return self.value


# PASSWORD は必須 (skip 不可)
SKIPPABLE_STEPS: frozenset[StepType] = frozenset(
    {
        StepType.INSTANCE_ADMIN_VERIFICATION,
        StepType.PORTAINER,
        StepType.DOCKERHUB,
        StepType.DISCORD,
    }
)

REMOTE_VALIDATED_STEPS: frozenset[StepType] = frozenset(
    {StepType.PORTAINER, StepType.DOCKERHUB, StepType.DISCORD}
)
