from __future__ import annotations

from ..models.import_record import UserImportRecord
from ..models.steps import StepType

"""Step-Plan Builder."""

__all__ = ["build_step_plan"]


def build_step_plan(record: UserImportRecord) -> list[StepType]:
    """Return the ordered steps ``record`` has to go through.

    Pure and deterministic: the controller calls it again whenever it needs
    a user's plan (for example when navigating back to a previous user).
    PASSWORD is always present exactly once, so the plan is never empty.
    """
    steps: list[StepType] = []
    if record.instance_admin:
        steps.append(StepType.INSTANCE_ADMIN_VERIFICATION)
    steps.append(StepType.PASSWORD)
    if record.has_portainer:
        steps.append(StepType.PORTAINER)
    if record.has_dockerhub:
        steps.append(StepType.DOCKERHUB)
    if record.has_discord:
        steps.append(StepType.DISCORD)
    return steps
