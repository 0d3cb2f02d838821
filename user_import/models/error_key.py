from __future__ import annotations

from dataclasses import dataclass

from .steps import StepType

"""Structured keys for per-field and per-step error maps."""

__all__ = [
    "ErrorKey",
    "StepErrors",
]


@dataclass(frozen=True)
class ErrorKey:
    """Identifies what an error message is attached to.

    ``index`` and ``field`` are None for step-level errors (for example a
    remote validation failure that applies to the whole step).
    """
    step: StepType
    index: int | None = None
    field: str | None = None

    @classmethod
    def for_step(cls, step: StepType) -> ErrorKey:
        return cls(step=step)

    @property
    def is_step_level(self) -> bool:
        return self.index is None and self.field is None

    def __str__(self) -> str:
        parts = [self.step.value]
        if self.index is not None:
            parts.append(str(self.index))
        if self.field is not None:
            parts.append(self.field)
        return ".".join(parts)


StepErrors = dict[ErrorKey, str]
