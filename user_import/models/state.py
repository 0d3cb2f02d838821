from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .credentials import CredentialBundle, seed_credentials
from .error_key import ErrorKey, StepErrors
from .import_record import UserImportRecord
from .steps import StepType

"""In-memory import session state.

Nothing in this module is ever persisted or serialized. A
``PerUserImportState`` holds transient secrets (password, verification
token, third-party credentials) that are wiped by ``finalize()`` right after
the user's commit call.
"""

__all__ = [
    "VerificationStatus",
    "PerUserImportState",
    "BatchState",
]


class VerificationStatus(str, Enum):
    UNATTEMPTED = "unattempted"
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass
class PerUserImportState:
    """Live state for one user while it walks its step plan.

    The plan itself is not stored; it is always re-derived from the import
    record by the step-plan builder.
    """
    username: str
    credentials: CredentialBundle
    current_step_index: int = 0
    skipped_steps: set[StepType] = field(default_factory=set)
    step_errors: StepErrors = field(default_factory=dict)
    verification_status: VerificationStatus = VerificationStatus.UNATTEMPTED
    verification_token: str | None = field(default=None, repr=False)
    entered_token: str = field(default="", repr=False)
    password: str = field(default="", repr=False)
    password_confirmation: str | None = field(default=None, repr=False)
    finalized: bool = False

    @classmethod
    def for_record(cls, record: UserImportRecord) -> PerUserImportState:
        return cls(username=record.username, credentials=seed_credentials(record))

    def is_skipped(self, step: StepType) -> bool:
        return step in self.skipped_steps

    def ordered_skipped_steps(self, plan: list[StepType]) -> list[StepType]:
        """Skipped steps in plan order (stable for the commit payload)."""
        return [s for s in plan if s in self.skipped_steps]

    def errors_for(self, step: StepType) -> StepErrors:
        return {k: v for k, v in self.step_errors.items() if k.step == step}

    def clear_errors(self, step: StepType) -> None:
        for key in [k for k in self.step_errors if k.step == step]:
            del self.step_errors[key]

    def set_errors(self, step: StepType, errors: StepErrors) -> None:
        self.clear_errors(step)
        self.step_errors.update(errors)

    def set_step_error(self, step: StepType, message: str) -> None:
        self.step_errors[ErrorKey.for_step(step)] = message

    def finalize(self) -> None:
        """Wipe transient secrets once the commit call has resolved (or the user was skipped)."""
        self.password = ""
        self.password_confirmation = None
        self.verification_token = None
        self.entered_token = ""
        self.credentials.wipe_secrets()
        self.finalized = True


@dataclass
class BatchState:
    """Whole-batch state; created on confirmation, discarded on close or completion."""
    users: list[UserImportRecord]
    current_user_index: int = 0
    user_states: dict[str, PerUserImportState] = field(default_factory=dict)
    imported_usernames: list[str] = field(default_factory=list)
    import_errors: list[str] = field(default_factory=list)
    finished: bool = False

    @property
    def current_user(self) -> UserImportRecord:
        return self.users[self.current_user_index]

    @property
    def total_users(self) -> int:
        return len(self.users)

    @property
    def is_last_user(self) -> bool:
        return self.current_user_index == len(self.users) - 1

    def wipe(self) -> None:
        """Drop every per-user session (and with it every transient secret)."""
        for state in self.user_states.values():
            state.finalize()
        self.user_states.clear()
