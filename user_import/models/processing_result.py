from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Commit outcomes and the batch summary.

``CommitResult`` is what one user-commit call resolves to; ``UserOutcome``
is the aggregator's per-user record of it (with timing), and
``ImportSummary`` is the final, immutable result of a batch.
"""


class CommitStatus(str, Enum):
    CREATED = "created"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_BY_OPERATOR = "skipped_by_operator"  # commit されない
    FAILED = "failed"


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a single user-commit call."""
    username: str
    status: CommitStatus
    message: str = ""  # 失敗理由 / already exists メッセージ

    @property
    def created(self) -> bool:
        return self.status is CommitStatus.CREATED


@dataclass(frozen=True)
class UserOutcome:
    """Per-user result kept by the aggregator."""
    username: str
    status: CommitStatus
    message: str  # 成功時は空文字
    elapsed_seconds: float  # ユーザーが current になってから commit 完了まで


@dataclass(frozen=True)
class ImportSummary:
    """Aggregated result of a whole batch."""
    created: int
    skipped_duplicates: int
    failed: int
    imported_usernames: list[str]
    errors: list[str]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    outcomes: list[UserOutcome] = field(default_factory=list)
    skipped_by_operator: int = 0

    @property
    def total_users(self) -> int:
        return len(self.outcomes)

    @property
    def skipped(self) -> int:
        """Users not created for a non-error reason (duplicate or operator skip)."""
        return self.skipped_duplicates + self.skipped_by_operator

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def all_created(self) -> bool:
        return self.total_users > 0 and self.created == self.total_users

    @property
    def message(self) -> str:
        """Operator-facing completion message."""
        if self.created > 0:
            text = f"Successfully imported {self.created} user(s)"
        else:
            text = "No users were imported"
        if self.errors:
            text += f". {len(self.errors)} error(s) occurred"
        return text + "."
