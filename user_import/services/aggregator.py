from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ImportErrorRecord
from ..models.processing_result import CommitResult, CommitStatus, ImportSummary, UserOutcome
from ..models.state import BatchState

"""Batch Result Aggregator.

Accumulates per-user commit outcomes into the batch state (imported
usernames, free-text import errors) and produces the final summary. No
per-user outcome ever stops the batch; it is only recorded here.
"""

__all__ = ["BatchResultAggregator"]

logger = logging.getLogger(__name__)


class BatchResultAggregator:
    def __init__(self, batch: BatchState, error_log: ErrorLogBuffer | None = None) -> None:
        self.batch = batch
        self.error_log = error_log
        # username -> outcome (one per user, file order of first resolution)
        self._outcomes: dict[str, UserOutcome] = {}
        self.start_time = datetime.now(UTC)
        self._user_started: float = time.perf_counter()

    @property
    def outcomes(self) -> list[UserOutcome]:
        return list(self._outcomes.values())

    def user_started(self) -> None:
        """Mark the moment the current user became current (for timing)."""
        self._user_started = time.perf_counter()

    def _store(self, username: str, status: CommitStatus, message: str) -> None:
        self._outcomes[username] = UserOutcome(
            username=username,
            status=status,
            message=message,
            elapsed_seconds=time.perf_counter() - self._user_started,
        )

    def _forget(self, outcome: UserOutcome) -> None:
        """Drop the counters an earlier outcome contributed to the batch."""
        if outcome.status is CommitStatus.CREATED:
            self.batch.imported_usernames.remove(outcome.username)
        elif outcome.message in self.batch.import_errors:
            self.batch.import_errors.remove(outcome.message)

    def record(self, result: CommitResult) -> None:
        """Record one commit call.

        A user can resolve more than once when the operator navigates back
        onto an already committed user. Only the latest outcome counts, except
        that a user created earlier in this batch stays created.
        """
        previous = self._outcomes.get(result.username)
        if previous is not None:
            if previous.status is CommitStatus.CREATED:
                logger.warning(
                    f"user={result.username} already created in this batch; "
                    f"ignoring repeated commit ({result.status.value})"
                )
                return
            self._forget(previous)

        self._store(result.username, result.status, result.message)
        if result.status is CommitStatus.CREATED:
            self.batch.imported_usernames.append(result.username)
            logger.info(f"user={result.username} created")
            return

        self.batch.import_errors.append(result.message)
        if result.status is CommitStatus.SKIPPED_DUPLICATE:
            logger.warning(f"user={result.username} skipped: {result.message}")
            error_type = "ALREADY_EXISTS"
        else:
            logger.error(f"user={result.username} failed: {result.message}")
            error_type = "COMMIT_FAILED"
        if self.error_log is not None:
            self.error_log.append(ImportErrorRecord.create(result.username, "", error_type, result.message))

    def record_skipped_user(self, username: str) -> None:
        """Record a user the operator skipped entirely (nothing committed)."""
        previous = self._outcomes.get(username)
        if previous is not None:
            if previous.status is CommitStatus.CREATED:
                logger.warning(f"user={username} already created in this batch; skip ignored")
                return
            self._forget(previous)
        self._store(username, CommitStatus.SKIPPED_BY_OPERATOR, f'User "{username}" skipped by operator')
        logger.warning(f"user={username} skipped by operator")

    def summary(self) -> ImportSummary:
        end_time = datetime.now(UTC)
        outcomes = self.outcomes
        counts = {status: 0 for status in CommitStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1
        return ImportSummary(
            created=counts[CommitStatus.CREATED],
            skipped_duplicates=counts[CommitStatus.SKIPPED_DUPLICATE],
            failed=counts[CommitStatus.FAILED],
            imported_usernames=list(self.batch.imported_usernames),
            errors=list(self.batch.import_errors),
            start_time=self.start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - self.start_time).total_seconds(),
            outcomes=outcomes,
            skipped_by_operator=counts[CommitStatus.SKIPPED_BY_OPERATOR],
        )
