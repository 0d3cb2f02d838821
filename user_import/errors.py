from __future__ import annotations

"""Exception hierarchy for the import pipeline.

Only fatal conditions raise: a malformed import file, a duplicate found by
the pre-check, an illegal controller action, or a transport failure talking
to the dashboard API (which callers fold into step/commit results).
Local and remote validation failures are reported as data, never raised.
"""

__all__ = [
    "ImportPipelineError",
    "ImportFileError",
    "DuplicateUserError",
    "InvalidTransitionError",
    "ApiError",
]


class ImportPipelineError(Exception):
    """Base exception for the import pipeline."""


class ImportFileError(ImportPipelineError):
    """Import file could not be read or has an invalid structure."""


class DuplicateUserError(ImportPipelineError):
    """A planned user already exists; the batch must not start."""

    def __init__(self, username: str) -> None:
        super().__init__(f'User "{username}" already exists.')
        self.username = username


class InvalidTransitionError(ImportPipelineError):
    """Action is not permitted in the controller's current state."""


class ApiError(ImportPipelineError):
    """Transport failure or unusable response from the dashboard API."""

    def __init__(self, message: str, *, status_code: int | None = None, error: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error  # server-supplied reason, if the body carried one
