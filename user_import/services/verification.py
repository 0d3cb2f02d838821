from __future__ import annotations

import logging
from collections.abc import Container
from dataclasses import dataclass

from ..client.api import ImportApi, TokenResult
from ..errors import ApiError, InvalidTransitionError
from ..models.import_record import UserImportRecord
from ..models.state import PerUserImportState, VerificationStatus
from ..models.steps import StepType

"""Privilege Verification Gate.

Per-user token protocol guarding the instance admin tier::

    unattempted -> pending -> verified | failed
    failed      -> pending            (re-submission)
    verified                          (terminal for the user)

The token itself is generated by the external authority and written to the
server log; this side only keeps an opaque handle to pass along at commit
time. Neither the handle nor operator-entered values are ever logged.
"""

__all__ = [
    "GateResult",
    "PrivilegeVerificationGate",
    "grants_instance_admin",
]

logger = logging.getLogger(__name__)

STEP = StepType.INSTANCE_ADMIN_VERIFICATION

GENERATE_FALLBACK = "Failed to generate token. Check server logs."
REGENERATE_FALLBACK = "Failed to generate/regenerate token. Check server logs."
VERIFY_FALLBACK = "Invalid token. Please check the server logs for the correct token."
MISSING_TOKEN = "Enter the verification token from the server logs, or skip this step"


@dataclass(frozen=True)
class GateResult:
    success: bool
    error: str | None = None


def grants_instance_admin(record: UserImportRecord, state: PerUserImportState) -> bool:
    """Default-deny: elevated only if requested, not skipped and verified."""
    return (
        record.instance_admin
        and not state.is_skipped(STEP)
        and state.verification_status is VerificationStatus.VERIFIED
    )


class PrivilegeVerificationGate:
    def __init__(self, api: ImportApi) -> None:
        self.api = api

    def _store_token(self, state: PerUserImportState, result: TokenResult, fallback: str) -> GateResult:
        if result.success and result.token:
            state.verification_token = result.token
            return GateResult(True)
        message = result.error or fallback
        state.set_step_error(STEP, message)
        return GateResult(False, message)

    def ensure_token(self, state: PerUserImportState) -> GateResult:
        """Generate a token when the verification step becomes current.

        No-op when a token handle already exists or the user is verified.
        """
        if state.verification_status is VerificationStatus.VERIFIED or state.verification_token:
            return GateResult(True)
        logger.info(f"user={state.username} requesting instance admin token (see server logs)")
        try:
            result = self.api.generate_instance_admin_token(state.username)
        except ApiError as e:
            result = TokenResult(success=False, error=e.error)
        return self._store_token(state, result, GENERATE_FALLBACK)

    def regenerate(self, state: PerUserImportState, imported_usernames: Container[str] = ()) -> GateResult:
        """Replace the token and reset the gate to ``unattempted``.

        Uses the regenerate endpoint for users that already exist on the
        server, the generate endpoint otherwise.
        """
        if state.verification_status is VerificationStatus.VERIFIED:
            raise InvalidTransitionError(f'User "{state.username}" is already verified')

        state.verification_status = VerificationStatus.UNATTEMPTED
        state.verification_token = None
        state.entered_token = ""
        state.clear_errors(STEP)

        exists = state.username in imported_usernames
        logger.info(f"user={state.username} regenerating instance admin token (see server logs)")
        try:
            if exists:
                result = self.api.regenerate_instance_admin_token(state.username)
            else:
                result = self.api.generate_instance_admin_token(state.username)
        except ApiError as e:
            result = TokenResult(success=False, error=e.error)
        return self._store_token(state, result, REGENERATE_FALLBACK)

    def verify(self, state: PerUserImportState) -> GateResult:
        """Submit the operator-entered token.

        On failure the status becomes ``failed`` with the server's reason and
        the entered value is kept so the operator can correct it.
        """
        if state.verification_status is VerificationStatus.VERIFIED:
            return GateResult(True)

        entered = state.entered_token.strip()
        if not entered:
            state.set_step_error(STEP, MISSING_TOKEN)
            return GateResult(False, MISSING_TOKEN)

        state.clear_errors(STEP)
        state.verification_status = VerificationStatus.PENDING
        try:
            result = self.api.verify_instance_admin_token(state.username, entered)
            success, error = result.success, result.error
        except ApiError as e:
            success, error = False, e.error

        if success:
            state.verification_status = VerificationStatus.VERIFIED
            logger.info(f"user={state.username} instance admin verification succeeded")
            return GateResult(True)

        message = error or VERIFY_FALLBACK
        state.verification_status = VerificationStatus.FAILED
        state.set_step_error(STEP, message)
        logger.info(f"user={state.username} instance admin verification failed")
        return GateResult(False, message)
