from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..client.api import ImportApi
from ..errors import ApiError, DuplicateUserError, InvalidTransitionError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportSettings
from ..models.credentials import AUTH_TYPE_API_KEY, AUTH_TYPE_PASSWORD
from ..models.error_key import StepErrors
from ..models.error_record import ImportErrorRecord
from ..models.import_record import ImportFile, UserImportRecord
from ..models.processing_result import CommitResult, ImportSummary
from ..models.state import BatchState, PerUserImportState
from ..models.steps import REMOTE_VALIDATED_STEPS, SKIPPABLE_STEPS, StepType
from .aggregator import BatchResultAggregator
from .commit import commit_user
from .progress import ProgressTracker
from .remote_validator import RemoteCredentialValidator
from .step_plan import build_step_plan
from .step_validator import validate_step
from .verification import PrivilegeVerificationGate

"""Import Batch Controller.

Top-level state machine for one import session. All mutation of the batch
goes through ``dispatch()``; every derived value (current user, plan, step)
is computed from ``BatchState`` on demand.

Per (user, step)::

    Editing -> Validating -> Blocked(errors) | Advancing

Users are processed strictly in file order, one at a time. The only
internal concurrency is the remote validator's per-item fan-out, which is
joined before ``dispatch()`` returns.
"""

__all__ = [
    "Action",
    "Phase",
    "TransitionStatus",
    "TransitionResult",
    "ImportBatchController",
]

logger = logging.getLogger(__name__)


class Action(str, Enum):
    NEXT = "next"
    SKIP = "skip"
    BACK = "back"
    REGENERATE_TOKEN = "regenerate_token"
    SKIP_USER = "skip_user"
    CLOSE = "close"


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    EDITING = "editing"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    FINISHED = "finished"
    CLOSED = "closed"


class TransitionStatus(str, Enum):
    STARTED = "started"
    ADVANCED = "advanced"
    BLOCKED = "blocked"
    USER_COMMITTED = "user_committed"
    USER_SKIPPED = "user_skipped"
    COMPLETED = "completed"
    MOVED_BACK = "moved_back"
    TOKEN_REGENERATED = "token_regenerated"
    NO_OP = "no_op"
    CLOSED = "closed"


@dataclass(frozen=True)
class TransitionResult:
    status: TransitionStatus
    errors: StepErrors = field(default_factory=dict)
    message: str | None = None  # step-level message (remote failure, gate error)
    commit: CommitResult | None = None
    summary: ImportSummary | None = None

    @property
    def blocked(self) -> bool:
        return self.status is TransitionStatus.BLOCKED


class ImportBatchController:
    def __init__(
        self,
        api: ImportApi,
        settings: ImportSettings | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.api = api
        self.settings = settings or ImportSettings()
        self.error_log = error_log
        self.gate = PrivilegeVerificationGate(api)
        self.remote = RemoteCredentialValidator(api, self.settings.validation_workers)
        self.batch: BatchState | None = None
        self.aggregator: BatchResultAggregator | None = None
        self._phase = Phase.NOT_STARTED
        self._summary: ImportSummary | None = None

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def finished(self) -> bool:
        return self._phase is Phase.FINISHED

    @property
    def summary(self) -> ImportSummary | None:
        return self._summary

    @property
    def current_user(self) -> UserImportRecord:
        return self._active_batch().current_user

    @property
    def current_plan(self) -> list[StepType]:
        return build_step_plan(self.current_user)

    @property
    def current_state(self) -> PerUserImportState:
        batch = self._active_batch()
        return batch.user_states[batch.current_user.username]

    @property
    def current_step(self) -> StepType:
        return self.current_plan[self.current_state.current_step_index]

    def _active_batch(self) -> BatchState:
        if self._phase is Phase.CLOSED:
            raise InvalidTransitionError("Import session is closed")
        if self.batch is None:
            raise InvalidTransitionError("Import has not started")
        return self.batch

    def _require_editable(self) -> PerUserImportState:
        batch = self._active_batch()
        if batch.finished:
            raise InvalidTransitionError("Import batch is already finished")
        return self.current_state

    # ------------------------------------------------------------------
    # Batch start
    # ------------------------------------------------------------------
    def check_duplicates(self, import_file: ImportFile) -> None:
        """Abort before anything is committed if any planned user already exists.

        Raises:
            DuplicateUserError: naming the first existing username in file order
        """
        with ProgressTracker(len(import_file.users)) as progress:
            for record in import_file.users:
                progress.start_user(record.username)
                try:
                    exists = self.api.check_user_exists(record.username)
                except ApiError as e:
                    # 確認失敗はブロックしない (commit 側で already exists として扱われる)
                    logger.warning(f"user={record.username} existence check failed: {e}")
                    exists = False
                progress.finish_user()
                if exists:
                    error = DuplicateUserError(record.username)
                    logger.error(str(error))
                    if self.error_log is not None:
                        self.error_log.append(
                            ImportErrorRecord.create(record.username, "", "DUPLICATE_PRECHECK", str(error))
                        )
                    raise error

    def prepare(self, import_file: ImportFile) -> BatchState:
        """Run the duplicate pre-check and build the batch state (not yet entered)."""
        if self._phase is not Phase.NOT_STARTED:
            raise InvalidTransitionError("Import batch has already been started")
        if not import_file.users:
            raise InvalidTransitionError("Import file contains no users")
        self.check_duplicates(import_file)
        self.batch = BatchState(users=list(import_file.users))
        self.aggregator = BatchResultAggregator(self.batch, self.error_log)
        logger.info(f"import batch prepared: {len(self.batch.users)} user(s)")
        return self.batch

    def start(self, import_file: ImportFile) -> TransitionResult:
        self.prepare(import_file)
        self._enter_user(0)
        return self._result(TransitionStatus.STARTED)

    # ------------------------------------------------------------------
    # Editing (current user only)
    # ------------------------------------------------------------------
    def _touch(self) -> PerUserImportState:
        state = self._require_editable()
        self._phase = Phase.EDITING
        return state

    def enter_password(self, password: str, confirmation: str | None = None) -> None:
        state = self._touch()
        state.password = password
        state.password_confirmation = confirmation

    def enter_verification_token(self, value: str) -> None:
        state = self._touch()
        state.entered_token = value

    def update_portainer(
        self,
        index: int,
        *,
        auth_type: str | None = None,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        state = self._touch()
        instances = state.credentials.portainer_instances
        if not 0 <= index < len(instances):
            raise InvalidTransitionError(f"No Portainer instance at index {index}")
        cred = instances[index]
        if auth_type is not None:
            if auth_type not in (AUTH_TYPE_API_KEY, AUTH_TYPE_PASSWORD):
                raise ValueError(f"unknown Portainer auth type: {auth_type!r}")
            cred.auth_type = auth_type
        if api_key is not None:
            cred.api_key = api_key
        if username is not None:
            cred.username = username
        if password is not None:
            cred.password = password

    def update_dockerhub(self, *, username: str | None = None, token: str | None = None) -> None:
        hub = self._touch().credentials.docker_hub
        if username is not None:
            hub.username = username
        if token is not None:
            hub.token = token

    def update_discord(self, index: int, webhook_url: str) -> None:
        hooks = self._touch().credentials.discord_webhooks
        if not 0 <= index < len(hooks):
            raise InvalidTransitionError(f"No Discord webhook at index {index}")
        hooks[index].webhook_url = webhook_url

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def dispatch(self, action: Action) -> TransitionResult:
        """Single entry point for every state transition."""
        if action is Action.CLOSE:
            return self._on_close()
        self._require_editable()
        if action is Action.NEXT:
            return self._on_next()
        if action is Action.SKIP:
            return self._on_skip()
        if action is Action.BACK:
            return self._on_back()
        if action is Action.REGENERATE_TOKEN:
            return self._on_regenerate()
        if action is Action.SKIP_USER:
            return self._on_skip_user()
        raise InvalidTransitionError(f"unknown action: {action!r}")

    def next(self) -> TransitionResult:
        return self.dispatch(Action.NEXT)

    def skip(self) -> TransitionResult:
        return self.dispatch(Action.SKIP)

    def back(self) -> TransitionResult:
        return self.dispatch(Action.BACK)

    def regenerate_token(self) -> TransitionResult:
        return self.dispatch(Action.REGENERATE_TOKEN)

    def skip_user(self) -> TransitionResult:
        return self.dispatch(Action.SKIP_USER)

    def close(self) -> TransitionResult:
        return self.dispatch(Action.CLOSE)

    # ------------------------------------------------------------------
    # Transition handlers
    # ------------------------------------------------------------------
    def _on_next(self) -> TransitionResult:
        state = self.current_state
        step = self.current_step
        self._phase = Phase.VALIDATING

        if step is StepType.INSTANCE_ADMIN_VERIFICATION:
            # skip 済みなら verify しない (admin は付与されない)
            if not state.is_skipped(step):
                gate = self.gate.verify(state)
                if not gate.success:
                    return self._block(gate.error)
        else:
            errors = validate_step(step, state, self.settings.min_password_length)
            if errors:
                state.set_errors(step, errors)
                return self._block()
            if step in REMOTE_VALIDATED_STEPS and not state.is_skipped(step):
                remote = self.remote.validate(step, state)
                if not remote.success:
                    message = remote.error or "Validation failed"
                    state.set_errors(step, {})
                    state.set_step_error(step, message)
                    return self._block(message)

        state.clear_errors(step)
        return self._advance()

    def _on_skip(self) -> TransitionResult:
        state = self.current_state
        step = self.current_step
        if step not in SKIPPABLE_STEPS:
            raise InvalidTransitionError(f"The {step.value} step cannot be skipped")
        state.skipped_steps.add(step)
        state.clear_errors(step)
        logger.info(f"user={state.username} step={step} skipped")
        return self._advance()

    def _on_back(self) -> TransitionResult:
        batch = self._active_batch()
        state = self.current_state
        if state.current_step_index > 0:
            state.current_step_index -= 1
            self._on_step_entered()
            return self._result(TransitionStatus.MOVED_BACK)
        if batch.current_user_index > 0:
            prev_index = batch.current_user_index - 1
            prev = batch.users[prev_index]
            plan = build_step_plan(prev)
            batch.current_user_index = prev_index
            prev_state = batch.user_states.setdefault(prev.username, PerUserImportState.for_record(prev))
            prev_state.current_step_index = len(plan) - 1
            if self.aggregator is not None:
                self.aggregator.user_started()
            logger.info(f"moved back to user={prev.username}")
            self._on_step_entered()
            return self._result(TransitionStatus.MOVED_BACK)
        return self._result(TransitionStatus.NO_OP)

    def _on_regenerate(self) -> TransitionResult:
        state = self.current_state
        if self.current_step is not StepType.INSTANCE_ADMIN_VERIFICATION:
            raise InvalidTransitionError("Token regeneration is only available on the verification step")
        if state.is_skipped(StepType.INSTANCE_ADMIN_VERIFICATION):
            raise InvalidTransitionError("The verification step was skipped")
        batch = self._active_batch()
        gate = self.gate.regenerate(state, batch.imported_usernames)
        if not gate.success:
            return self._block(gate.error)
        self._phase = Phase.EDITING
        return self._result(TransitionStatus.TOKEN_REGENERATED)

    def _on_close(self) -> TransitionResult:
        if self.batch is not None:
            self.batch.wipe()
        self.batch = None
        self.aggregator = None
        self._phase = Phase.CLOSED
        logger.info("import session closed")
        return TransitionResult(TransitionStatus.CLOSED, summary=self._summary)

    # ------------------------------------------------------------------
    # Internal transitions
    # ------------------------------------------------------------------
    def _advance(self) -> TransitionResult:
        state = self.current_state
        if state.current_step_index < len(self.current_plan) - 1:
            state.current_step_index += 1
            self._on_step_entered()
            return self._result(TransitionStatus.ADVANCED)
        return self._commit()

    def _active_aggregator(self) -> BatchResultAggregator:
        if self.aggregator is None:
            raise InvalidTransitionError("Import has not started")
        return self.aggregator

    def _commit(self) -> TransitionResult:
        batch = self._active_batch()
        aggregator = self._active_aggregator()
        record = batch.current_user
        state = self.current_state
        result = commit_user(self.api, record, state, self.current_plan, self.settings.default_role)
        state.finalize()
        aggregator.record(result)
        return self._leave_user(TransitionStatus.USER_COMMITTED, commit=result)

    def _on_skip_user(self) -> TransitionResult:
        aggregator = self._active_aggregator()
        state = self.current_state
        state.finalize()
        aggregator.record_skipped_user(state.username)
        return self._leave_user(TransitionStatus.USER_SKIPPED)

    def _leave_user(self, status: TransitionStatus, commit: CommitResult | None = None) -> TransitionResult:
        """Move on to the next user, or finish the batch after the last one."""
        batch = self._active_batch()
        if batch.is_last_user:
            batch.finished = True
            self._summary = self._active_aggregator().summary()
            batch.wipe()
            self._phase = Phase.FINISHED
            logger.debug(f"import batch finished: {len(self._summary.outcomes)} outcome(s)")
            return TransitionResult(TransitionStatus.COMPLETED, commit=commit, summary=self._summary)

        self._enter_user(batch.current_user_index + 1)
        return self._result(status, commit=commit)

    def _enter_user(self, index: int) -> None:
        batch = self._active_batch()
        batch.current_user_index = index
        record = batch.current_user
        state = batch.user_states.setdefault(record.username, PerUserImportState.for_record(record))
        state.current_step_index = 0
        if self.aggregator is not None:
            self.aggregator.user_started()
        logger.info(f"user {index + 1}/{batch.total_users}: {record.username} steps={[s.value for s in self.current_plan]}")
        self._on_step_entered()

    def _on_step_entered(self) -> None:
        self._phase = Phase.EDITING
        step = self.current_step
        logger.debug(f"user={self.current_user.username} step={step}")
        state = self.current_state
        if step is StepType.INSTANCE_ADMIN_VERIFICATION and not state.is_skipped(step):
            self.gate.ensure_token(state)

    def _block(self, message: str | None = None) -> TransitionResult:
        self._phase = Phase.BLOCKED
        return self._result(TransitionStatus.BLOCKED, message=message)

    def _result(
        self,
        status: TransitionStatus,
        message: str | None = None,
        commit: CommitResult | None = None,
    ) -> TransitionResult:
        state = self.current_state
        errors = state.errors_for(self.current_step)
        if message is None:
            message = next((msg for key, msg in errors.items() if key.is_step_level), None)
        return TransitionResult(status, errors=errors, message=message, commit=commit)
