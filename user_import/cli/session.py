from __future__ import annotations

import getpass
from collections.abc import Callable

from ..errors import InvalidTransitionError
from ..models.credentials import AUTH_TYPE_API_KEY, AUTH_TYPE_PASSWORD
from ..models.import_record import ImportFile
from ..models.processing_result import CommitStatus, ImportSummary
from ..models.state import VerificationStatus
from ..models.steps import SKIPPABLE_STEPS, StepType
from ..services.controller import (
    Action,
    ImportBatchController,
    TransitionResult,
    TransitionStatus,
)

"""Interactive operator session.

Drives an ``ImportBatchController`` from the terminal: shows the current
user and step, collects the values the step needs, and dispatches the
operator's chosen action. Prompt functions are injectable for tests.
"""

__all__ = ["OperatorSession"]

STEP_TITLES = {
    StepType.INSTANCE_ADMIN_VERIFICATION: "Instance admin verification",
    StepType.PASSWORD: "Password",
    StepType.PORTAINER: "Portainer credentials",
    StepType.DOCKERHUB: "Docker Hub credentials",
    StepType.DISCORD: "Discord webhooks",
}

_CHOICES = {
    "n": Action.NEXT,
    "s": Action.SKIP,
    "b": Action.BACK,
    "r": Action.REGENERATE_TOKEN,
    "u": Action.SKIP_USER,
    "q": Action.CLOSE,
}


class OperatorSession:
    def __init__(
        self,
        controller: ImportBatchController,
        *,
        prompt: Callable[[str], str] = input,
        secret_prompt: Callable[[str], str] = getpass.getpass,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.controller = controller
        self.prompt = prompt
        self.secret_prompt = secret_prompt
        self.echo = echo

    def run(self, import_file: ImportFile) -> ImportSummary | None:
        """Run the whole batch. Returns None when the operator quits early."""
        if import_file.instance_admin_users:
            self.echo(
                "Instance admin requested for: "
                + ", ".join(import_file.instance_admin_users)
                + " (tokens are written to the server logs)"
            )
        self._show(self.controller.start(import_file))

        while not self.controller.finished:
            self._show_position()
            action = self._choose_action()
            if action is Action.CLOSE:
                self.controller.close()
                self.echo("Import cancelled.")
                return None
            try:
                if action is Action.NEXT:
                    self._collect_values()
                result = self.controller.dispatch(action)
            except InvalidTransitionError as e:
                self.echo(f"  ! {e}")
                continue
            self._show(result)
            if result.status is TransitionStatus.COMPLETED:
                return result.summary
        return self.controller.summary

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------
    def _show_position(self) -> None:
        batch = self.controller.batch
        if batch is None:
            raise InvalidTransitionError("Import has not started")
        plan = self.controller.current_plan
        state = self.controller.current_state
        step = self.controller.current_step
        self.echo(
            f"\n[{batch.current_user_index + 1}/{batch.total_users}] {self.controller.current_user.username} "
            f"- step {state.current_step_index + 1}/{len(plan)}: {STEP_TITLES[step]}"
        )
        if state.is_skipped(step):
            self.echo("  (this step was skipped; its data will not be imported)")

    def _show(self, result: TransitionResult) -> None:
        if result.status is TransitionStatus.BLOCKED:
            for key, message in result.errors.items():
                if not key.is_step_level:
                    self.echo(f"  ! {key}: {message}")
            if result.message:
                self.echo(f"  ! {result.message}")
        elif result.status is TransitionStatus.NO_OP:
            self.echo("  Already at the first step.")
        elif result.status is TransitionStatus.USER_SKIPPED:
            self.echo("  User skipped; nothing was imported.")
        elif result.status is TransitionStatus.TOKEN_REGENERATED:
            self.echo("  A new token was generated. Check the server logs.")

        commit = result.commit
        if commit is not None:
            if commit.status is CommitStatus.CREATED:
                self.echo(f'  User "{commit.username}" created.')
            else:
                self.echo(f"  {commit.message}")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def _choose_action(self) -> Action:
        step = self.controller.current_step
        state = self.controller.current_state
        options = ["[n]ext"]
        allowed = {"n", "b", "u", "q"}
        if step in SKIPPABLE_STEPS:
            options.append("[s]kip")
            allowed.add("s")
        options.append("[b]ack")
        if (
            step is StepType.INSTANCE_ADMIN_VERIFICATION
            and not state.is_skipped(step)
            and state.verification_status is not VerificationStatus.VERIFIED
        ):
            options.append("[r]egenerate")
            allowed.add("r")
        options.append("[u]ser-skip")
        options.append("[q]uit")
        label = " ".join(options) + ": "
        while True:
            choice = self.prompt(label).strip().lower()[:1] or "n"
            if choice in allowed:
                return _CHOICES[choice]
            self.echo(f"  Unknown choice: {choice}")

    def _collect_values(self) -> None:
        step = self.controller.current_step
        state = self.controller.current_state
        if state.is_skipped(step):
            return
        if step is StepType.INSTANCE_ADMIN_VERIFICATION:
            if state.verification_status is not VerificationStatus.VERIFIED:
                token = self.secret_prompt("Verification token: ")
                if token:
                    self.controller.enter_verification_token(token)
        elif step is StepType.PASSWORD:
            password = self.secret_prompt("Password: ")
            confirmation = self.secret_prompt("Confirm password: ")
            self.controller.enter_password(password, confirmation)
        elif step is StepType.PORTAINER:
            self._collect_portainer()
        elif step is StepType.DOCKERHUB:
            hub = state.credentials.docker_hub
            username = self.prompt(f"Docker Hub username [{hub.username}]: ").strip() or hub.username
            token = self.secret_prompt("Docker Hub token: ")
            self.controller.update_dockerhub(username=username, token=token or None)
        elif step is StepType.DISCORD:
            for index, hook in enumerate(state.credentials.discord_webhooks):
                url = self.secret_prompt(f'Webhook URL for "{hook.display_name(index)}": ')
                if url:
                    self.controller.update_discord(index, url.strip())

    def _collect_portainer(self) -> None:
        instances = self.controller.current_state.credentials.portainer_instances
        for index, cred in enumerate(instances):
            self.echo(f'  Portainer instance "{cred.display_name}" ({cred.url or "no URL"})')
            auth_type = self.prompt(f"  Auth type [{AUTH_TYPE_API_KEY}/{AUTH_TYPE_PASSWORD}] ({cred.auth_type}): ")
            auth_type = auth_type.strip().lower() or cred.auth_type
            if auth_type not in (AUTH_TYPE_API_KEY, AUTH_TYPE_PASSWORD):
                self.echo(f"  Unknown auth type: {auth_type}")
                auth_type = cred.auth_type
            if auth_type == AUTH_TYPE_API_KEY:
                api_key = self.secret_prompt("  API key: ")
                self.controller.update_portainer(index, auth_type=auth_type, api_key=api_key or None)
            else:
                username = self.prompt(f"  Username [{cred.username}]: ").strip() or cred.username
                password = self.secret_prompt("  Password: ")
                self.controller.update_portainer(
                    index, auth_type=auth_type, username=username, password=password or None
                )
