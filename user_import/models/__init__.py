"""Domain models for the user import tool.

State, records and result types shared by the normalizer, the step
services and the batch controller.
"""

from .config_models import ApiConfig, AppConfig, ImportSettings
from .credentials import (
    CredentialBundle,
    DiscordWebhookCredential,
    DockerHubCredential,
    PortainerCredential,
)
from .error_key import ErrorKey, StepErrors
from .import_record import ImportFile, UserImportRecord
from .processing_result import CommitResult, CommitStatus, ImportSummary, UserOutcome
from .state import BatchState, PerUserImportState, VerificationStatus
from .steps import REMOTE_VALIDATED_STEPS, SKIPPABLE_STEPS, StepType

__all__ = [
    # Configuration models
    "ApiConfig",
    "AppConfig",
    "ImportSettings",
    # Records and credentials
    "UserImportRecord",
    "ImportFile",
    "CredentialBundle",
    "PortainerCredential",
    "DockerHubCredential",
    "DiscordWebhookCredential",
    # Steps and errors
    "StepType",
    "SKIPPABLE_STEPS",
    "REMOTE_VALIDATED_STEPS",
    "ErrorKey",
    "StepErrors",
    # Session state
    "BatchState",
    "PerUserImportState",
    "VerificationStatus",
    # Results
    "CommitResult",
    "CommitStatus",
    "ImportSummary",
    "UserOutcome",
]
