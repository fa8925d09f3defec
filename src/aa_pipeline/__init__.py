"""aa-pipeline - gasless UserOperation submission and deployment automation.

A signer is bound to a counterfactual ERC-4337 smart account, operations are
validated into envelopes and sent through a bundler, and a companion
orchestrator deploys, verifies and reports on the content contract.
"""

from .account import SmartAccountClient, derive_signer, describe_account, provision_account
from .config import (
    AccountConfig,
    DeploymentConfig,
    ExplorerConfig,
    NotifierConfig,
    PipelineConfig,
    SubmissionConfig,
    load_config,
)
from .deploy import DeploymentOrchestrator, GasEstimator
from .exceptions import (
    ConfigurationError,
    ConfirmationTimeoutError,
    DeploymentError,
    EstimationError,
    InsufficientBalanceError,
    InvalidOperationError,
    NotificationError,
    OperationRevertedError,
    PipelineError,
    ProvisioningError,
    SubmissionError,
    TransientDeploymentError,
    VerificationError,
)
from .notifier import NotificationReport, WebhookNotifier
from .operations import build_operation, parse_ether
from .retry import retry_with_backoff
from .submission import SubmissionClient
from .types import (
    DeploymentReport,
    DeploymentResult,
    DeploymentState,
    GasEstimate,
    NotificationPayload,
    OperationEnvelope,
    Outcome,
    SubmissionHandle,
    SubmissionResult,
    SubmissionState,
    TransactionRecord,
)

__version__ = "0.1.0"

__all__ = [
    # Account
    "SmartAccountClient",
    "derive_signer",
    "describe_account",
    "provision_account",
    # Configuration
    "AccountConfig",
    "DeploymentConfig",
    "ExplorerConfig",
    "NotifierConfig",
    "PipelineConfig",
    "SubmissionConfig",
    "load_config",
    # Workflows
    "DeploymentOrchestrator",
    "GasEstimator",
    "SubmissionClient",
    "WebhookNotifier",
    "NotificationReport",
    "build_operation",
    "parse_ether",
    "retry_with_backoff",
    # Types
    "DeploymentReport",
    "DeploymentResult",
    "DeploymentState",
    "GasEstimate",
    "NotificationPayload",
    "OperationEnvelope",
    "Outcome",
    "SubmissionHandle",
    "SubmissionResult",
    "SubmissionState",
    "TransactionRecord",
    # Exceptions
    "PipelineError",
    "ConfigurationError",
    "InvalidOperationError",
    "InsufficientBalanceError",
    "ProvisioningError",
    "SubmissionError",
    "OperationRevertedError",
    "ConfirmationTimeoutError",
    "EstimationError",
    "TransientDeploymentError",
    "DeploymentError",
    "VerificationError",
    "NotificationError",
]
