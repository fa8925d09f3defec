"""Exception hierarchy for the UserOperation and deployment pipeline."""

from decimal import Decimal
from typing import Any

from web3 import Web3


class PipelineError(Exception):
    """Base exception for all pipeline errors.

    ``retryable`` tags the error kind; the retry executor only re-invokes an
    action whose failure is retryable.
    """

    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PipelineError):
    """Raised when required credentials or settings are missing or invalid."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field


class InvalidOperationError(PipelineError):
    """Raised when an operation envelope is malformed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class InsufficientBalanceError(PipelineError):
    """Raised when the smart account cannot cover the configured balance floor."""

    def __init__(self, required: int, available: int, details: dict | None = None):
        super().__init__(
            f"Insufficient balance: available {Web3.from_wei(available, 'ether')} ETH, "
            f"at least {Web3.from_wei(required, 'ether')} ETH is required",
            details,
        )
        self.required = required
        self.available = available

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)

    @property
    def required_ether(self) -> Decimal:
        return Decimal(Web3.from_wei(self.required, "ether"))

    @property
    def available_ether(self) -> Decimal:
        return Decimal(Web3.from_wei(self.available, "ether"))


class ProvisioningError(PipelineError):
    """Raised when the account infrastructure rejects client construction."""

    retryable = True

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class SubmissionError(PipelineError):
    """Raised when the bundler rejects or fails to accept an operation."""

    retryable = True

    def __init__(
        self,
        message: str,
        method: str | None = None,
        code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.method = method
        self.code = code


class OperationRevertedError(SubmissionError):
    """Raised when an included UserOperation reports execution failure."""

    retryable = False


class ConfirmationTimeoutError(PipelineError):
    """Raised when a handle does not resolve within the configured timeout."""

    def __init__(self, handle: str, timeout: float, details: dict | None = None):
        super().__init__(
            f"Timed out after {timeout:.0f}s waiting for confirmation of {handle}", details
        )
        self.handle = handle
        self.timeout = timeout


class EstimationError(PipelineError):
    """Raised when fee data or a dry-run gas estimate cannot be obtained."""

    retryable = True


class TransientDeploymentError(PipelineError):
    """Raised when a deploy transaction could not be handed to the node."""

    retryable = True


class DeploymentError(PipelineError):
    """Raised when a deploy transaction is mined but reverted."""

    def __init__(
        self,
        message: str,
        transaction_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash


class VerificationError(PipelineError):
    """Raised when block-explorer verification does not succeed."""

    retryable = True


class NotificationError(PipelineError):
    """Raised for a failed webhook delivery; never propagated past the notifier."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


def is_retryable(exc: BaseException) -> bool:
    """Return whether *exc* belongs to a transient error kind."""

    if isinstance(exc, PipelineError):
        return exc.retryable
    return isinstance(exc, Exception)
