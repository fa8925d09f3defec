"""Configuration containers for the pipeline components."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    ENTRY_POINT_V06,
    ETHERSCAN_API_URL,
    SIMPLE_ACCOUNT_FACTORY_V06,
    Network,
    get_network,
)
from .exceptions import ConfigurationError, InvalidOperationError
from .operations import parse_ether

DEFAULT_NETWORK = "sepolia"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_CONFIRMATION_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_MINIMUM_BALANCE_ETH = "0.001"
DEFAULT_PRIORITY_FEE_METHOD = "rundler_maxPriorityFeePerGas"
DEFAULT_ARTIFACT_PATH = "artifacts/contracts/PostManager.sol/PostManager.json"

DEPLOY_MAX_RETRIES = 3
DEPLOY_BASE_DELAY = 2.0
VERIFY_MAX_RETRIES = 3
VERIFY_BASE_DELAY = 5.0
VERIFY_PRE_DELAY = 5.0


def _resolve_network(name: str) -> Network:
    try:
        return get_network(name)
    except KeyError as exc:
        raise ConfigurationError(f"Unsupported network: {name}", field="network") from exc


def _require(value: str | None, label: str, field_name: str) -> str:
    if not value:
        raise ConfigurationError(f"{label} is not set", field=field_name)
    return value


@dataclass(frozen=True)
class AccountConfig:
    """Settings for binding a signer to a counterfactual smart account."""

    private_key: str | None
    api_key: str | None
    network: str = DEFAULT_NETWORK
    bundler_url: str | None = None
    entry_point: str = ENTRY_POINT_V06
    factory_address: str = SIMPLE_ACCOUNT_FACTORY_V06
    salt: int = 0
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    priority_fee_method: str | None = DEFAULT_PRIORITY_FEE_METHOD

    @property
    def resolved_network(self) -> Network:
        return _resolve_network(self.network)

    def validate(self) -> None:
        """Fail fast on missing credentials; performs no network access."""

        _require(self.private_key, "PRIVATE_KEY", "private_key")
        if not self.bundler_url:
            _require(self.api_key, "ALCHEMY_API_KEY", "api_key")
        self.resolved_rpc_url()

    def resolved_rpc_url(self) -> str:
        if self.bundler_url:
            return self.bundler_url.rstrip("/")

        network = self.resolved_network
        url = network.alchemy_url(_require(self.api_key, "ALCHEMY_API_KEY", "api_key"))
        if url is None:
            raise ConfigurationError(
                f"Network '{network.name}' has no account-abstraction provider; set BUNDLER_URL",
                field="bundler_url",
            )
        return url


@dataclass(frozen=True)
class SubmissionConfig:
    """Policy for a single UserOperation submission.

    ``confirmation_timeout`` has no default; every submission is bounded.
    """

    minimum_balance: int
    confirmation_timeout: float
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_retries: int = 3
    base_delay: float = 1.0

    def validate(self) -> None:
        if self.confirmation_timeout is None or self.confirmation_timeout <= 0:
            raise ConfigurationError(
                "Confirmation timeout must be positive", field="confirmation_timeout"
            )
        if self.minimum_balance < 0:
            raise ConfigurationError("Minimum balance cannot be negative", field="minimum_balance")


@dataclass(frozen=True)
class DeploymentConfig:
    """Settings for deploying the content contract."""

    private_key: str | None
    network: str = DEFAULT_NETWORK
    rpc_url: str | None = None
    api_key: str | None = None
    artifact_path: str = DEFAULT_ARTIFACT_PATH
    constructor_args: tuple[Any, ...] = ()
    state_reads: tuple[str, ...] = ("postCount",)
    max_retries: int = DEPLOY_MAX_RETRIES
    base_delay: float = DEPLOY_BASE_DELAY
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def resolved_network(self) -> Network:
        return _resolve_network(self.network)

    def validate(self) -> None:
        _require(self.private_key, "PRIVATE_KEY", "private_key")
        self.resolved_rpc_url()

    def resolved_rpc_url(self) -> str:
        if self.rpc_url:
            return self.rpc_url.rstrip("/")

        network = self.resolved_network
        if network.default_rpc_url is not None:
            return network.default_rpc_url

        url = network.alchemy_url(_require(self.api_key, "ALCHEMY_API_KEY", "api_key"))
        if url is None:  # pragma: no cover - every remote network has a provider
            raise ConfigurationError(
                f"No RPC endpoint for network '{network.name}'", field="rpc_url"
            )
        return url


@dataclass(frozen=True)
class ExplorerConfig:
    """Block-explorer verification settings."""

    api_key: str | None = None
    api_url: str = ETHERSCAN_API_URL
    max_retries: int = VERIFY_MAX_RETRIES
    base_delay: float = VERIFY_BASE_DELAY
    pre_delay: float = VERIFY_PRE_DELAY
    poll_interval: float = 5.0
    max_polls: int = 12
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class NotifierConfig:
    """Webhook fan-out settings; no endpoints disables notification."""

    webhook_urls: tuple[str, ...] = field(default_factory=tuple)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class PipelineConfig:
    """Aggregated configuration threaded through every component."""

    account: AccountConfig
    submission: SubmissionConfig
    deployment: DeploymentConfig
    explorer: ExplorerConfig = ExplorerConfig()
    notifier: NotifierConfig = NotifierConfig()


def load_config(environ: Mapping[str, str]) -> PipelineConfig:
    """Build a :class:`PipelineConfig` from environment-style key/values.

    Only process entry points call this; components receive the result.
    """

    network = environ.get("NETWORK", DEFAULT_NETWORK).strip().lower() or DEFAULT_NETWORK
    private_key = environ.get("PRIVATE_KEY") or None
    api_key = environ.get("ALCHEMY_API_KEY") or None
    request_timeout = _float_setting(environ, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)

    try:
        minimum_balance = parse_ether(
            environ.get("MIN_BALANCE_ETH", DEFAULT_MINIMUM_BALANCE_ETH)
        )
    except InvalidOperationError as exc:
        raise ConfigurationError(
            "MIN_BALANCE_ETH must be a non-negative ether amount", field="minimum_balance"
        ) from exc

    rpc_env = network.upper().replace("-", "_") + "_URL"
    webhooks = tuple(
        url.strip() for url in environ.get("WEBHOOK_URLS", "").split(",") if url.strip()
    )

    return PipelineConfig(
        account=AccountConfig(
            private_key=private_key,
            api_key=api_key,
            network=network,
            bundler_url=environ.get("BUNDLER_URL") or None,
            request_timeout=request_timeout,
        ),
        submission=SubmissionConfig(
            minimum_balance=minimum_balance,
            confirmation_timeout=_float_setting(
                environ, "CONFIRMATION_TIMEOUT", DEFAULT_CONFIRMATION_TIMEOUT
            ),
        ),
        deployment=DeploymentConfig(
            private_key=private_key,
            network=network,
            rpc_url=environ.get(rpc_env) or None,
            api_key=api_key,
            artifact_path=environ.get("CONTRACT_ARTIFACT", DEFAULT_ARTIFACT_PATH),
            request_timeout=request_timeout,
        ),
        explorer=ExplorerConfig(
            api_key=environ.get("ETHERSCAN_API_KEY") or None,
            request_timeout=request_timeout,
        ),
        notifier=NotifierConfig(webhook_urls=webhooks, request_timeout=request_timeout),
    )


def _float_setting(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number", field=key.lower()) from exc
