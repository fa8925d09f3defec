"""Type definitions and data models for the pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .utils import format_ether, from_hex_int


class SubmissionState(Enum):
    """Lifecycle of a single UserOperation submission."""

    BUILT = "built"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class DeploymentState(Enum):
    """Lifecycle of a single contract deployment."""

    IDLE = "idle"
    ESTIMATING = "estimating"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class OperationEnvelope:
    """Validated call description routed through the smart account."""

    target: str
    data: str = "0x"
    value: int = 0

    @property
    def data_bytes(self) -> bytes:
        return bytes.fromhex(self.data[2:])

    @property
    def data_size(self) -> int:
        return (len(self.data) - 2) // 2


@dataclass(frozen=True)
class SubmissionHandle:
    """Bundler-issued identifier (the UserOperation hash)."""

    user_op_hash: str
    entry_point: str

    def __str__(self) -> str:
        return self.user_op_hash


@dataclass(frozen=True)
class TransactionRecord:
    """Resolution of a submission handle to its mined transaction."""

    user_op_hash: str
    transaction_hash: str
    block_number: int | None
    success: bool
    actual_gas_used: int | None = None
    actual_gas_cost: int | None = None
    gas_used: int | None = None
    effective_gas_price: int | None = None

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> TransactionRecord:
        """Build a record from an ``eth_getUserOperationReceipt`` result."""

        receipt = data.get("receipt") or {}
        return cls(
            user_op_hash=str(data.get("userOpHash", "")),
            transaction_hash=str(receipt.get("transactionHash", "")),
            block_number=from_hex_int(receipt.get("blockNumber")),
            success=bool(data.get("success", False)),
            actual_gas_used=from_hex_int(data.get("actualGasUsed")),
            actual_gas_cost=from_hex_int(data.get("actualGasCost")),
            gas_used=from_hex_int(receipt.get("gasUsed")),
            effective_gas_price=from_hex_int(receipt.get("effectiveGasPrice")),
        )


@dataclass
class SubmissionResult:
    """Summary of a submission, terminal or not."""

    state: SubmissionState
    envelope: OperationEnvelope
    sender: str
    balance_before: int
    handle: SubmissionHandle | None = None
    record: TransactionRecord | None = None
    balance_after: int | None = None
    gas_cost: int | None = None
    cost_is_estimate: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "sender": self.sender,
            "target": self.envelope.target,
            "value": format_ether(self.envelope.value),
            "data": self.envelope.data,
            "userOpHash": self.handle.user_op_hash if self.handle else None,
            "transactionHash": self.record.transaction_hash if self.record else None,
            "balanceBefore": format_ether(self.balance_before),
            "balanceAfter": (
                format_ether(self.balance_after) if self.balance_after is not None else None
            ),
            "gasCost": format_ether(self.gas_cost) if self.gas_cost is not None else None,
            "gasCostEstimated": self.cost_is_estimate,
        }


@dataclass(frozen=True)
class GasEstimate:
    """Projected cost of a deployment."""

    gas_estimate: int
    gas_price: int
    projected_cost: int


@dataclass
class DeploymentResult:
    """Outcome of an accepted deploy transaction.

    ``gas_used`` and ``deployment_cost`` stay ``None`` until the receipt has
    been applied, and a receipt is applied at most once.
    """

    contract_address: str
    deployer: str
    network: str
    chain_id: int
    transaction_hash: str
    block_number: int | None = None
    timestamp: str = field(default_factory=lambda: utc_timestamp())
    gas_used: int | None = None
    deployment_cost: int | None = None
    initial_state: dict[str, Any] = field(default_factory=dict)
    _receipt_applied: bool = field(default=False, init=False, repr=False, compare=False)

    def apply_receipt(self, receipt: Mapping[str, Any]) -> None:
        if self._receipt_applied:
            raise RuntimeError("Receipt already applied to deployment result")
        self._receipt_applied = True

        gas_used = receipt.get("gasUsed")
        price = receipt.get("effectiveGasPrice")
        self.block_number = receipt.get("blockNumber", self.block_number)
        self.gas_used = int(gas_used) if gas_used is not None else None
        if self.gas_used is not None and price is not None:
            self.deployment_cost = self.gas_used * int(price)


@dataclass(frozen=True)
class VerificationOutcome:
    attempted: bool
    verified: bool = False
    message: str | None = None


@dataclass
class DeploymentReport:
    """Terminal report produced by the deployment orchestrator."""

    state: DeploymentState
    network: str
    dry_run: bool = False
    estimate: GasEstimate | None = None
    result: DeploymentResult | None = None
    verification: VerificationOutcome | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        if self.state is DeploymentState.DONE:
            return True
        return self.state is DeploymentState.ESTIMATING and self.error is None

    def as_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "network": self.network,
            "dryRun": self.dry_run,
        }
        if self.estimate is not None:
            body["estimate"] = {
                "gasEstimate": str(self.estimate.gas_estimate),
                "gasPrice": str(self.estimate.gas_price),
                "projectedCost": format_ether(self.estimate.projected_cost),
            }
        result = self.result
        if result is not None:
            body.update(
                {
                    "contractAddress": result.contract_address,
                    "deployer": result.deployer,
                    "chainId": result.chain_id,
                    "transactionHash": result.transaction_hash,
                    "blockNumber": result.block_number,
                    "timestamp": result.timestamp,
                    "gasUsed": str(result.gas_used) if result.gas_used is not None else None,
                    "deploymentCost": (
                        format_ether(result.deployment_cost)
                        if result.deployment_cost is not None
                        else None
                    ),
                    "initialState": {k: str(v) for k, v in result.initial_state.items()},
                }
            )
        if self.verification is not None:
            body["verification"] = {
                "attempted": self.verification.attempted,
                "verified": self.verification.verified,
                "message": self.verification.message,
            }
        if self.error is not None:
            body["error"] = self.error
        return body


@dataclass(frozen=True)
class NotificationPayload:
    """Outcome summary fanned out to webhook endpoints."""

    outcome: Outcome
    network: str
    timestamp: str = field(default_factory=lambda: utc_timestamp())
    contract_address: str | None = None
    deployer: str | None = None
    gas_used: int | None = None
    deployment_cost: int | None = None
    user_op_hash: str | None = None
    transaction_hash: str | None = None
    error: str | None = None

    @classmethod
    def for_deployment(
        cls,
        network: str,
        result: DeploymentResult | None = None,
        error: BaseException | str | None = None,
    ) -> NotificationPayload:
        outcome = Outcome.SUCCESS if error is None else Outcome.FAILURE
        return cls(
            outcome=outcome,
            network=network,
            contract_address=result.contract_address if result else None,
            deployer=result.deployer if result else None,
            gas_used=result.gas_used if result else None,
            deployment_cost=result.deployment_cost if result else None,
            transaction_hash=result.transaction_hash if result else None,
            error=str(error) if error is not None else None,
        )

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.outcome is Outcome.SUCCESS,
            "timestamp": self.timestamp,
            "network": self.network,
            "contractAddress": self.contract_address,
            "deployer": self.deployer,
            "gasUsed": str(self.gas_used) if self.gas_used is not None else None,
            "deploymentCost": (
                format_ether(self.deployment_cost) if self.deployment_cost is not None else None
            ),
            "userOpHash": self.user_op_hash,
            "transactionHash": self.transaction_hash,
            "error": self.error,
        }
        return {key: value for key, value in body.items() if value is not None}


def utc_timestamp(seconds: int | None = None) -> str:
    moment = (
        datetime.now(timezone.utc)
        if seconds is None
        else datetime.fromtimestamp(seconds, timezone.utc)
    )
    return moment.isoformat().replace("+00:00", "Z")
