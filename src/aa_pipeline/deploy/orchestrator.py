"""Contract deployment workflow: estimate, deploy, verify, notify."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, cast

from eth_abi import decode as abi_decode

from ..account.provisioner import derive_signer
from ..account.user_operation import function_selector
from ..config import DeploymentConfig, ExplorerConfig
from ..constants import is_test_network
from ..exceptions import DeploymentError, ProvisioningError, TransientDeploymentError
from ..notifier import WebhookNotifier
from ..retry import Sleep, retry_with_backoff
from ..types import (
    DeploymentReport,
    DeploymentResult,
    DeploymentState,
    NotificationPayload,
    VerificationOutcome,
    utc_timestamp,
)
from ..utils import format_ether
from .artifacts import ContractArtifact
from .connections import ChainConnection
from .factory import ContractFactory, SignedDeployment
from .gas import GasEstimator
from .verification import ExplorerVerifier

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """Run one deployment through IDLE → … → DONE | FAILED.

    The dry-run path only estimates and never notifies. The real path
    notifies exactly once with its terminal outcome.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        explorer_config: ExplorerConfig,
        notifier: WebhookNotifier,
        *,
        verifier: ExplorerVerifier | None = None,
        connection: ChainConnection | None = None,
        artifact: ContractArtifact | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._explorer_config = explorer_config
        self._notifier = notifier
        self._sleep = sleep
        self._verifier = verifier or ExplorerVerifier(explorer_config, sleep=sleep)
        self._connection = connection
        self._artifact = artifact
        self.state = DeploymentState.IDLE

    async def deploy(self, dry_run: bool = False) -> DeploymentReport:
        """Deploy the configured artifact, or only estimate when *dry_run*.

        Raises:
            ConfigurationError: Before any network access when settings are incomplete
            PipelineError: The terminal deployment failure, after notification
        """
        self._config.validate()
        signer = derive_signer(cast(str, self._config.private_key))
        artifact = self._artifact or ContractArtifact.load(self._config.artifact_path)
        connection = self._connection or ChainConnection(
            self._config.resolved_rpc_url(), request_timeout=self._config.request_timeout
        )

        if dry_run:
            return await self._estimate_only(connection, artifact, signer)
        return await self._deploy(connection, artifact, signer)

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------
    async def _estimate_only(self, connection, artifact, signer) -> DeploymentReport:
        network = self._config.resolved_network
        self.state = DeploymentState.ESTIMATING
        report = DeploymentReport(state=self.state, network=network.name, dry_run=True)
        logger.info(
            "Dry run: estimating deployment of %s on %s", artifact.contract_name, network.name
        )

        try:
            await connection.connect()
            chain_id = await self._check_chain(connection)
            factory = ContractFactory(
                artifact,
                connection,
                signer,
                chain_id=chain_id,
                constructor_args=self._config.constructor_args,
            )
            report.estimate = await GasEstimator(connection).estimate(factory)
        except Exception as exc:
            logger.warning("Gas estimation failed; reporting without estimate: %s", exc)
            report.error = str(exc)
        finally:
            await connection.disconnect()

        logger.info("Dry run complete; no transaction was sent")
        return report

    # ------------------------------------------------------------------
    # Real deployment
    # ------------------------------------------------------------------
    async def _deploy(self, connection, artifact, signer) -> DeploymentReport:
        network = self._config.resolved_network
        self.state = DeploymentState.DEPLOYING
        report = DeploymentReport(state=self.state, network=network.name)
        logger.info("Deploying %s contract to %s...", artifact.contract_name, network.name)

        try:
            await connection.connect()
            chain_id = await self._check_chain(connection)

            factory = ContractFactory(
                artifact,
                connection,
                signer,
                chain_id=chain_id,
                constructor_args=self._config.constructor_args,
            )
            signed = await self._with_retry(factory.build_signed, "prepare deployment")
            result = DeploymentResult(
                contract_address=signed.contract_address,
                deployer=factory.deployer,
                network=network.name,
                chain_id=chain_id,
                transaction_hash=signed.transaction_hash,
            )
            report.result = result

            tx_hash = await self._with_retry(
                lambda: self._send(connection, signed), "deployment transaction"
            )
            logger.info("Deployment transaction sent hash=%s", tx_hash)

            receipt = await connection.wait_for_receipt(
                tx_hash, timeout=self._config.receipt_timeout
            )
            if receipt.get("status") != 1:
                raise DeploymentError(
                    f"Deployment transaction {tx_hash} reverted",
                    transaction_hash=tx_hash,
                    details={"receipt": receipt},
                )
            result.contract_address = receipt.get("contractAddress") or result.contract_address
            result.apply_receipt(receipt)
            await self._apply_block_time(connection, result)
            self.state = report.state = DeploymentState.DEPLOYED
            self._log_deployment(result)

            result.initial_state = await self._read_initial_state(
                connection, artifact, result.contract_address
            )
        except Exception as exc:
            self.state = report.state = DeploymentState.FAILED
            report.error = str(exc)
            logger.error("Deployment failed: %s", exc)
            await self._notifier.notify(
                NotificationPayload.for_deployment(network.name, report.result, error=exc)
            )
            raise
        finally:
            await connection.disconnect()

        report.verification = await self._verify(result, factory)
        self.state = report.state = DeploymentState.DONE
        logger.info("Deployment successful: %s", result.contract_address)
        await self._notifier.notify(NotificationPayload.for_deployment(network.name, result))
        return report

    async def _check_chain(self, connection: ChainConnection) -> int:
        network = self._config.resolved_network
        chain_id = await connection.chain_id()
        if chain_id != network.chain_id:
            raise ProvisioningError(
                f"RPC serves chain {chain_id}, expected {network.name} ({network.chain_id})",
                details={"chain_id": chain_id},
            )
        return chain_id

    async def _send(self, connection: ChainConnection, signed: SignedDeployment) -> str:
        try:
            return await connection.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            # A resend of the identical raw transaction is already in the pool
            if "already known" in str(exc).lower():
                logger.info("Deployment transaction already known to the node")
                return signed.transaction_hash
            raise TransientDeploymentError(
                f"Failed to submit deployment transaction: {exc}",
                details={"error": str(exc)},
            ) from exc

    async def _with_retry(self, action, description: str):
        return await retry_with_backoff(
            action,
            max_retries=self._config.max_retries,
            base_delay=self._config.base_delay,
            description=description,
            sleep=self._sleep,
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------
    async def _verify(
        self, result: DeploymentResult, factory: ContractFactory
    ) -> VerificationOutcome:
        if not is_test_network(result.chain_id):
            logger.info("Chain %s is not a test network; skipping verification", result.chain_id)
            return VerificationOutcome(attempted=False, message="not a test network")

        if not self._verifier.configured:
            logger.warning("Explorer API key not set; skipping verification")
            return VerificationOutcome(attempted=False, message="explorer API key not set")

        if factory.artifact.build_info is None:
            logger.warning("No build info for %s; skipping verification", result.contract_address)
            return VerificationOutcome(attempted=False, message="build info unavailable")

        self.state = DeploymentState.VERIFYING
        logger.info("Verifying %s on block explorer", result.contract_address)
        try:
            message = await retry_with_backoff(
                lambda: self._verifier.verify(
                    result.contract_address,
                    factory.artifact,
                    factory.encoded_constructor_args,
                    chain_id=result.chain_id,
                ),
                max_retries=self._explorer_config.max_retries,
                base_delay=self._explorer_config.base_delay,
                pre_delay=self._explorer_config.pre_delay,
                description="contract verification",
                sleep=self._sleep,
            )
        except Exception as exc:
            logger.warning("Verification failed (deployment unaffected): %s", exc)
            return VerificationOutcome(attempted=True, verified=False, message=str(exc))

        return VerificationOutcome(attempted=True, verified=True, message=message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _read_initial_state(
        self, connection: ChainConnection, artifact: ContractArtifact, address: str
    ) -> dict[str, Any]:
        available = artifact.view_functions()
        state: dict[str, Any] = {}
        for name in self._config.state_reads:
            if name not in available:
                continue
            try:
                raw = await connection.call(address, function_selector(f"{name}()"))
                decoded = abi_decode(artifact.output_types(name), raw)
            except Exception as exc:  # pragma: no cover - informational read
                logger.warning("Unable to read %s() after deployment: %s", name, exc)
                continue
            state[name] = decoded[0] if len(decoded) == 1 else list(decoded)
            logger.info("Initial %s: %s", name, state[name])
        return state

    async def _apply_block_time(
        self, connection: ChainConnection, result: DeploymentResult
    ) -> None:
        if result.block_number is None:
            return
        try:
            seconds = await connection.block_timestamp(result.block_number)
        except Exception as exc:
            logger.warning("Unable to read block %s timestamp: %s", result.block_number, exc)
            return
        result.timestamp = utc_timestamp(seconds)

    def _log_deployment(self, result: DeploymentResult) -> None:
        logger.info("%s deployed to: %s", result.network, result.contract_address)
        logger.info(
            "Deployment info: deployer=%s block=%s timestamp=%s",
            result.deployer,
            result.block_number,
            result.timestamp,
        )
        if result.deployment_cost is not None:
            logger.info(
                "Gas used: %s, deployment cost: %s ETH",
                result.gas_used,
                format_ether(result.deployment_cost),
            )
