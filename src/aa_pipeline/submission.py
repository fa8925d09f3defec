"""UserOperation submission with balance gating, retry and bounded confirmation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .account.client import SmartAccountClient
from .config import SubmissionConfig
from .exceptions import InsufficientBalanceError, OperationRevertedError
from .notifier import WebhookNotifier
from .retry import Sleep, retry_with_backoff
from .types import (
    NotificationPayload,
    OperationEnvelope,
    Outcome,
    SubmissionResult,
    SubmissionState,
)
from .utils import format_ether

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubmissionClient:
    """Drive one envelope through BUILT → SUBMITTED → CONFIRMED | FAILED."""

    def __init__(
        self,
        config: SubmissionConfig,
        account: SmartAccountClient,
        *,
        network: str = "",
        notifier: WebhookNotifier | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._account = account
        self._network = network
        self._notifier = notifier
        self._sleep = sleep

    async def check_balance(self) -> int:
        """Return the account balance, enforcing the configured floor."""

        balance = await self._account.balance(self._account.address())
        logger.info("Smart account balance: %s ETH", format_ether(balance))
        if balance < self._config.minimum_balance:
            raise InsufficientBalanceError(
                required=self._config.minimum_balance,
                available=balance,
                details={"address": self._account.address()},
            )
        return balance

    async def preview(self, envelope: OperationEnvelope) -> SubmissionResult:
        """Balance-check *envelope* and describe it without submitting."""

        balance = await self.check_balance()
        self._log_envelope(envelope, balance)
        logger.info("Dry run complete; user operation was not sent")
        return SubmissionResult(
            state=SubmissionState.BUILT,
            envelope=envelope,
            sender=self._account.address(),
            balance_before=balance,
        )

    async def submit(self, envelope: OperationEnvelope) -> SubmissionResult:
        result = SubmissionResult(
            state=SubmissionState.BUILT,
            envelope=envelope,
            sender=self._account.address(),
            balance_before=0,
        )

        try:
            result.balance_before = await self.check_balance()
            self._log_envelope(envelope, result.balance_before)

            user_op = await self._retry(
                lambda: self._account.build_user_operation(envelope), "build user operation"
            )
            # The signed operation is reused verbatim so the bundler can deduplicate retries
            result.handle = await self._retry(
                lambda: self._account.send_user_operation(user_op), "send user operation"
            )
            result.state = SubmissionState.SUBMITTED

            logger.info("Waiting for user operation %s to be mined", result.handle)
            record = await self._account.wait_for_confirmation(
                result.handle,
                timeout=self._config.confirmation_timeout,
                poll_interval=self._config.poll_interval,
            )
            result.record = record
            if not record.success:
                raise OperationRevertedError(
                    f"User operation {record.user_op_hash} reverted in {record.transaction_hash}",
                    details={"transaction_hash": record.transaction_hash},
                )
            result.state = SubmissionState.CONFIRMED

            balance_after = await self._account.balance(self._account.address())
            self._apply_cost(result, balance_after)
        except Exception as exc:
            result.state = SubmissionState.FAILED
            logger.error("User operation submission failed: %s", exc)
            await self._notify(result, error=exc)
            raise

        logger.info(
            "User operation confirmed tx=%s gas cost=%s ETH%s",
            record.transaction_hash,
            format_ether(result.gas_cost or 0),
            " (estimated)" if result.cost_is_estimate else "",
        )
        await self._notify(result)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _retry(self, action: Callable[[], Awaitable[T]], description: str) -> T:
        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        return await retry_with_backoff(
            action,
            max_retries=self._config.max_retries,
            base_delay=self._config.base_delay,
            description=description,
            **kwargs,
        )

    def _apply_cost(self, result: SubmissionResult, balance_after: int) -> None:
        result.balance_after = balance_after
        record = result.record
        if record is not None and record.actual_gas_cost is not None:
            result.gas_cost = record.actual_gas_cost
            result.cost_is_estimate = False
            return

        # Balance delta conflates fees with value and breaks under a paymaster
        result.gas_cost = result.balance_before - balance_after - result.envelope.value
        result.cost_is_estimate = True

    def _log_envelope(self, envelope: OperationEnvelope, balance: int) -> None:
        logger.info("User operation target: %s", envelope.target)
        logger.info("User operation value: %s ETH", format_ether(envelope.value))
        logger.info("User operation data: %s (%d bytes)", envelope.data, envelope.data_size)
        logger.debug(
            "Projected balance after transfer: %s ETH", format_ether(balance - envelope.value)
        )

    async def _notify(self, result: SubmissionResult, error: BaseException | None = None) -> None:
        if self._notifier is None:
            return
        payload = NotificationPayload(
            outcome=Outcome.FAILURE if error is not None else Outcome.SUCCESS,
            network=self._network,
            user_op_hash=result.handle.user_op_hash if result.handle else None,
            transaction_hash=result.record.transaction_hash if result.record else None,
            error=str(error) if error is not None else None,
        )
        await self._notifier.notify(payload)
