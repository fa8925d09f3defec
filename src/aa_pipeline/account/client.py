"""Smart account client bound to a local signer and a bundler endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes

from ..constants import DUMMY_SIGNATURE
from ..exceptions import ConfirmationTimeoutError, SubmissionError
from ..types import OperationEnvelope, SubmissionHandle, TransactionRecord
from .connections import RpcConnection
from .user_operation import (
    GET_NONCE_SELECTOR,
    UserOperation,
    UserOperationGas,
    build_init_code,
    encode_execute,
)

logger = logging.getLogger(__name__)


class SmartAccountClient:
    """Counterfactual smart account owned by a local signer.

    Instances are read-mostly; concurrent submissions may share one client
    as long as each builds its own envelope.
    """

    def __init__(
        self,
        signer: LocalAccount,
        connection: RpcConnection,
        *,
        account_address: str,
        chain_id: int,
        entry_point: str,
        factory_address: str,
        salt: int = 0,
        priority_fee_method: str | None = None,
    ) -> None:
        self._signer = signer
        self._connection = connection
        self._address = account_address
        self._chain_id = chain_id
        self._entry_point = entry_point
        self._factory_address = factory_address
        self._salt = salt
        self._priority_fee_method = priority_fee_method

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def address(self) -> str:
        return self._address

    @property
    def owner(self) -> str:
        return self._signer.address

    @property
    def entry_point(self) -> str:
        return self._entry_point

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def is_deployed(self) -> bool:
        code = await self._connection.get_code(self._address)
        return len(code) > 0

    async def balance(self, address: str | None = None) -> int:
        return await self._connection.get_balance(address or self._address)

    # ------------------------------------------------------------------
    # Operation construction
    # ------------------------------------------------------------------
    async def build_user_operation(self, envelope: OperationEnvelope) -> UserOperation:
        """Assemble, estimate and sign a UserOperation for *envelope*."""

        try:
            (nonce,) = await self._connection.call(
                self._entry_point,
                GET_NONCE_SELECTOR,
                ["address", "uint192"],
                [self._address, 0],
                ["uint256"],
            )
            deployed = await self.is_deployed()
            max_fee, priority_fee = await self._fee_data()
        except SubmissionError:
            raise
        except Exception as exc:
            raise SubmissionError(
                "Failed to prepare user operation",
                details={"sender": self._address, "error": str(exc)},
            ) from exc

        init_code = (
            "0x" if deployed else build_init_code(self._factory_address, self.owner, self._salt)
        )
        draft = UserOperation(
            sender=self._address,
            nonce=int(nonce),
            init_code=init_code,
            call_data=encode_execute(envelope.target, envelope.value, envelope.data_bytes),
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority_fee,
            signature=DUMMY_SIGNATURE,
        )

        estimate = await self._connection.request(
            "eth_estimateUserOperationGas", [draft.to_rpc(), self._entry_point]
        )
        if not isinstance(estimate, dict):
            raise SubmissionError(
                "Bundler returned no gas estimate",
                method="eth_estimateUserOperationGas",
                details={"result": estimate},
            )
        user_op = draft.with_gas(UserOperationGas.from_rpc(estimate))
        signed = user_op.with_signature(self._sign(user_op))
        logger.debug(
            "Built user operation sender=%s nonce=%s deployed=%s", self._address, nonce, deployed
        )
        return signed

    def _sign(self, user_op: UserOperation) -> str:
        digest = user_op.hash(self._entry_point, self._chain_id)
        signed = self._signer.sign_message(encode_defunct(primitive=digest))
        return HexBytes(signed.signature).to_0x_hex()

    async def _fee_data(self) -> tuple[int, int]:
        if self._priority_fee_method:
            raw = await self._connection.request(self._priority_fee_method, [])
            priority_fee = int(raw, 16) if isinstance(raw, str) else int(raw)
        else:
            priority_fee = await self._connection.max_priority_fee()
        base_fee = await self._connection.base_fee()
        return base_fee * 2 + priority_fee, priority_fee

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def send_user_operation(self, user_op: UserOperation) -> SubmissionHandle:
        """Hand a signed operation to the bundler and return its handle."""

        result = await self._connection.request(
            "eth_sendUserOperation", [user_op.to_rpc(), self._entry_point]
        )
        if not isinstance(result, str):
            raise SubmissionError(
                "Bundler did not return a user operation hash",
                method="eth_sendUserOperation",
                details={"result": result},
            )
        logger.info("User operation accepted hash=%s", result)
        return SubmissionHandle(user_op_hash=result, entry_point=self._entry_point)

    async def send_operation(self, envelope: OperationEnvelope) -> SubmissionHandle:
        return await self.send_user_operation(await self.build_user_operation(envelope))

    async def get_receipt(self, handle: SubmissionHandle) -> TransactionRecord | None:
        result = await self._connection.request(
            "eth_getUserOperationReceipt", [handle.user_op_hash]
        )
        if not result:
            return None
        return TransactionRecord.from_rpc(result)

    async def wait_for_confirmation(
        self,
        handle: SubmissionHandle,
        *,
        timeout: float,
        poll_interval: float = 2.0,
    ) -> TransactionRecord:
        """Poll the bundler until *handle* is mined.

        The polling task is cancelled once ``timeout`` elapses.

        Raises:
            ConfirmationTimeoutError: If no receipt appears in time
        """

        async def _poll() -> TransactionRecord:
            attempt = 0
            while True:
                attempt += 1
                try:
                    record = await self.get_receipt(handle)
                except Exception as exc:
                    # Only the overall deadline ends the wait
                    logger.debug("Receipt poll %s for %s failed: %s", attempt, handle, exc)
                    record = None
                if record is not None:
                    return record
                await asyncio.sleep(poll_interval)

        try:
            record = await asyncio.wait_for(_poll(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ConfirmationTimeoutError(
                handle.user_op_hash, timeout, details={"entry_point": handle.entry_point}
            ) from exc

        logger.info(
            "User operation %s mined in tx=%s block=%s",
            handle,
            record.transaction_hash,
            record.block_number,
        )
        return record

    async def close(self) -> None:
        await self._connection.disconnect()

    def describe(self) -> dict[str, Any]:
        return {
            "address": self._address,
            "owner": self.owner,
            "chain_id": self._chain_id,
            "entry_point": self._entry_point,
            "factory": self._factory_address,
        }
