"""Chain connection used by the deployment workflow."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from hexbytes import HexBytes
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TimeExhausted

from ..exceptions import ConfirmationTimeoutError, ProvisioningError
from ..utils import serialise_receipt

logger = logging.getLogger(__name__)


class ChainConnection:
    """Async node access for deploying and inspecting a contract."""

    def __init__(self, rpc_url: str, *, request_timeout: float) -> None:
        self.rpc_url = rpc_url
        self._request_timeout = request_timeout
        self._web3: AsyncWeb3 | None = None

    async def connect(self) -> None:
        web3 = AsyncWeb3(
            AsyncHTTPProvider(self.rpc_url, request_kwargs={"timeout": self._request_timeout})
        )
        try:
            await web3.is_connected(show_traceback=True)
        except Exception as exc:
            raise ProvisioningError(
                "Unable to connect to deployment RPC", details={"error": str(exc)}
            ) from exc
        self._web3 = web3

    async def disconnect(self) -> None:
        if self._web3 is not None:
            await self._web3.provider.disconnect()
        self._web3 = None

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise ProvisioningError("Deployment RPC not connected; call connect() first")
        return self._web3

    async def chain_id(self) -> int:
        return int(await self.web3.eth.chain_id)

    async def gas_price(self) -> int:
        return int(await self.web3.eth.gas_price)

    async def estimate_gas(self, transaction: Mapping[str, Any]) -> int:
        return int(await self.web3.eth.estimate_gas(dict(transaction)))

    async def get_transaction_count(self, address: str) -> int:
        return int(await self.web3.eth.get_transaction_count(address, "pending"))

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        tx_hash = await self.web3.eth.send_raw_transaction(raw_transaction)
        return HexBytes(tx_hash).to_0x_hex()

    async def wait_for_receipt(self, tx_hash: str, *, timeout: float) -> dict[str, Any]:
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                HexBytes(tx_hash), timeout=timeout
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeoutError(tx_hash, timeout) from exc
        return serialise_receipt(dict(receipt))

    async def block_timestamp(self, block_number: int) -> int:
        block = await self.web3.eth.get_block(block_number)
        return int(block["timestamp"])

    async def call(self, to: str, data: bytes) -> bytes:
        result = await self.web3.eth.call(
            {"to": AsyncWeb3.to_checksum_address(to), "data": data}
        )
        return bytes(result)
