"""JSON-RPC connection shared by node and bundler calls."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.types import RPCEndpoint

from ..exceptions import ProvisioningError, SubmissionError

logger = logging.getLogger(__name__)


class RpcConnection:
    """Thin async wrapper over an AsyncWeb3 provider.

    The same endpoint answers node methods (balances, code, ``eth_call``)
    and the ERC-4337 bundler namespace.
    """

    def __init__(self, rpc_url: str, *, request_timeout: float) -> None:
        self.rpc_url = rpc_url
        self._request_timeout = request_timeout
        self._web3: AsyncWeb3 | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        provider = AsyncHTTPProvider(
            self.rpc_url, request_kwargs={"timeout": self._request_timeout}
        )
        web3 = AsyncWeb3(provider)
        try:
            connected = await web3.is_connected(show_traceback=True)
        except Exception as exc:
            raise ProvisioningError(
                "Unable to reach account provider",
                endpoint=self._redacted_url,
                details={"error": str(exc)},
            ) from exc
        if not connected:  # pragma: no cover - is_connected raises with show_traceback
            raise ProvisioningError("Unable to reach account provider", endpoint=self._redacted_url)
        self._web3 = web3
        logger.debug("Connected to account provider at %s", self._redacted_url)

    async def disconnect(self) -> None:
        if self._web3 is not None:
            await self._web3.provider.disconnect()
        self._web3 = None

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise ProvisioningError(
                "Account provider not connected; call connect() first",
                endpoint=self._redacted_url,
            )
        return self._web3

    # ------------------------------------------------------------------
    # Node reads
    # ------------------------------------------------------------------
    async def chain_id(self) -> int:
        return int(await self.web3.eth.chain_id)

    async def get_balance(self, address: str) -> int:
        return int(await self.web3.eth.get_balance(AsyncWeb3.to_checksum_address(address)))

    async def get_code(self, address: str) -> bytes:
        return bytes(await self.web3.eth.get_code(AsyncWeb3.to_checksum_address(address)))

    async def base_fee(self) -> int:
        block = await self.web3.eth.get_block("latest")
        return int(block.get("baseFeePerGas") or 0)

    async def max_priority_fee(self) -> int:
        return int(await self.web3.eth.max_priority_fee)

    async def call(
        self,
        to: str,
        selector: bytes,
        input_types: Sequence[str],
        args: Sequence[Any],
        output_types: Sequence[str],
    ) -> tuple[Any, ...]:
        """Execute a read-only contract call and decode the result."""

        call_data = selector + (abi_encode(list(input_types), list(args)) if input_types else b"")
        result = await self.web3.eth.call(
            {"to": AsyncWeb3.to_checksum_address(to), "data": call_data}
        )
        if not output_types:
            return tuple()
        return tuple(abi_decode(list(output_types), bytes(result)))

    # ------------------------------------------------------------------
    # Raw JSON-RPC
    # ------------------------------------------------------------------
    async def request(self, method: str, params: Sequence[Any]) -> Any:
        """Issue a raw JSON-RPC request and return its ``result`` member."""

        response = await self.web3.provider.make_request(RPCEndpoint(method), list(params))
        error = response.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise SubmissionError(
                f"{method} failed: {message}",
                method=method,
                code=code,
                details={"error": error},
            )
        return response.get("result")

    @property
    def _redacted_url(self) -> str:
        # Alchemy URLs carry the API key as the last path segment
        head, sep, _ = self.rpc_url.rpartition("/v2/")
        return f"{head}{sep}***" if sep else self.rpc_url
