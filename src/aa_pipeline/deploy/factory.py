"""Construction and signing of contract creation transactions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from eth_abi import encode as abi_encode
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3.utils.address import get_create_address

from .artifacts import ContractArtifact
from .connections import ChainConnection

logger = logging.getLogger(__name__)

GAS_LIMIT_BUFFER_PERCENT = 20


@dataclass(frozen=True)
class SignedDeployment:
    """A signed creation transaction, reused verbatim across resubmission."""

    raw_transaction: bytes
    transaction_hash: str
    nonce: int
    gas_limit: int
    gas_price: int
    contract_address: str


class ContractFactory:
    """Deploys *artifact* from *signer* over *connection*."""

    def __init__(
        self,
        artifact: ContractArtifact,
        connection: ChainConnection,
        signer: LocalAccount,
        *,
        chain_id: int,
        constructor_args: Sequence[Any] = (),
    ) -> None:
        self.artifact = artifact
        self._connection = connection
        self._signer = signer
        self._chain_id = chain_id
        self._constructor_args = tuple(constructor_args)

    @property
    def deployer(self) -> str:
        return self._signer.address

    @property
    def encoded_constructor_args(self) -> bytes:
        types = self.artifact.constructor_input_types()
        if not types:
            return b""
        return abi_encode(types, list(self._constructor_args))

    def creation_data(self) -> str:
        data = HexBytes(self.artifact.bytecode) + self.encoded_constructor_args
        return HexBytes(data).to_0x_hex()

    async def estimate_gas(self) -> int:
        """Simulate the creation transaction and return its gas usage."""
        return await self._connection.estimate_gas(
            {"from": self.deployer, "data": self.creation_data()}
        )

    async def build_signed(self) -> SignedDeployment:
        nonce = await self._connection.get_transaction_count(self.deployer)
        gas_estimate = await self.estimate_gas()
        gas_limit = gas_estimate * (100 + GAS_LIMIT_BUFFER_PERCENT) // 100
        gas_price = await self._connection.gas_price()

        transaction = {
            "chainId": self._chain_id,
            "nonce": nonce,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "value": 0,
            "data": self.creation_data(),
        }
        signed = self._signer.sign_transaction(transaction)
        contract_address = get_create_address(self.deployer, nonce)
        logger.debug(
            "Signed deployment of %s nonce=%s gas=%s predicted=%s",
            self.artifact.contract_name,
            nonce,
            gas_limit,
            contract_address,
        )
        return SignedDeployment(
            raw_transaction=bytes(signed.raw_transaction),
            transaction_hash=HexBytes(signed.hash).to_0x_hex(),
            nonce=nonce,
            gas_limit=gas_limit,
            gas_price=gas_price,
            contract_address=contract_address,
        )
