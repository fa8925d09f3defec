"""ERC-4337 v0.6 UserOperation primitives."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from eth_abi import encode as abi_encode
from hexbytes import HexBytes
from web3 import Web3

from ..utils import from_hex_int, to_hex_int


def function_selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


EXECUTE_SELECTOR = function_selector("execute(address,uint256,bytes)")
CREATE_ACCOUNT_SELECTOR = function_selector("createAccount(address,uint256)")
GET_ADDRESS_SELECTOR = function_selector("getAddress(address,uint256)")
GET_NONCE_SELECTOR = function_selector("getNonce(address,uint192)")


def encode_execute(target: str, value: int, data: bytes) -> str:
    """Encode SimpleAccount ``execute(dest, value, func)`` call data."""
    encoded = abi_encode(
        ["address", "uint256", "bytes"], [Web3.to_checksum_address(target), value, data]
    )
    return HexBytes(EXECUTE_SELECTOR + encoded).to_0x_hex()


def build_init_code(factory: str, owner: str, salt: int) -> str:
    """Factory address followed by ``createAccount(owner, salt)`` call data."""
    encoded = abi_encode(["address", "uint256"], [Web3.to_checksum_address(owner), salt])
    return HexBytes(
        HexBytes(Web3.to_checksum_address(factory)) + CREATE_ACCOUNT_SELECTOR + encoded
    ).to_0x_hex()


@dataclass(frozen=True)
class UserOperationGas:
    """Gas limits returned by ``eth_estimateUserOperationGas``."""

    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> UserOperationGas:
        return cls(
            call_gas_limit=from_hex_int(data.get("callGasLimit")) or 0,
            verification_gas_limit=from_hex_int(data.get("verificationGasLimit")) or 0,
            pre_verification_gas=from_hex_int(data.get("preVerificationGas")) or 0,
        )


@dataclass(frozen=True)
class UserOperation:
    """v0.6 UserOperation; values are raw integers, byte fields ``0x`` hex."""

    sender: str
    nonce: int
    init_code: str
    call_data: str
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: str = "0x"
    signature: str = "0x"

    def with_gas(self, gas: UserOperationGas) -> UserOperation:
        return replace(
            self,
            call_gas_limit=gas.call_gas_limit,
            verification_gas_limit=gas.verification_gas_limit,
            pre_verification_gas=gas.pre_verification_gas,
        )

    def with_signature(self, signature: str) -> UserOperation:
        return replace(self, signature=signature)

    def pack(self) -> bytes:
        """ABI-encode every field except the signature, hashing dynamic ones."""
        return abi_encode(
            [
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes32",
            ],
            [
                Web3.to_checksum_address(self.sender),
                self.nonce,
                Web3.keccak(hexstr=self.init_code),
                Web3.keccak(hexstr=self.call_data),
                self.call_gas_limit,
                self.verification_gas_limit,
                self.pre_verification_gas,
                self.max_fee_per_gas,
                self.max_priority_fee_per_gas,
                Web3.keccak(hexstr=self.paymaster_and_data),
            ],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """The EntryPoint ``getUserOpHash`` value for this operation."""
        return bytes(
            Web3.keccak(
                abi_encode(
                    ["bytes32", "address", "uint256"],
                    [Web3.keccak(self.pack()), Web3.to_checksum_address(entry_point), chain_id],
                )
            )
        )

    def to_rpc(self) -> dict[str, str]:
        return {
            "sender": self.sender,
            "nonce": to_hex_int(self.nonce),
            "initCode": self.init_code,
            "callData": self.call_data,
            "callGasLimit": to_hex_int(self.call_gas_limit),
            "verificationGasLimit": to_hex_int(self.verification_gas_limit),
            "preVerificationGas": to_hex_int(self.pre_verification_gas),
            "maxFeePerGas": to_hex_int(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_hex_int(self.max_priority_fee_per_gas),
            "paymasterAndData": self.paymaster_and_data,
            "signature": self.signature,
        }
