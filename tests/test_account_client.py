from __future__ import annotations

import asyncio
from typing import Any, cast

import pytest
from eth_abi import decode as abi_decode
from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes

from aa_pipeline.account.client import SmartAccountClient
from aa_pipeline.account.connections import RpcConnection
from aa_pipeline.account.user_operation import (
    CREATE_ACCOUNT_SELECTOR,
    EXECUTE_SELECTOR,
    UserOperation,
    UserOperationGas,
    build_init_code,
    encode_execute,
)
from aa_pipeline.constants import (
    DUMMY_SIGNATURE,
    ENTRY_POINT_V06,
    SIMPLE_ACCOUNT_FACTORY_V06,
)
from aa_pipeline.exceptions import ConfirmationTimeoutError, SubmissionError
from aa_pipeline.types import OperationEnvelope, SubmissionHandle

OWNER_KEY = "0x" + "42" * 32
ACCOUNT_ADDRESS = "0x00000000000000000000000000000000000000A1"
TARGET = "0x00000000000000000000000000000000000000B2"
SEPOLIA = 11155111


class DummyRpc:
    def __init__(self, *, code: bytes = b"", receipts: list[Any] | None = None) -> None:
        self.code = code
        self.receipts = list(receipts or [])
        self.requests: list[tuple[str, list[Any]]] = []
        self.calls: list[tuple[str, list[Any]]] = []
        self.disconnected = False

    async def call(self, to, selector, input_types, args, output_types):
        self.calls.append((to, list(args)))
        return (7,)

    async def get_code(self, address: str) -> bytes:
        return self.code

    async def get_balance(self, address: str) -> int:
        return 10**18

    async def base_fee(self) -> int:
        return 100

    async def max_priority_fee(self) -> int:
        return 3

    async def disconnect(self) -> None:
        self.disconnected = True

    async def request(self, method: str, params: list[Any]) -> Any:
        self.requests.append((method, params))
        if method == "rundler_maxPriorityFeePerGas":
            return "0x5"
        if method == "eth_estimateUserOperationGas":
            return {
                "callGasLimit": "0x1000",
                "verificationGasLimit": "0x2000",
                "preVerificationGas": "0x300",
            }
        if method == "eth_sendUserOperation":
            return "0x" + "ab" * 32
        if method == "eth_getUserOperationReceipt":
            item = self.receipts.pop(0) if self.receipts else None
            if isinstance(item, Exception):
                raise item
            return item
        raise AssertionError(f"unexpected method {method}")


def _client(rpc: DummyRpc, **kwargs: Any) -> SmartAccountClient:
    return SmartAccountClient(
        Account.from_key(OWNER_KEY),
        cast(RpcConnection, rpc),
        account_address=ACCOUNT_ADDRESS,
        chain_id=SEPOLIA,
        entry_point=ENTRY_POINT_V06,
        factory_address=SIMPLE_ACCOUNT_FACTORY_V06,
        priority_fee_method=kwargs.pop("priority_fee_method", "rundler_maxPriorityFeePerGas"),
        **kwargs,
    )


def test_encode_execute_layout() -> None:
    encoded = HexBytes(encode_execute(TARGET, 5, b"\x12\x34"))

    assert encoded[:4] == EXECUTE_SELECTOR
    target, value, data = abi_decode(["address", "uint256", "bytes"], encoded[4:])
    assert target.lower() == TARGET.lower()
    assert value == 5
    assert data == b"\x12\x34"


def test_build_init_code_prefixes_factory() -> None:
    owner = Account.from_key(OWNER_KEY).address
    init_code = HexBytes(build_init_code(SIMPLE_ACCOUNT_FACTORY_V06, owner, 0))

    assert init_code[:20] == HexBytes(SIMPLE_ACCOUNT_FACTORY_V06)
    assert init_code[20:24] == CREATE_ACCOUNT_SELECTOR
    decoded_owner, salt = abi_decode(["address", "uint256"], init_code[24:])
    assert decoded_owner.lower() == owner.lower()
    assert salt == 0


def test_user_operation_hash_depends_on_chain_and_entry_point() -> None:
    user_op = UserOperation(sender=ACCOUNT_ADDRESS, nonce=1, init_code="0x", call_data="0x")

    digest = user_op.hash(ENTRY_POINT_V06, SEPOLIA)

    assert len(digest) == 32
    assert digest != user_op.hash(ENTRY_POINT_V06, 1)
    assert digest != user_op.hash(SIMPLE_ACCOUNT_FACTORY_V06, SEPOLIA)
    # the signature is not part of the hashed payload
    assert user_op.with_signature("0x1234").hash(ENTRY_POINT_V06, SEPOLIA) == digest
    assert len(user_op.pack()) == 10 * 32


def test_user_operation_to_rpc_uses_hex_quantities() -> None:
    gas = UserOperationGas(call_gas_limit=16, verification_gas_limit=1, pre_verification_gas=0)
    user_op = UserOperation(
        sender=ACCOUNT_ADDRESS, nonce=0, init_code="0x", call_data="0xabcd"
    ).with_gas(gas)

    body = user_op.to_rpc()

    assert body["nonce"] == "0x0"
    assert body["callGasLimit"] == "0x10"
    assert body["preVerificationGas"] == "0x0"
    assert body["callData"] == "0xabcd"
    assert body["paymasterAndData"] == "0x"


def test_build_user_operation_for_undeployed_account() -> None:
    rpc = DummyRpc(code=b"")
    client = _client(rpc)
    envelope = OperationEnvelope(target=TARGET, data="0x1234", value=9)

    user_op = asyncio.run(client.build_user_operation(envelope))

    assert user_op.nonce == 7
    assert user_op.init_code == build_init_code(
        SIMPLE_ACCOUNT_FACTORY_V06, client.owner, 0
    )
    assert user_op.call_data == encode_execute(TARGET, 9, b"\x12\x34")
    assert user_op.max_priority_fee_per_gas == 5
    assert user_op.max_fee_per_gas == 100 * 2 + 5
    assert user_op.call_gas_limit == 0x1000
    assert user_op.verification_gas_limit == 0x2000

    estimate_params = dict(rpc.requests)["eth_estimateUserOperationGas"]
    assert estimate_params[0]["signature"] == DUMMY_SIGNATURE
    assert estimate_params[1] == ENTRY_POINT_V06

    digest = user_op.hash(ENTRY_POINT_V06, SEPOLIA)
    recovered = Account.recover_message(
        encode_defunct(primitive=digest), signature=HexBytes(user_op.signature)
    )
    assert recovered == client.owner


def test_build_user_operation_for_deployed_account_skips_init_code() -> None:
    rpc = DummyRpc(code=b"\x60\x80")
    client = _client(rpc, priority_fee_method=None)

    user_op = asyncio.run(client.build_user_operation(OperationEnvelope(target=TARGET)))

    assert user_op.init_code == "0x"
    assert user_op.max_priority_fee_per_gas == 3
    assert "rundler_maxPriorityFeePerGas" not in dict(rpc.requests)


def test_send_user_operation_returns_handle() -> None:
    rpc = DummyRpc()
    client = _client(rpc)
    user_op = UserOperation(sender=ACCOUNT_ADDRESS, nonce=0, init_code="0x", call_data="0x")

    handle = asyncio.run(client.send_user_operation(user_op))

    assert handle == SubmissionHandle(user_op_hash="0x" + "ab" * 32, entry_point=ENTRY_POINT_V06)
    assert rpc.requests[-1] == ("eth_sendUserOperation", [user_op.to_rpc(), ENTRY_POINT_V06])


def test_send_user_operation_rejects_missing_hash() -> None:
    class NoHashRpc(DummyRpc):
        async def request(self, method: str, params: list[Any]) -> Any:
            return None

    client = _client(NoHashRpc())
    user_op = UserOperation(sender=ACCOUNT_ADDRESS, nonce=0, init_code="0x", call_data="0x")

    with pytest.raises(SubmissionError) as excinfo:
        asyncio.run(client.send_user_operation(user_op))

    assert excinfo.value.method == "eth_sendUserOperation"


def test_wait_for_confirmation_polls_until_receipt() -> None:
    receipt = {
        "userOpHash": "0x" + "ab" * 32,
        "success": True,
        "actualGasCost": "0x64",
        "receipt": {"transactionHash": "0x" + "cd" * 32, "blockNumber": "0x2"},
    }
    rpc = DummyRpc(receipts=[None, None, receipt])
    client = _client(rpc)
    handle = SubmissionHandle(user_op_hash="0x" + "ab" * 32, entry_point=ENTRY_POINT_V06)

    record = asyncio.run(client.wait_for_confirmation(handle, timeout=5, poll_interval=0))

    assert record.transaction_hash == "0x" + "cd" * 32
    assert record.actual_gas_cost == 100
    polls = [method for method, _ in rpc.requests if method == "eth_getUserOperationReceipt"]
    assert len(polls) == 3


def test_wait_for_confirmation_survives_transport_errors() -> None:
    receipt = {
        "userOpHash": "0x" + "ab" * 32,
        "success": True,
        "receipt": {"transactionHash": "0x" + "cd" * 32, "blockNumber": "0x3"},
    }
    rpc = DummyRpc(
        receipts=[
            ConnectionError("connection reset by peer"),
            TimeoutError("read timed out"),
            receipt,
        ]
    )
    handle = SubmissionHandle(user_op_hash="0x" + "ab" * 32, entry_point=ENTRY_POINT_V06)

    record = asyncio.run(_client(rpc).wait_for_confirmation(handle, timeout=5, poll_interval=0))

    assert record.block_number == 3
    polls = [method for method, _ in rpc.requests if method == "eth_getUserOperationReceipt"]
    assert len(polls) == 3


def test_wait_for_confirmation_times_out() -> None:
    client = _client(DummyRpc())
    handle = SubmissionHandle(user_op_hash="0x" + "ef" * 32, entry_point=ENTRY_POINT_V06)

    with pytest.raises(ConfirmationTimeoutError) as excinfo:
        asyncio.run(client.wait_for_confirmation(handle, timeout=0.05, poll_interval=0.01))

    assert excinfo.value.handle == handle.user_op_hash
    assert not excinfo.value.retryable


def test_close_disconnects() -> None:
    rpc = DummyRpc()

    asyncio.run(_client(rpc).close())

    assert rpc.disconnected
