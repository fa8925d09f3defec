"""Utility functions for the pipeline."""

import re
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from hexbytes import HexBytes

_HEX_BODY = re.compile(r"^[0-9a-fA-F]*$")


def is_hex_data(value: str) -> bool:
    """Return True for an even-length hex string, with or without ``0x``."""
    if not isinstance(value, str):
        return False
    body = value[2:] if value[:2] in ("0x", "0X") else value
    return len(body) % 2 == 0 and bool(_HEX_BODY.match(body))


def normalise_hex(value: str) -> str:
    """Return *value* as lowercase ``0x``-prefixed hex. Assumes it is valid."""
    body = value[2:] if value[:2] in ("0x", "0X") else value
    return "0x" + body.lower()


def to_hex_int(value: int) -> str:
    return hex(max(0, int(value)))


def from_hex_int(value: Any) -> int | None:
    """Parse a JSON-RPC quantity, tolerating ints and missing values."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16)


def format_ether(wei: int) -> str:
    """Render a wei amount as a plain ether decimal string."""
    ether = Decimal(wei) / Decimal(10**18)
    text = format(ether.normalize(), "f")
    return text if text != "-0" else "0"


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt
