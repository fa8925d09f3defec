"""Validation of call descriptions into operation envelopes."""

from decimal import Decimal, InvalidOperation
from typing import Any

from web3 import Web3

from .exceptions import InvalidOperationError
from .types import OperationEnvelope
from .utils import is_hex_data, normalise_hex


def build_operation(target: str, data: str = "0x", value: Any = 0) -> OperationEnvelope:
    """Validate and normalise a ``{target, data, value}`` triple.

    Args:
        target: Address the smart account will call
        data: Hex encoded call data; empty means a plain value transfer
        value: Amount in wei

    Raises:
        InvalidOperationError: If any field is malformed
    """
    if not isinstance(target, str) or not Web3.is_address(target):
        raise InvalidOperationError("Invalid target address", field="target", value=target)

    if data is None or data == "":
        data = "0x"
    if not is_hex_data(data):
        raise InvalidOperationError(f"Invalid hex data: {data}", field="data", value=data)

    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOperationError(
            "Value must be an integer wei amount", field="value", value=value
        )
    if value < 0:
        raise InvalidOperationError("Value cannot be negative", field="value", value=value)

    return OperationEnvelope(
        target=Web3.to_checksum_address(target),
        data=normalise_hex(data),
        value=value,
    )


def parse_ether(amount: str | int | Decimal) -> int:
    """Convert a decimal ether amount to wei."""
    try:
        quantity = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (ValueError, InvalidOperation) as exc:
        raise InvalidOperationError(
            "Invalid ether amount", field="value", value=amount, details={"error": str(exc)}
        ) from exc

    if not quantity.is_finite():
        raise InvalidOperationError("Invalid ether amount", field="value", value=amount)
    if quantity < 0:
        raise InvalidOperationError("Value cannot be negative", field="value", value=amount)

    wei = quantity * Decimal(10**18)
    if wei != wei.to_integral_value():
        raise InvalidOperationError(
            "Ether amount has more than 18 decimals", field="value", value=amount
        )
    return int(wei)
