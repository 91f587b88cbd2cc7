"""Deflex utility functions.

Provides address validation, transaction encoding helpers, the byte-map
adapter for router signatures, and slippage arithmetic.
"""

from __future__ import annotations

import base64
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from algosdk import encoding, transaction

from .constants import ADDRESS_REGEX, QUOTE_TYPE_FIXED_INPUT
from .errors import InvalidAddressError, InvalidInputError, MalformedSignatureError


def is_valid_address(address: str) -> bool:
    """Validate an Algorand address format.

    Args:
        address: String to validate.

    Returns:
        True if valid Algorand address format.
    """
    if not address or not isinstance(address, str):
        return False

    if not re.match(ADDRESS_REGEX, address):
        return False

    return encoding.is_valid_address(address)


def validate_address(address: str) -> str:
    """Return ``address`` unchanged or raise InvalidAddressError."""
    if not is_valid_address(address):
        raise InvalidAddressError(address)
    return address


def encode_transaction(txn: Any) -> bytes:
    """Encode a transaction (signed or unsigned) to raw msgpack bytes.

    Note: msgpack_encode returns a base64 string, so decode it back to bytes.
    """
    return base64.b64decode(encoding.msgpack_encode(txn))


def decode_transaction(txn_bytes: bytes) -> Any:
    """Decode raw msgpack bytes into an algosdk object.

    Note: msgpack_decode expects a base64 string, so encode the raw bytes.
    """
    return encoding.msgpack_decode(base64.b64encode(txn_bytes).decode("utf-8"))


def decode_unsigned_transaction(txn_bytes: bytes) -> transaction.Transaction:
    """Decode raw msgpack bytes that must hold an unsigned transaction.

    Raises:
        ValueError: If the bytes are not an unsigned transaction.
    """
    try:
        decoded = decode_transaction(txn_bytes)
    except Exception as e:
        raise ValueError(f"Failed to decode transaction: {e}") from e

    if isinstance(decoded, transaction.Transaction):
        return decoded
    if isinstance(decoded, dict):
        return transaction.Transaction.undictify(decoded)
    raise ValueError(f"Expected an unsigned transaction, got {type(decoded).__name__}")


def bytes_from_index_map(value: Any) -> bytes:
    """Rebuild bytes from the router's array-as-object encoding.

    The router serializes byte arrays as ``{"0": 12, "1": 250, ...}``. Keys are
    byte offsets and are placed by numeric order, not by insertion order. Plain
    lists of ints and raw bytes are accepted too.

    Raises:
        MalformedSignatureError: If offsets are not a dense 0..n-1 range or a
            value is not a byte.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)

    if isinstance(value, dict):
        try:
            indexed = sorted((int(k), v) for k, v in value.items())
        except (TypeError, ValueError) as e:
            raise MalformedSignatureError(f"Signature value has a non-numeric offset: {e}") from e
        offsets = [k for k, _ in indexed]
        if offsets != list(range(len(offsets))):
            raise MalformedSignatureError("Signature value offsets are not contiguous from 0")
        values = [v for _, v in indexed]
    elif isinstance(value, list):
        values = value
    else:
        raise MalformedSignatureError(
            f"Signature value must be an object or array, got {type(value).__name__}"
        )

    try:
        return bytes(values)
    except (TypeError, ValueError) as e:
        raise MalformedSignatureError(f"Signature value is not a byte array: {e}") from e


def to_int_amount(raw: Any) -> int:
    """Normalize an amount from the wire to an exact int.

    Empty strings become 0. Decimal strings are parsed without going through
    float, so large amounts keep every digit.

    Raises:
        InvalidInputError: If the value is not a whole number.
    """
    if isinstance(raw, bool):
        raise InvalidInputError(f"Invalid amount: {raw!r}")
    if isinstance(raw, int):
        return raw
    if raw is None or raw == "":
        return 0

    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise InvalidInputError(f"Invalid amount: {raw!r}") from e

    if value != value.to_integral_value():
        raise InvalidInputError(f"Amount must be a whole number of base units: {raw!r}")
    return int(value)


def slippage_to_bps(slippage: float | int | str | Decimal) -> int:
    """Convert a percentage (e.g. 1.25) to basis points, truncating.

    Goes through Decimal(str(x)) so 1.25 maps to exactly 125.
    """
    try:
        bps = int(Decimal(str(slippage)) * 100)
    except InvalidOperation as e:
        raise InvalidInputError(f"Invalid slippage: {slippage!r}") from e
    if bps < 0:
        raise InvalidInputError(f"Slippage cannot be negative: {slippage!r}")
    return bps


def apply_slippage(amount: int, slippage: float | int | str | Decimal, quote_type: str) -> int:
    """Slippage-adjusted bound for a quoted amount.

    Fixed-input quotes get the minimum amount received; fixed-output quotes get
    the maximum amount sent. Integer division truncates toward zero.
    """
    bps = slippage_to_bps(slippage)
    if quote_type == QUOTE_TYPE_FIXED_INPUT:
        numerator = amount * (10000 - bps)
    else:
        numerator = amount * (10000 + bps)
    # truncate toward zero, not toward negative infinity
    quotient = abs(numerator) // 10000
    return quotient if numerator >= 0 else -quotient


def get_tx_ids(txns: list[transaction.Transaction]) -> list[str]:
    """Transaction IDs for a list of transactions, in order."""
    return [txn.get_txid() for txn in txns]
