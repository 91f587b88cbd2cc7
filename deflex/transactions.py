"""Routed swap transaction decoding and pre-signature resolution."""

from __future__ import annotations

import base64
import logging
from typing import Any

import msgpack
from algosdk import abi, transaction
from algosdk import error as algosdk_error
from algosdk.atomic_transaction_composer import ABIResult
from pydantic import ValidationError

from .constants import (
    ABI_RETURN_PREFIX,
    SIGNATURE_KIND_LOGIC_SIGNATURE,
    SIGNATURE_KIND_SECRET_KEY,
)
from .errors import (
    DecodeError,
    MalformedSignatureError,
    ReSignError,
    UnsupportedSignatureKindError,
)
from .schemas import DeflexTransaction
from .types import GroupTransaction, SignatureDescriptor
from .utils import bytes_from_index_map, decode_unsigned_transaction, encode_transaction

logger = logging.getLogger(__name__)


def decode_routed_transaction(
    index: int,
    routed: DeflexTransaction | dict[str, Any],
) -> GroupTransaction:
    """Decode one routed transaction into a group slot.

    The router's group ID is dropped; the composer assigns its own. A
    pre-signature is reconstructed to bytes but not applied until signing.

    Args:
        index: Position of the record in the router's response, for errors.
        routed: The routed transaction record.

    Returns:
        GroupTransaction with ``signature`` set when the router pre-signed it.

    Raises:
        DecodeError: If the record or its transaction bytes are malformed.
        MalformedSignatureError: If the pre-signature bytes cannot be rebuilt.
    """
    if not routed:
        raise DecodeError(index, "missing transaction record")

    if isinstance(routed, dict):
        try:
            routed = DeflexTransaction.model_validate(routed)
        except ValidationError as e:
            raise DecodeError(index, f"invalid record: {e}") from e

    try:
        raw = base64.b64decode(routed.data, validate=True)
        txn = decode_unsigned_transaction(raw)
    except ValueError as e:
        raise DecodeError(index, str(e)) from e

    txn.group = None

    signature = None
    if routed.signature is not False:
        try:
            value = bytes_from_index_map(routed.signature.value)
        except MalformedSignatureError as e:
            raise MalformedSignatureError(f"Swap transaction at index {index}: {e}") from e
        signature = SignatureDescriptor(kind=routed.signature.type, value=value)

    return GroupTransaction(txn=txn, signature=signature)


def decode_routed_transactions(
    routed_txns: list[DeflexTransaction | dict[str, Any]],
) -> list[GroupTransaction]:
    """Decode every routed transaction, preserving order."""
    slots = [decode_routed_transaction(i, routed) for i, routed in enumerate(routed_txns)]
    logger.debug(
        "Decoded %d routed transactions, %d pre-signed",
        len(slots),
        sum(1 for slot in slots if slot.is_presigned),
    )
    return slots


def resign_transaction(
    txn: transaction.Transaction,
    signature: SignatureDescriptor,
) -> bytes:
    """Apply a router pre-signature to a (grouped) transaction.

    Args:
        txn: Transaction with its final group ID assigned.
        signature: The reconstructed pre-signature.

    Returns:
        Signed transaction as raw msgpack bytes.

    Raises:
        MalformedSignatureError: If the logic signature has no program.
        UnsupportedSignatureKindError: If the kind is not recognized.
        ReSignError: If signing fails for any other reason.
    """
    try:
        if signature.kind == SIGNATURE_KIND_SECRET_KEY:
            private_key = base64.b64encode(signature.value).decode("utf-8")
            signed = txn.sign(private_key)
        elif signature.kind == SIGNATURE_KIND_LOGIC_SIGNATURE:
            signed = transaction.LogicSigTransaction(txn, _logic_sig_account(signature.value))
        else:
            raise UnsupportedSignatureKindError(signature.kind)
        return encode_transaction(signed)
    except ReSignError:
        raise
    except Exception as e:
        raise ReSignError(f"Failed to re-sign transaction: {e}") from e


def _logic_sig_account(blob: bytes) -> transaction.LogicSigAccount:
    """Build a LogicSigAccount from an encoded ``{"lsig": {"l", "arg"}}`` record."""
    try:
        decoded = msgpack.unpackb(blob, raw=False, strict_map_key=False)
    except Exception as e:
        raise MalformedSignatureError(f"Failed to decode logic signature: {e}") from e

    lsig = decoded.get("lsig") if isinstance(decoded, dict) else None
    if not isinstance(lsig, dict) or not lsig.get("l"):
        raise MalformedSignatureError("Logic signature is missing its program")

    args = lsig.get("arg") or None
    return transaction.LogicSigAccount(lsig["l"], args)


def decode_method_result(method: abi.Method, tx_id: str, tx_info: dict[str, Any]) -> ABIResult:
    """Decode an app call's ABI return value from its confirmed transaction info.

    The value is the last log entry, behind a four-byte return prefix. Void
    methods carry no value. Decoding problems are reported on the result's
    ``decode_error`` rather than raised, as algosdk's composer does.
    """
    raw_value = b""
    return_value = None
    decode_error = None
    try:
        if method.returns.type != abi.Returns.VOID:
            logs = tx_info.get("logs") or []
            result = base64.b64decode(logs[-1]) if logs else b""
            if not result.startswith(ABI_RETURN_PREFIX):
                raise algosdk_error.AtomicTransactionComposerError(
                    "app call transaction did not log a return value"
                )
            raw_value = result[len(ABI_RETURN_PREFIX) :]
            return_value = method.returns.type.decode(raw_value)
    except Exception as e:
        decode_error = e

    return ABIResult(
        tx_id=tx_id,
        raw_value=raw_value,
        return_value=return_value,
        decode_error=decode_error,
        tx_info=tx_info,
        method=method,
    )
