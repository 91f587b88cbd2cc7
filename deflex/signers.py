"""Concrete signer implementation and signer-output normalization.

Provides a ready-to-use ClientSigner backed by a private key, plus the adapter
the composer uses to call any signer shape and get back exactly one signed
blob per requested index.
"""

from __future__ import annotations

import base64
import inspect
import logging
from typing import Any

from algosdk import account, transaction
from algosdk import mnemonic as mn

from .errors import InvalidInputError, SigningError
from .signer import SignerLike
from .utils import decode_unsigned_transaction, encode_transaction

logger = logging.getLogger(__name__)


class AlgorandSigner:
    """Simple client-side signer using a private key.

    Implements the ClientSigner protocol with sparse (ARC-1) output.

    Example:
        ```python
        # From 25-word Algorand mnemonic
        signer = AlgorandSigner.from_mnemonic("word1 word2 ... word25")

        composer = await deflex.new_swap(
            quote=quote, address=signer.address, slippage=1, signer=signer
        )
        ```
    """

    def __init__(self, private_key: str):
        """Create signer from private key.

        Args:
            private_key: Base64-encoded Algorand private key.

        Raises:
            InvalidInputError: If the key is not a valid Algorand private key.
        """
        try:
            address = account.address_from_private_key(private_key)
        except Exception as e:
            raise InvalidInputError(f"Invalid private key: {e}") from e
        self._private_key = private_key
        self._address = address

    @classmethod
    def from_mnemonic(cls, mnemonic: str) -> "AlgorandSigner":
        """Create signer from a 25-word Algorand mnemonic.

        Raises:
            InvalidInputError: If the mnemonic is invalid.
        """
        words = mnemonic.strip().split()
        try:
            private_key = mn.to_private_key(" ".join(words))
        except Exception as e:
            raise InvalidInputError(f"Invalid mnemonic ({len(words)} words): {e}") from e
        return cls(private_key)

    @classmethod
    def generate(cls) -> tuple["AlgorandSigner", str]:
        """Generate a new random signer.

        Returns:
            Tuple of (signer, mnemonic).
        """
        private_key, _ = account.generate_account()
        return cls(private_key), mn.from_private_key(private_key)

    @property
    def address(self) -> str:
        """Get the signer's Algorand address."""
        return self._address

    def sign_transactions(
        self,
        txn_group: list[transaction.Transaction | bytes],
        indexes: list[int],
    ) -> list[bytes | None]:
        """Sign specified transactions in a group.

        Args:
            txn_group: Transactions, as objects or unsigned msgpack bytes.
            indexes: Indexes to sign.

        Returns:
            List with signed bytes at specified indexes, None elsewhere.
        """
        results: list[bytes | None] = [None] * len(txn_group)

        for idx in indexes:
            if idx >= len(txn_group):
                continue

            txn = txn_group[idx]
            if isinstance(txn, (bytes, bytearray)):
                txn = decode_unsigned_transaction(bytes(txn))

            results[idx] = encode_transaction(txn.sign(self._private_key))

        return results


def encode_signed(signed: Any) -> bytes:
    """Normalize one signer output item to raw msgpack bytes.

    Accepts raw bytes, base64 strings, and algosdk signed transaction objects
    (SignedTransaction, LogicSigTransaction, MultisigTransaction).

    Raises:
        SigningError: If the item is none of those.
    """
    if isinstance(signed, (bytes, bytearray)):
        return bytes(signed)
    if isinstance(signed, str):
        try:
            return base64.b64decode(signed, validate=True)
        except ValueError as e:
            raise SigningError(f"Signer returned a non-base64 string: {e}") from e
    if hasattr(signed, "dictify"):
        return encode_transaction(signed)
    raise SigningError(f"Signer returned an unsupported value: {type(signed).__name__}")


async def gather_signatures(
    signer: SignerLike,
    txn_group: list[transaction.Transaction],
    indexes: list[int],
) -> list[bytes]:
    """Call a signer and return exactly one signed blob per requested index.

    Works with signer objects exposing ``sign_transactions`` and with bare
    functions, sync or async. Output is normalized from either convention:
    dense (one entry per index) or sparse (parallel to ``txn_group`` with None
    for skipped positions).

    Args:
        signer: Signer object or function.
        txn_group: The full group, in order.
        indexes: Positions to sign, ascending.

    Returns:
        Signed transactions as raw msgpack bytes, aligned with ``indexes``.

    Raises:
        SigningError: If the signer raises, rejects, or returns the wrong shape.
    """
    if not indexes:
        return []

    sign = getattr(signer, "sign_transactions", signer)
    if not callable(sign):
        raise SigningError(f"Signer is not callable: {type(signer).__name__}")

    try:
        result = sign(list(txn_group), list(indexes))
        if inspect.isawaitable(result):
            result = await result
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"Signer failed: {e}") from e

    if result is None:
        raise SigningError("Signer returned no signatures")

    result = list(result)

    if len(result) == len(txn_group) and len(txn_group) != len(indexes):
        # Sparse: read by position, nothing allowed outside the requested slots
        requested = set(indexes)
        extra = [i for i, item in enumerate(result) if item is not None and i not in requested]
        if extra:
            raise SigningError(f"Signer returned output for unrequested indexes {extra}")
        picked = []
        for idx in indexes:
            if result[idx] is None:
                raise SigningError(f"Signer did not sign transaction at index {idx}")
            picked.append(result[idx])
    elif len(result) == len(indexes):
        if any(item is None for item in result):
            raise SigningError(f"Signer did not sign every requested transaction {indexes}")
        picked = result
    else:
        raise SigningError(
            f"Signer returned {len(result)} entries for {len(indexes)} requested transactions "
            f"in a group of {len(txn_group)}"
        )

    logger.debug("Signer produced %d signatures for indexes %s", len(picked), indexes)
    return [encode_signed(item) for item in picked]
