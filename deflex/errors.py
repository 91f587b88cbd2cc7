"""Deflex exception hierarchy.

Every failure the SDK raises is a ``DeflexError`` subclass carrying a stable
``code`` string, so callers can tell input mistakes, network failures and
lifecycle misuse apart without parsing messages.
"""

from __future__ import annotations

from typing import Any

from .constants import (
    ERR_ALREADY_ADDED,
    ERR_ALREADY_COMMITTED,
    ERR_ALREADY_SUBMITTED,
    ERR_CONFIRMATION_TIMEOUT,
    ERR_GROUP_TOO_LARGE,
    ERR_HTTP,
    ERR_INVALID_ADDRESS,
    ERR_INVALID_INPUT,
    ERR_INVALID_STATE,
    ERR_MALFORMED_SIGNATURE,
    ERR_RESIGN_FAILED,
    ERR_SIGNING_FAILED,
    ERR_TXN_DECODE_FAILED,
    ERR_UNSUPPORTED_SIGNATURE,
)


class DeflexError(Exception):
    """Base class for all Deflex SDK errors."""

    code = "deflex_error"


class InvalidInputError(DeflexError, ValueError):
    """A required argument is missing or malformed."""

    code = ERR_INVALID_INPUT


class InvalidAddressError(InvalidInputError):
    """An address failed Algorand address validation."""

    code = ERR_INVALID_ADDRESS

    def __init__(self, address: Any):
        super().__init__(f"Invalid Algorand address: {address}")
        self.address = address


class GroupSizeExceededError(DeflexError):
    """An operation would push the atomic group past its size limit."""

    code = ERR_GROUP_TOO_LARGE

    def __init__(self, limit: int, attempted: int, message: str | None = None):
        super().__init__(
            message
            or f"Group of {attempted} transactions exceeds the maximum atomic group size of {limit}"
        )
        self.limit = limit
        self.attempted = attempted


class InvalidStateTransitionError(DeflexError):
    """An operation was attempted outside of its allowed lifecycle status."""

    code = ERR_INVALID_STATE

    def __init__(self, message: str, status: Any = None):
        super().__init__(message)
        self.status = status


class AlreadyAddedError(InvalidStateTransitionError):
    """Swap transactions were already added to this composer."""

    code = ERR_ALREADY_ADDED


class AlreadySubmittedError(InvalidStateTransitionError):
    """The transaction group was already submitted."""

    code = ERR_ALREADY_SUBMITTED


class AlreadyCommittedError(InvalidStateTransitionError):
    """The transaction group was already committed to a block."""

    code = ERR_ALREADY_COMMITTED


class DecodeError(DeflexError, ValueError):
    """A routed transaction could not be decoded."""

    code = ERR_TXN_DECODE_FAILED

    def __init__(self, index: int, reason: str):
        super().__init__(f"Failed to process swap transaction at index {index}: {reason}")
        self.index = index


class ReSignError(DeflexError):
    """A pre-signed transaction could not be re-signed."""

    code = ERR_RESIGN_FAILED


class MalformedSignatureError(ReSignError):
    """A pre-signature payload could not be reconstructed."""

    code = ERR_MALFORMED_SIGNATURE


class UnsupportedSignatureKindError(ReSignError):
    """The router returned a pre-signature kind the SDK cannot apply."""

    code = ERR_UNSUPPORTED_SIGNATURE

    def __init__(self, kind: Any):
        super().__init__(f"Unsupported signature type: {kind}")
        self.kind = kind


class SigningError(DeflexError):
    """The external signer rejected, failed, or returned unusable output."""

    code = ERR_SIGNING_FAILED


class ConfirmationTimeoutError(DeflexError):
    """The transaction was not confirmed within the allotted rounds."""

    code = ERR_CONFIRMATION_TIMEOUT

    def __init__(self, txid: str, rounds: int):
        super().__init__(f"Transaction {txid} not confirmed after {rounds} rounds")
        self.txid = txid
        self.rounds = rounds


class HTTPError(DeflexError):
    """Non-2xx response from the routing service."""

    code = ERR_HTTP

    def __init__(self, status: int, status_text: str, data: Any):
        super().__init__(f"HTTP {status} {status_text}")
        self.status = status
        self.status_text = status_text
        self.data = data
