"""Deflex domain types - dataclasses for group slots, contexts and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from algosdk import abi, transaction

from .constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_GROUP_SIZE,
    QUOTE_TYPE_FIXED_INPUT,
)

if TYPE_CHECKING:
    from algosdk.atomic_transaction_composer import ABIResult

    from .quote import DeflexQuote
    from .signer import LedgerClient, SignerLike

QuoteType = Literal["fixed-input", "fixed-output"]


@dataclass(frozen=True)
class SignatureDescriptor:
    """Pre-signature supplied by the router for one transaction.

    Attributes:
        kind: Signature kind ("secret_key" or "logic_signature").
        value: Reconstructed signature payload bytes.
    """

    kind: str
    value: bytes = field(repr=False)


@dataclass
class GroupTransaction:
    """One slot in the atomic group.

    A slot is signed through exactly one path: the embedded pre-signature when
    ``signature`` is set, otherwise ``signer`` (falling back to the composer's
    user signer when ``signer`` is None).

    Attributes:
        txn: The transaction, with no group ID until the group is built.
        signature: Pre-signature from the router or None.
        signer: Signer override for this slot or None.
        method: ABI method when the slot is an app call added with
            ``add_method_call``, used to decode its return value.
    """

    txn: transaction.Transaction
    signature: SignatureDescriptor | None = None
    signer: SignerLike | None = None
    method: abi.Method | None = None

    @property
    def is_presigned(self) -> bool:
        return self.signature is not None


@dataclass
class TransactionWithSigner:
    """A transaction paired with the signer that must authorize it."""

    txn: transaction.Transaction
    signer: SignerLike | None = None


@dataclass(frozen=True)
class FetchQuoteParams:
    """Parameters for a quote request.

    Attributes:
        from_asset_id: Input asset ID (0 for ALGO).
        to_asset_id: Output asset ID (0 for ALGO).
        amount: Amount in base units.
        type: "fixed-input" or "fixed-output".
        disabled_protocols: Protocols to exclude from routing.
        max_group_size: Largest group the router may return.
        max_depth: Maximum number of hops.
        opt_in: Whether the router should add an asset opt-in; None defers to
            the client's auto opt-in setting.
        address: Address that will perform the swap.
    """

    from_asset_id: int
    to_asset_id: int
    amount: int
    type: QuoteType = QUOTE_TYPE_FIXED_INPUT
    disabled_protocols: tuple[str, ...] = ()
    max_group_size: int = DEFAULT_MAX_GROUP_SIZE
    max_depth: int = DEFAULT_MAX_DEPTH
    opt_in: bool | None = None
    address: str | None = None


@dataclass(frozen=True)
class QuoteContext:
    """What middleware sees when deciding whether to apply.

    ``amount`` is None when the composer was given a raw quote response, which
    does not carry the requested amount.
    """

    from_asset_id: int
    to_asset_id: int
    amount: int | None
    type: str
    address: str | None
    ledger: LedgerClient | None = None


@dataclass(frozen=True)
class SwapContext:
    """What middleware sees when injecting transactions around the swap."""

    quote: DeflexQuote
    address: str
    ledger: LedgerClient
    suggested_params: transaction.SuggestedParams
    from_asset_id: int
    to_asset_id: int
    signer: SignerLike


@dataclass(frozen=True)
class AssetHolding:
    """An asset balance held by an account."""

    asset_id: int
    amount: int


@dataclass(frozen=True)
class AccountInfo:
    """The parts of account state the SDK reads."""

    address: str
    apps_opted_in: list[int] = field(default_factory=list)
    assets_held: list[AssetHolding] = field(default_factory=list)

    def holding(self, asset_id: int) -> AssetHolding | None:
        for asset in self.assets_held:
            if asset.asset_id == asset_id:
                return asset
        return None


@dataclass(frozen=True)
class MethodCall:
    """An ABI method call to place in the group.

    Mirrors the arguments of algosdk's ``AtomicTransactionComposer.add_method_call``.
    """

    app_id: int
    method: Any
    sender: str
    suggested_params: transaction.SuggestedParams
    method_args: list[Any] | None = None
    on_complete: transaction.OnComplete = transaction.OnComplete.NoOpOC
    accounts: list[str] | None = None
    foreign_apps: list[int] | None = None
    foreign_assets: list[int] | None = None
    boxes: list[tuple[int, bytes]] | None = None
    note: bytes | None = None
    lease: bytes | None = None
    rekey_to: str | None = None
    signer: SignerLike | None = None


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a confirmed swap."""

    confirmed_round: int
    tx_ids: list[str]
    method_results: list[ABIResult] = field(default_factory=list)


@dataclass
class SwapExecutionContext:
    """Snapshot of a swap attempt, used for failure diagnostics."""

    quote: Any
    address: str
    slippage: float | None
    transaction_count: int
    middleware_count: int
    group_size: int
