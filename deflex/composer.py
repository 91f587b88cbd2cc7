"""Atomic swap group composer.

Builds one atomic group out of caller transactions, app opt-ins, middleware
transactions and the router's swap legs, then drives it through signing,
submission and confirmation.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

from algosdk import transaction
from algosdk.atomic_transaction_composer import AtomicTransactionComposer, EmptySigner

from .constants import DEFAULT_CONFIRMATION_ROUNDS, MAX_GROUP_SIZE
from .debug import log_swap_execution_failure
from .errors import (
    AlreadyAddedError,
    AlreadyCommittedError,
    AlreadySubmittedError,
    GroupSizeExceededError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from .middleware import call_hook
from .optin import resolve_app_opt_ins
from .quote import DeflexQuote
from .schemas import DeflexTransaction, FetchQuoteResponse
from .signer import LedgerClient, SignerLike
from .signers import gather_signatures
from .transactions import (
    decode_method_result,
    decode_routed_transactions,
    resign_transaction,
)
from .types import (
    ExecuteResult,
    GroupTransaction,
    MethodCall,
    QuoteContext,
    SwapContext,
    SwapExecutionContext,
)
from .utils import get_tx_ids, validate_address


class SwapComposerStatus(IntEnum):
    """Lifecycle of a composer's group. Status only ever moves forward."""

    BUILDING = 0
    """The group is still under construction."""

    BUILT = 1
    """Group ID assigned, not yet signed."""

    SIGNED = 2
    """Signed, not yet submitted."""

    SUBMITTED = 3
    """Submitted to the network."""

    COMMITTED = 4
    """Confirmed in a block."""


class SwapComposer:
    """Composer for building and executing atomic swap transaction groups.

    Transactions end up in the group in the order they were added. The swap
    itself is added once, by ``add_swap_transactions`` or automatically on the
    first call to ``sign``, ``submit`` or ``execute``, as
    ``[app opt-ins] [before_swap] [swap legs] [after_swap]``.

    Each slot is signed through one path: the router's pre-signature when the
    leg carries one, otherwise the slot's own signer, otherwise the user signer.

    Note: Most callers should use ``DeflexClient.new_swap()``, which fetches the
    routed transactions first.

    Example:
        ```python
        composer = await deflex.new_swap(quote=quote, address=address, slippage=1, signer=signer)

        composer.add_transaction(before_txn)
        await composer.add_swap_transactions()
        composer.add_transaction(after_txn)

        result = await composer.execute()
        print(result.confirmed_round, result.tx_ids)
        ```
    """

    MAX_GROUP_SIZE = MAX_GROUP_SIZE

    def __init__(
        self,
        quote: DeflexQuote | FetchQuoteResponse | dict[str, Any],
        deflex_txns: list[DeflexTransaction | dict[str, Any]],
        ledger: LedgerClient,
        address: str,
        signer: SignerLike,
        slippage: float | None = None,
        middleware: list[Any] | None = None,
        logger: logging.Logger | None = None,
    ):
        """Create a composer.

        Args:
            quote: Quote from ``new_quote()`` or a raw ``fetch_quote()`` response.
            deflex_txns: Routed transactions from ``fetch_swap_transactions()``.
            ledger: Ledger used for opt-in lookups, submission and confirmation.
            address: Account that signs the user's transactions.
            signer: Default signer for every slot without its own.
            slippage: Slippage the routed transactions were built with, for
                diagnostics.
            middleware: Middleware evaluated when the swap is added.
            logger: Logger for diagnostics. Defaults to this module's logger.

        Raises:
            InvalidInputError: If a required argument is missing or empty.
            InvalidAddressError: If ``address`` is not a valid Algorand address.
        """
        if not quote:
            raise InvalidInputError("Quote is required")
        if deflex_txns is None:
            raise InvalidInputError("Swap transactions are required")
        if len(deflex_txns) == 0:
            raise InvalidInputError("Swap transactions list cannot be empty")
        if ledger is None:
            raise InvalidInputError("Ledger client is required")
        if not signer:
            raise InvalidInputError("Signer is required")

        if isinstance(quote, dict):
            quote = FetchQuoteResponse.model_validate(quote)

        self._quote = quote
        self._deflex_txns = list(deflex_txns)
        self._ledger = ledger
        self._address = validate_address(address)
        self._signer = signer
        self._slippage = slippage
        self._middleware = list(middleware or [])
        self._logger = logger if logger is not None else logging.getLogger(__name__)

        self._txns: list[GroupTransaction] = []
        self._status = SwapComposerStatus.BUILDING
        self._swap_transactions_added = False
        self._signed_txns: list[bytes] | None = None

    @property
    def address(self) -> str:
        return self._address

    @property
    def quote(self) -> DeflexQuote | FetchQuoteResponse:
        return self._quote

    def get_status(self) -> SwapComposerStatus:
        """Get the status of this composer's transaction group."""
        return self._status

    def count(self) -> int:
        """Get the number of transactions currently in the group."""
        return len(self._txns)

    def add_transaction(
        self,
        txn: transaction.Transaction,
        signer: SignerLike | None = None,
    ) -> "SwapComposer":
        """Add a transaction to the end of the group.

        Args:
            txn: Transaction without a group ID.
            signer: Signer for this transaction. Defaults to the user signer.

        Returns:
            This composer, for chaining.

        Raises:
            InvalidStateTransitionError: If the composer is not BUILDING.
            InvalidInputError: If the transaction already has a group ID.
            GroupSizeExceededError: If the group is already full.
        """
        self._require_building("add transactions")
        slot = self._make_slot(txn, signer)
        self._check_capacity(1)
        self._txns.append(slot)
        return self

    def add_method_call(self, method_call: MethodCall) -> "SwapComposer":
        """Add an ABI method call, plus any transaction arguments, to the group.

        Transaction arguments keep their own signers. The app call itself is
        signed by ``method_call.signer`` or the user signer.

        Raises:
            InvalidStateTransitionError: If the composer is not BUILDING.
            GroupSizeExceededError: If the call does not fit in the group.
        """
        self._require_building("add method calls")

        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=method_call.app_id,
            method=method_call.method,
            sender=method_call.sender,
            sp=method_call.suggested_params,
            signer=EmptySigner(),
            method_args=method_call.method_args,
            on_complete=method_call.on_complete,
            accounts=method_call.accounts,
            foreign_apps=method_call.foreign_apps,
            foreign_assets=method_call.foreign_assets,
            boxes=method_call.boxes,
            note=method_call.note,
            lease=method_call.lease,
            rekey_to=method_call.rekey_to,
        )
        built = atc.build_group()

        self._check_capacity(len(built))
        for i, entry in enumerate(built):
            # The composer assigns the group ID over the whole group later
            entry.txn.group = None
            signer = method_call.signer if isinstance(entry.signer, EmptySigner) else entry.signer
            self._txns.append(
                GroupTransaction(txn=entry.txn, signer=signer, method=atc.method_dict.get(i))
            )
        return self

    async def add_swap_transactions(self) -> "SwapComposer":
        """Add the swap to the group.

        Resolves app opt-ins, runs ``before_swap`` hooks, decodes the routed
        legs and runs ``after_swap`` hooks, then appends everything at once.
        Nothing is appended if any step fails or the result would not fit.

        Returns:
            This composer, for chaining.

        Raises:
            AlreadyAddedError: If the swap was already added.
            InvalidStateTransitionError: If the composer is not BUILDING.
            GroupSizeExceededError: If the group would exceed 16 transactions.
            DecodeError: If a routed transaction is malformed.
        """
        if self._swap_transactions_added:
            raise AlreadyAddedError("Swap transactions have already been added", self._status)
        self._require_building("add swap transactions")

        opt_ins = await resolve_app_opt_ins(
            self._ledger, self._address, list(self._quote.required_app_opt_ins)
        )

        applicable = await self._applicable_middleware()
        context = await self._swap_context() if applicable else None

        before: list[GroupTransaction] = []
        for mw in applicable:
            before.extend(self._hook_slots(await call_hook(mw, "before_swap", context, default=[])))

        swap_legs = decode_routed_transactions(self._deflex_txns)

        after: list[GroupTransaction] = []
        for mw in applicable:
            after.extend(self._hook_slots(await call_hook(mw, "after_swap", context, default=[])))

        new_txns = [*opt_ins, *before, *swap_legs, *after]
        total = len(self._txns) + len(new_txns)
        if total > self.MAX_GROUP_SIZE:
            raise GroupSizeExceededError(
                self.MAX_GROUP_SIZE,
                total,
                f"Adding swap transactions exceeds the maximum atomic group size of "
                f"{self.MAX_GROUP_SIZE} ({total} transactions)",
            )

        self._txns.extend(new_txns)
        self._swap_transactions_added = True
        self._logger.debug(
            "Added swap: %d opt-ins, %d before, %d legs, %d after",
            len(opt_ins),
            len(before),
            len(swap_legs),
            len(after),
        )
        return self

    async def ensure_swap_transactions(self) -> "SwapComposer":
        """Add the swap if it has not been added yet."""
        if not self._swap_transactions_added:
            await self.add_swap_transactions()
        return self

    def build_group(self) -> list[GroupTransaction]:
        """Finalize the group by assigning the group ID.

        A single transaction gets no group ID. The swap is not added
        automatically here: call ``add_swap_transactions()`` first.

        Returns:
            The group's slots, in order.

        Raises:
            InvalidStateTransitionError: If the group is empty.
        """
        if self._status >= SwapComposerStatus.BUILT:
            return list(self._txns)

        if not self._txns:
            raise InvalidStateTransitionError("Cannot build a group with 0 transactions", self._status)

        if len(self._txns) > 1:
            group_id = transaction.calculate_group_id([slot.txn for slot in self._txns])
            for slot in self._txns:
                slot.txn.group = group_id

        self._status = SwapComposerStatus.BUILT
        self._logger.debug("Built group of %d transactions", len(self._txns))
        return list(self._txns)

    def get_tx_ids(self) -> list[str]:
        """Transaction IDs of the group, in order.

        Raises:
            InvalidStateTransitionError: If the group has not been built yet.
        """
        if self._status < SwapComposerStatus.BUILT:
            raise InvalidStateTransitionError(
                "Transaction IDs are not final until the group is built", self._status
            )
        return get_tx_ids([slot.txn for slot in self._txns])

    async def sign(self) -> list[bytes]:
        """Sign the group.

        Adds the swap if needed, builds the group, re-signs pre-signed legs and
        calls each signer once for its slots. Calling again returns the same
        list without signing again.

        Returns:
            Signed transactions as raw msgpack bytes, in group order.

        Raises:
            SigningError: If a signer fails or returns unusable output.
            ReSignError: If a pre-signed leg cannot be re-signed.
        """
        if self._status >= SwapComposerStatus.SIGNED:
            return self._signed_txns

        try:
            await self.ensure_swap_transactions()
            group = self.build_group()
            signed = await self._sign_group(group)
        except Exception as e:
            self._log_failure(e)
            raise

        self._signed_txns = signed
        self._status = SwapComposerStatus.SIGNED
        return signed

    async def ensure_signed(self) -> list[bytes]:
        """Sign the group if it has not been signed yet."""
        if self._status < SwapComposerStatus.SIGNED:
            return await self.sign()
        return self._signed_txns

    async def submit(self) -> list[str]:
        """Sign the group if needed and submit it. Does not wait for confirmation.

        Returns:
            The transaction IDs.

        Raises:
            AlreadySubmittedError: If the group was already submitted.
        """
        if self._status >= SwapComposerStatus.SUBMITTED:
            raise AlreadySubmittedError(
                "Transaction group has already been submitted", self._status
            )

        signed = await self.ensure_signed()

        try:
            await self._ledger.submit_raw(signed)
        except Exception as e:
            self._log_failure(e)
            raise

        self._status = SwapComposerStatus.SUBMITTED
        tx_ids = self.get_tx_ids()
        self._logger.debug("Submitted group %s", tx_ids)
        return tx_ids

    async def execute(self, wait_rounds: int = DEFAULT_CONFIRMATION_ROUNDS) -> ExecuteResult:
        """Sign, submit and wait for confirmation.

        After a bare ``submit()`` this only waits for confirmation.

        Args:
            wait_rounds: Rounds to wait for confirmation (default: 4).

        Returns:
            ExecuteResult with the confirmed round, transaction IDs and the
            decoded return values of any ABI method calls, in group order.

        Raises:
            AlreadyCommittedError: If the group was already committed.
            ConfirmationTimeoutError: If not confirmed within ``wait_rounds``.
        """
        if self._status >= SwapComposerStatus.COMMITTED:
            raise AlreadyCommittedError(
                "Transaction group has already been committed", self._status
            )

        if self._status < SwapComposerStatus.SUBMITTED:
            await self.submit()

        tx_ids = self.get_tx_ids()
        try:
            confirmed_round = await self._ledger.await_confirmation(tx_ids[0], wait_rounds)
        except Exception as e:
            self._log_failure(e)
            raise

        self._status = SwapComposerStatus.COMMITTED
        self._logger.debug("Group %s confirmed in round %d", tx_ids[0], confirmed_round)
        method_results = await self._method_results(tx_ids)
        return ExecuteResult(
            confirmed_round=confirmed_round, tx_ids=tx_ids, method_results=method_results
        )

    async def _method_results(self, tx_ids: list[str]) -> list[Any]:
        results = []
        for slot, tx_id in zip(self._txns, tx_ids):
            if slot.method is None:
                continue
            try:
                tx_info = await self._ledger.get_pending_transaction_info(tx_id)
            except Exception as e:
                self._logger.debug("Could not fetch result of method call %s: %s", tx_id, e)
                result = decode_method_result(slot.method, tx_id, {})
                result.decode_error = e
            else:
                result = decode_method_result(slot.method, tx_id, tx_info)
            results.append(result)
        return results

    def _require_building(self, action: str) -> None:
        if self._status != SwapComposerStatus.BUILDING:
            raise InvalidStateTransitionError(
                f"Cannot {action} when composer status is {self._status.name}", self._status
            )

    def _check_capacity(self, adding: int) -> None:
        attempted = len(self._txns) + adding
        if attempted > self.MAX_GROUP_SIZE:
            raise GroupSizeExceededError(self.MAX_GROUP_SIZE, attempted)

    @staticmethod
    def _make_slot(txn: Any, signer: SignerLike | None) -> GroupTransaction:
        if not isinstance(txn, transaction.Transaction):
            raise InvalidInputError(f"Expected a Transaction, got {type(txn).__name__}")
        if txn.group:
            raise InvalidInputError("Cannot add a transaction that already has a group ID")
        return GroupTransaction(txn=txn, signer=signer)

    def _hook_slots(self, entries: list[Any] | None) -> list[GroupTransaction]:
        slots = []
        for entry in entries or []:
            if isinstance(entry, transaction.Transaction):
                slots.append(self._make_slot(entry, None))
            else:
                slots.append(self._make_slot(entry.txn, getattr(entry, "signer", None)))
        return slots

    async def _applicable_middleware(self) -> list[Any]:
        if not self._middleware:
            return []

        context = QuoteContext(
            from_asset_id=self._quote.from_asset_id,
            to_asset_id=self._quote.to_asset_id,
            amount=getattr(self._quote, "amount", None),
            type=self._quote.type,
            address=self._address,
            ledger=self._ledger,
        )
        return [mw for mw in self._middleware if await call_hook(mw, "should_apply", context)]

    async def _swap_context(self) -> SwapContext:
        return SwapContext(
            quote=self._quote,
            address=self._address,
            ledger=self._ledger,
            suggested_params=await self._ledger.get_suggested_params(),
            from_asset_id=self._quote.from_asset_id,
            to_asset_id=self._quote.to_asset_id,
            signer=self._signer,
        )

    async def _sign_group(self, group: list[GroupTransaction]) -> list[bytes]:
        txns = [slot.txn for slot in group]
        signed: list[bytes | None] = [None] * len(group)

        # One call per distinct signer, in order of first appearance
        batches: list[tuple[SignerLike, list[int]]] = []
        for i, slot in enumerate(group):
            if slot.signature is not None:
                signed[i] = resign_transaction(slot.txn, slot.signature)
                continue
            signer = slot.signer or self._signer
            for batch_signer, indexes in batches:
                if batch_signer is signer or batch_signer == signer:
                    indexes.append(i)
                    break
            else:
                batches.append((signer, [i]))

        for signer, indexes in batches:
            blobs = await gather_signatures(signer, txns, indexes)
            for i, blob in zip(indexes, blobs):
                signed[i] = blob

        return signed

    def _log_failure(self, error: BaseException) -> None:
        log_swap_execution_failure(
            self._logger,
            SwapExecutionContext(
                quote=self._quote,
                address=self._address,
                slippage=self._slippage,
                transaction_count=len(self._deflex_txns),
                middleware_count=len(self._middleware),
                group_size=len(self._txns),
            ),
            error,
        )
