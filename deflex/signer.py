"""Deflex collaborator protocol definitions.

Defines the interfaces the composer consumes but does not implement:
- ClientSigner: Signs the user's share of an atomic group.
- LedgerClient: Account lookup, suggested params, submission, confirmation
  and confirmed transaction info.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from algosdk import transaction

from .types import AccountInfo


@runtime_checkable
class ClientSigner(Protocol):
    """Protocol for signing the user's transactions in a group.

    Two return conventions are accepted:
    - Index-driven: exactly one signed transaction per requested index, in
      the order requested (algosdk's ``TransactionSigner`` convention).
    - Sparse (ARC-1): a list parallel to ``txn_group`` with signed bytes at
      the requested indexes and None elsewhere.

    ``algosdk.atomic_transaction_composer.AccountTransactionSigner`` satisfies
    this protocol as-is. The method may be sync or async.
    """

    def sign_transactions(
        self,
        txn_group: list[transaction.Transaction],
        indexes: list[int],
    ) -> list[Any] | Awaitable[list[Any]]:
        """Sign the transactions at ``indexes``.

        Args:
            txn_group: The full group, in order, with group IDs assigned.
            indexes: Positions this signer must sign.

        Returns:
            Signed transactions as raw msgpack bytes or algosdk signed
            transaction objects, in either convention above.
        """
        ...


SignerFunction = Callable[[list[transaction.Transaction], list[int]], Any]

# A signer object or a bare (sync or async) signing function
SignerLike = Union[ClientSigner, SignerFunction]


class LedgerClient(Protocol):
    """Protocol for the ledger operations the SDK relies on.

    All methods are coroutines; network I/O is delegated to the
    implementation. See ``deflex.ledger.AlgodLedger`` for the algod-backed
    implementation.
    """

    async def get_account_info(self, address: str) -> AccountInfo:
        """Fetch the account's application opt-ins and asset holdings."""
        ...

    async def get_suggested_params(self) -> transaction.SuggestedParams:
        """Fetch suggested parameters for new transactions."""
        ...

    async def submit_raw(self, signed_txns: list[bytes]) -> str:
        """Submit a signed group.

        Args:
            signed_txns: Signed transactions as raw msgpack bytes, in group order.

        Returns:
            Transaction ID of the first transaction in the group.
        """
        ...

    async def await_confirmation(self, txid: str, max_rounds: int) -> int:
        """Wait for a transaction to be confirmed.

        Args:
            txid: Transaction ID to watch.
            max_rounds: Maximum rounds to wait.

        Returns:
            The round the transaction was confirmed in.

        Raises:
            ConfirmationTimeoutError: If not confirmed within ``max_rounds``.
        """
        ...

    async def get_pending_transaction_info(self, txid: str) -> dict[str, Any]:
        """Fetch a transaction's pending (or just confirmed) info, including its logs."""
        ...
