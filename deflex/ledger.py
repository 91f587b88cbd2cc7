"""Algod-backed LedgerClient.

algosdk's AlgodClient is blocking, so each call runs in a worker thread to
keep the composer's suspension points non-blocking.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import TYPE_CHECKING

from algosdk import error as algosdk_error
from algosdk import transaction
from algosdk.v2client import algod

from .errors import ConfirmationTimeoutError
from .types import AccountInfo, AssetHolding

if TYPE_CHECKING:
    from .config import DeflexConfig

logger = logging.getLogger(__name__)


class AlgodLedger:
    """LedgerClient implementation over algosdk's AlgodClient.

    Example:
        ```python
        ledger = AlgodLedger(algod.AlgodClient("", "https://testnet-api.4160.nodely.dev"))
        info = await ledger.get_account_info(address)
        ```
    """

    def __init__(self, client: algod.AlgodClient):
        self._client = client

    @classmethod
    def from_config(cls, config: DeflexConfig) -> "AlgodLedger":
        """Create a ledger for the node named in ``config``."""
        return cls(algod.AlgodClient(config.algod_token, config.algod_address))

    @property
    def client(self) -> algod.AlgodClient:
        """The wrapped AlgodClient."""
        return self._client

    async def get_account_info(self, address: str) -> AccountInfo:
        info = await asyncio.to_thread(self._client.account_info, address)

        # Accounts with no opt-ins omit these keys entirely
        apps = [app["id"] for app in info.get("apps-local-state") or []]
        assets = [
            AssetHolding(asset_id=asset["asset-id"], amount=asset.get("amount", 0))
            for asset in info.get("assets") or []
        ]
        return AccountInfo(address=address, apps_opted_in=apps, assets_held=assets)

    async def get_suggested_params(self) -> transaction.SuggestedParams:
        return await asyncio.to_thread(self._client.suggested_params)

    async def submit_raw(self, signed_txns: list[bytes]) -> str:
        # Note: send_raw_transaction expects the concatenated group as base64
        payload = base64.b64encode(b"".join(signed_txns)).decode("utf-8")
        txid = await asyncio.to_thread(self._client.send_raw_transaction, payload)
        logger.debug("Submitted group of %d transactions, first txid %s", len(signed_txns), txid)
        return txid

    async def await_confirmation(self, txid: str, max_rounds: int) -> int:
        try:
            result = await asyncio.to_thread(
                transaction.wait_for_confirmation, self._client, txid, max_rounds
            )
        except algosdk_error.ConfirmationTimeoutError as e:
            raise ConfirmationTimeoutError(txid, max_rounds) from e
        return result["confirmed-round"]

    async def get_pending_transaction_info(self, txid: str) -> dict:
        return await asyncio.to_thread(self._client.pending_transaction_info, txid)
