"""Swap middleware: hooks that adjust quotes and add transactions around a swap.

Middleware lets callers handle assets that need extra steps (transfer
restrictions, taxes, app calls) without changing the composer. The final group
order is ``[opt-ins] [before_swap] [swap legs] [after_swap]``.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import Any

from algosdk import transaction

from .constants import ALGO_ASSET_ID, QUOTE_TYPE_FIXED_INPUT
from .types import FetchQuoteParams, QuoteContext, SwapContext, TransactionWithSigner

logger = logging.getLogger(__name__)


class SwapMiddleware:
    """Base class for swap middleware.

    ``should_apply`` gates every other hook of the instance. The remaining
    hooks are optional: override only the ones you need. Objects that do not
    subclass this but expose the same attributes are accepted too.

    If ``before_swap`` or ``after_swap`` add transactions, ``adjust_quote_params``
    MUST lower ``max_group_size`` by the same count, since the router may
    return a route that fills all 16 slots.

    Example:
        ```python
        class TaxedAssetMiddleware(SwapMiddleware):
            name = "TaxedAsset"
            version = "1.0.0"

            async def should_apply(self, context):
                return TAXED_ASSET_ID in (context.from_asset_id, context.to_asset_id)

            async def adjust_quote_params(self, params):
                return dataclasses.replace(params, max_group_size=params.max_group_size - 1)

            async def after_swap(self, context):
                return [TransactionWithSigner(tax_payment(context), context.signer)]
        ```
    """

    name: str = "SwapMiddleware"
    version: str = "0.0.0"

    async def should_apply(self, context: QuoteContext) -> bool:
        """Whether this middleware applies to the swap described by ``context``."""
        raise NotImplementedError

    async def adjust_quote_params(self, params: FetchQuoteParams) -> FetchQuoteParams:
        """Return modified quote parameters. Default: unchanged."""
        return params

    async def before_swap(self, context: SwapContext) -> list[TransactionWithSigner]:
        """Transactions to place immediately before the swap legs."""
        return []

    async def after_swap(self, context: SwapContext) -> list[TransactionWithSigner]:
        """Transactions to place immediately after the swap legs."""
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, version={self.version!r})"


async def call_hook(middleware: Any, hook: str, *args: Any, default: Any = None) -> Any:
    """Call an optional middleware hook, awaiting it if needed.

    Returns ``default`` when the middleware does not define ``hook``.
    """
    fn = getattr(middleware, hook, None)
    if fn is None:
        return default
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class AutoOptOutMiddleware(SwapMiddleware):
    """Opt the swapper out of the input asset when the swap spends all of it.

    Applies to fixed-input swaps of a non-ALGO asset whose amount equals the
    account's entire holding. Adds one asset transfer after the swap that
    closes the (now empty) holding back to the swapper, recovering the
    account's minimum balance.

    Example:
        ```python
        deflex = DeflexClient(config, middleware=[AutoOptOutMiddleware(excluded_assets=[31566704])])
        ```
    """

    name = "AutoOptOut"
    version = "1.0.0"

    def __init__(self, excluded_assets: list[int] | tuple[int, ...] = ()):
        """Create the middleware.

        Args:
            excluded_assets: Asset IDs never to opt out of.
        """
        self._excluded_assets = frozenset(int(a) for a in excluded_assets)

    async def should_apply(self, context: QuoteContext) -> bool:
        if context.type != QUOTE_TYPE_FIXED_INPUT:
            return False
        if not context.address or context.ledger is None:
            return False
        if context.from_asset_id == ALGO_ASSET_ID:
            return False
        if context.from_asset_id in self._excluded_assets:
            return False

        try:
            info = await context.ledger.get_account_info(context.address)
        except Exception as e:
            logger.debug(
                "AutoOptOut: could not fetch account %s, skipping: %s", context.address, e
            )
            return False

        holding = info.holding(context.from_asset_id)
        return holding is not None and holding.amount == context.amount

    async def adjust_quote_params(self, params: FetchQuoteParams) -> FetchQuoteParams:
        return dataclasses.replace(params, max_group_size=params.max_group_size - 1)

    async def after_swap(self, context: SwapContext) -> list[TransactionWithSigner]:
        opt_out = transaction.AssetTransferTxn(
            sender=context.address,
            sp=context.suggested_params,
            receiver=context.address,
            amt=0,
            index=context.from_asset_id,
            close_assets_to=context.address,
        )
        return [TransactionWithSigner(txn=opt_out, signer=context.signer)]
