"""Client for the Deflex order router API."""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any

import httpx

from .composer import SwapComposer
from .config import DeflexConfig
from .constants import ALGO_ASSET_ID, DEPRECATED_PROTOCOLS
from .errors import InvalidInputError
from .ledger import AlgodLedger
from .middleware import call_hook
from .quote import DeflexQuote
from .request import request
from .schemas import FetchQuoteResponse, FetchSwapTxnsBody, FetchSwapTxnsResponse
from .signer import LedgerClient, SignerLike
from .types import FetchQuoteParams, QuoteContext
from .utils import to_int_amount, validate_address


class DeflexClient:
    """Client for fetching swap quotes and composing swap groups.

    Example:
        ```python
        config = DeflexConfig.from_env()
        async with DeflexClient(config) as deflex:
            quote = await deflex.new_quote(
                FetchQuoteParams(
                    from_asset_id=0,          # ALGO
                    to_asset_id=31566704,     # USDC
                    amount=1_000_000,         # 1 ALGO
                    address=signer.address,
                )
            )
            composer = await deflex.new_swap(
                quote=quote, address=signer.address, slippage=1, signer=signer
            )
            result = await composer.execute()
        ```
    """

    def __init__(
        self,
        config: DeflexConfig,
        middleware: list[Any] | None = None,
        ledger: LedgerClient | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ):
        """Create a client.

        Args:
            config: Client configuration.
            middleware: Middleware applied to quotes and swaps, in order.
            ledger: Ledger client. Defaults to an AlgodLedger for the
                configured node.
            http_client: HTTP client. One is created (and closed by
                ``aclose()``) when omitted.
            logger: Logger for diagnostics. Defaults to this module's logger.
        """
        if not isinstance(config, DeflexConfig):
            raise InvalidInputError("A DeflexConfig is required")

        self._config = config
        self._middleware = list(middleware or [])
        self._ledger = ledger if ledger is not None else AlgodLedger.from_config(config)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def config(self) -> DeflexConfig:
        return self._config

    @property
    def ledger(self) -> LedgerClient:
        return self._ledger

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "DeflexClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def fetch_quote(self, params: FetchQuoteParams) -> FetchQuoteResponse:
        """Fetch a swap quote.

        The deprecated protocols are always disabled. When ``params.opt_in`` is
        None and ``auto_opt_in`` is enabled, the asset opt-in flag is decided
        from the account's holdings (requires ``params.address``).

        Args:
            params: Quote request parameters.

        Returns:
            The raw quote response.

        Raises:
            HTTPError: If the router responds with a non-2xx status.
            InvalidAddressError: If ``params.address`` is invalid.
        """
        include_opt_in = params.opt_in
        if include_opt_in is None and self._config.auto_opt_in:
            if params.address:
                include_opt_in = await self.needs_asset_opt_in(
                    validate_address(params.address), params.to_asset_id
                )
            else:
                self._logger.warning(
                    "auto_opt_in is enabled but no address was provided to fetch_quote(); "
                    "asset opt-in check skipped"
                )

        query = {
            "apiKey": self._config.api_key,
            "algodUri": self._config.algod_uri,
            "algodToken": self._config.algod_token,
            "algodPort": str(self._config.algod_port),
            "feeBps": str(self._config.fee_bps),
            "fromASAID": str(int(params.from_asset_id)),
            "toASAID": str(int(params.to_asset_id)),
            "amount": str(to_int_amount(params.amount)),
            "type": params.type,
            "disabledProtocols": ",".join(_disabled_protocols(params.disabled_protocols)),
            "maxGroupSize": str(params.max_group_size),
            "maxDepth": str(params.max_depth),
        }
        if isinstance(include_opt_in, bool):
            query["optIn"] = "true" if include_opt_in else "false"
        if self._config.referrer_address:
            query["referrerAddress"] = self._config.referrer_address

        data = await request(
            self._http, "GET", f"{self._config.api_base_url}/fetchQuote", params=query
        )
        return FetchQuoteResponse.model_validate(data)

    async def needs_asset_opt_in(self, address: str, asset_id: int) -> bool:
        """Whether ``address`` must opt into ``asset_id`` to receive it.

        Always False for ALGO.
        """
        if int(asset_id) == ALGO_ASSET_ID:
            return False
        info = await self._ledger.get_account_info(address)
        return info.holding(int(asset_id)) is None

    async def fetch_swap_transactions(
        self,
        quote: DeflexQuote | FetchQuoteResponse | dict[str, Any],
        address: str,
        slippage: float | int | Decimal,
    ) -> FetchSwapTxnsResponse:
        """Fetch the routed transactions that execute a quote.

        Args:
            quote: Quote from ``new_quote()`` or ``fetch_quote()``.
            address: Account that will sign the swap.
            slippage: Slippage tolerance as a percentage (1 = 1%).

        Raises:
            InvalidAddressError: If ``address`` is invalid.
            HTTPError: If the router responds with a non-2xx status.
        """
        validate_address(address)
        if isinstance(quote, dict):
            quote = FetchQuoteResponse.model_validate(quote)

        body = FetchSwapTxnsBody(
            api_key=self._config.api_key,
            address=address,
            txn_payload_json=quote.txn_payload,
            slippage=float(slippage),
        )
        data = await request(
            self._http,
            "POST",
            f"{self._config.api_base_url}/fetchExecuteSwapTxns",
            json=body.model_dump(by_alias=True, mode="json"),
        )
        return FetchSwapTxnsResponse.model_validate(data)

    async def new_quote(self, params: FetchQuoteParams) -> DeflexQuote:
        """Fetch a quote after letting middleware adjust the request.

        The returned quote keeps the amount and address the caller asked for,
        even when middleware changed them for the request.
        """
        context = QuoteContext(
            from_asset_id=params.from_asset_id,
            to_asset_id=params.to_asset_id,
            amount=to_int_amount(params.amount),
            type=params.type,
            address=params.address,
            ledger=self._ledger,
        )

        adjusted = params
        for mw in self._middleware:
            if await call_hook(mw, "should_apply", context):
                adjusted = await call_hook(mw, "adjust_quote_params", adjusted, default=adjusted)

        response = await self.fetch_quote(adjusted)
        return DeflexQuote(response, amount=params.amount, address=params.address)

    async def new_swap(
        self,
        quote: DeflexQuote | FetchQuoteResponse | dict[str, Any],
        address: str,
        slippage: float | int | Decimal,
        signer: SignerLike,
    ) -> SwapComposer:
        """Fetch the routed transactions and return a composer for them.

        Example:
            ```python
            composer = await deflex.new_swap(quote=quote, address=address, slippage=1, signer=signer)
            composer.add_transaction(before_txn)
            signed = await composer.sign()
            result = await composer.execute()
            ```
        """
        swap = await self.fetch_swap_transactions(quote, address, slippage)

        return SwapComposer(
            quote=quote,
            deflex_txns=swap.txns,
            ledger=self._ledger,
            address=address,
            signer=signer,
            slippage=float(slippage),
            middleware=self._middleware,
            logger=self._logger,
        )


def _disabled_protocols(requested: tuple[Any, ...] | list[Any]) -> list[str]:
    """Deprecated protocols first, then the caller's, without duplicates."""
    names = [p.value if isinstance(p, Enum) else str(p) for p in requested]
    return list(dict.fromkeys([*DEPRECATED_PROTOCOLS, *names]))
