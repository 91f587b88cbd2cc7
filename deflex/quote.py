"""Quote value object wrapping a routing-service response."""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any

from .errors import InvalidInputError
from .schemas import DexQuote, FetchQuoteResponse, Profit, Route, TxnPayload
from .utils import apply_slippage, to_int_amount


class DeflexQuote:
    """Immutable snapshot of a routing decision.

    Exposes the response fields read-only, normalizes the quoted amount to an
    exact int, and derives slippage bounds.

    Example:
        ```python
        quote = await deflex.new_quote(
            FetchQuoteParams(from_asset_id=0, to_asset_id=31566704, amount=1_000_000)
        )
        min_received = quote.slippage_bound(1)  # fixed-input
        ```
    """

    __slots__ = ("_response", "_amount", "_address", "_created_at", "_quote")

    def __init__(
        self,
        response: FetchQuoteResponse | dict[str, Any] | None,
        amount: int | str | None,
        address: str | None = None,
    ):
        """Create a quote.

        Args:
            response: Quote response from the router (model or raw dict).
            amount: Amount originally requested, in base units.
            address: Address the quote was requested for, if any.

        Raises:
            InvalidInputError: If response or amount is missing.
        """
        if not response:
            raise InvalidInputError("Quote response is required")
        if amount is None:
            raise InvalidInputError("Amount is required")

        if isinstance(response, dict):
            response = FetchQuoteResponse.model_validate(response)

        self._response = response
        self._amount = to_int_amount(amount)
        self._address = address
        self._quote = to_int_amount(response.quote)
        # Set last: once present, the instance is frozen
        self._created_at = time.time()

    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, "_created_at"):
            raise AttributeError(f"{type(self).__name__} is immutable")
        super().__setattr__(name, value)

    def __repr__(self) -> str:
        return (
            f"DeflexQuote(from_asset_id={self.from_asset_id}, to_asset_id={self.to_asset_id}, "
            f"type={self.type!r}, quote={self.quote}, amount={self.amount})"
        )

    @property
    def response(self) -> FetchQuoteResponse:
        """The raw quote response."""
        return self._response

    # Request metadata

    @property
    def amount(self) -> int:
        """Amount originally requested, in base units."""
        return self._amount

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def created_at(self) -> float:
        """Creation time as a Unix timestamp, for staleness checks."""
        return self._created_at

    # Response fields

    @property
    def quote(self) -> int:
        """Quoted amount in base units.

        Output amount for fixed-input quotes, input amount for fixed-output.
        """
        return self._quote

    @property
    def from_asset_id(self) -> int:
        return self._response.from_asset_id

    @property
    def to_asset_id(self) -> int:
        return self._response.to_asset_id

    @property
    def type(self) -> str:
        return self._response.type

    @property
    def txn_payload(self) -> TxnPayload | None:
        return self._response.txn_payload

    @property
    def required_app_opt_ins(self) -> list[int]:
        return list(self._response.required_app_opt_ins)

    @property
    def route(self) -> list[Route]:
        return list(self._response.route)

    @property
    def flattened_route(self) -> dict[str, float]:
        return dict(self._response.flattened_route)

    @property
    def quotes(self) -> list[DexQuote]:
        return list(self._response.quotes)

    @property
    def profit(self) -> Profit | None:
        return self._response.profit

    @property
    def price_baseline(self) -> float:
        return self._response.price_baseline

    @property
    def user_price_impact(self) -> float | None:
        return self._response.user_price_impact

    @property
    def market_price_impact(self) -> float | None:
        return self._response.market_price_impact

    @property
    def usd_in(self) -> float:
        return self._response.usd_in

    @property
    def usd_out(self) -> float:
        return self._response.usd_out

    @property
    def protocol_fees(self) -> dict[str, float]:
        return dict(self._response.protocol_fees)

    @property
    def timing(self) -> Any:
        return self._response.timing

    def slippage_bound(self, slippage: float | int | str | Decimal) -> int:
        """Slippage-adjusted amount.

        For fixed-input quotes, the minimum amount received. For fixed-output
        quotes, the maximum amount sent.

        Args:
            slippage: Tolerance as a percentage with up to 2 decimals (1 = 1%).

        Returns:
            Bound in base units.
        """
        return apply_slippage(self.quote, slippage, self.type)
