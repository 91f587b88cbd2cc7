"""Wire models for the Deflex routing API.

Responses are validated with pydantic and keep the API's camelCase names as
aliases. Unknown fields are preserved so newer API versions do not break
parsing.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for API payloads: populate by alias or field name, keep extras."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Asset(WireModel):
    """Asset information as reported by the router."""

    id: int
    decimals: int = 0
    unit_name: str = ""
    name: str = ""
    price_algo: float = 0.0
    price_usd: float = 0.0


class Profit(WireModel):
    """Profit information for a swap."""

    amount: float = 0
    asa: Asset | None = None


class PathElement(WireModel):
    """A single hop in a route path."""

    name: str
    class_: list[list[str]] = Field(default_factory=list, alias="class")
    in_: Asset | None = Field(default=None, alias="in")
    out: Asset | None = None


class Route(WireModel):
    """A route with its share of the total swap amount."""

    percentage: float
    path: list[PathElement] = Field(default_factory=list)


class DexQuote(WireModel):
    """Quote from a single DEX protocol."""

    name: str
    class_: str = Field(default="", alias="class")
    value: float = 0


class TxnPayload(WireModel):
    """Encrypted routing payload, opaque to the client."""

    iv: str
    data: str


class FetchQuoteResponse(WireModel):
    """Quote response from ``GET /fetchQuote``.

    ``quote`` is left exactly as sent (string, int or float); ``DeflexQuote``
    normalizes it to an int.
    """

    quote: Union[str, int, float] = ""
    profit: Profit | None = None
    price_baseline: float = Field(default=0.0, alias="priceBaseline")
    user_price_impact: float | None = Field(default=None, alias="userPriceImpact")
    market_price_impact: float | None = Field(default=None, alias="marketPriceImpact")
    usd_in: float = Field(default=0.0, alias="usdIn")
    usd_out: float = Field(default=0.0, alias="usdOut")
    route: list[Route] = Field(default_factory=list)
    flattened_route: dict[str, float] = Field(default_factory=dict, alias="flattenedRoute")
    quotes: list[DexQuote] = Field(default_factory=list)
    required_app_opt_ins: list[int] = Field(default_factory=list, alias="requiredAppOptIns")
    txn_payload: TxnPayload | None = Field(default=None, alias="txnPayload")
    protocol_fees: dict[str, float] = Field(default_factory=dict, alias="protocolFees")
    from_asset_id: int = Field(alias="fromASAID")
    to_asset_id: int = Field(alias="toASAID")
    type: str
    timing: Any = None


class DeflexSignature(WireModel):
    """Pre-signature attached to a routed transaction.

    ``value`` arrives as a byte-offset keyed object (``{"0": 12, "1": 250}``);
    it is turned into real bytes when the transaction is decoded.
    """

    type: str
    value: Any = None


class DeflexTransaction(WireModel):
    """One routed swap transaction."""

    data: str
    group: str = ""
    logic_sig_blob: Any = Field(default=False, alias="logicSigBlob")
    signature: Union[DeflexSignature, Literal[False]] = False


class FetchSwapTxnsResponse(WireModel):
    """Response from ``POST /fetchExecuteSwapTxns``."""

    txns: list[DeflexTransaction]


class FetchSwapTxnsBody(WireModel):
    """Request body for ``POST /fetchExecuteSwapTxns``."""

    api_key: str = Field(alias="apiKey")
    address: str
    txn_payload_json: TxnPayload | None = Field(alias="txnPayloadJSON")
    slippage: float
