"""Debug helpers: payload sanitization and swap failure diagnostics.

Nothing here changes logging configuration; output goes to whatever logger the
caller passes, at DEBUG level.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from .constants import REDACTED
from .types import SignatureDescriptor, SwapExecutionContext

_SECRET_KEYS = frozenset({"apiKey", "api_key", "algodToken", "algod_token"})
_SIGNATURE_KEYS = frozenset({"signature"})
_PAYLOAD_KEYS = frozenset({"txnPayload", "txn_payload", "txnPayloadJSON", "txn_payload_json"})


def sanitize(data: Any) -> Any:
    """Return a copy of ``data`` safe to log.

    Secrets are replaced with ``[REDACTED]``, pre-signatures are reduced to
    their kind and length, and encrypted payloads to presence flags. Pydantic
    models are dumped by alias first. Input is never modified.
    """
    return _sanitize(data, set())


def _sanitize(data: Any, seen: set[int]) -> Any:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)

    if isinstance(data, (list, tuple)):
        if id(data) in seen:
            return "[Circular]"
        seen = seen | {id(data)}
        return [_sanitize(item, seen) for item in data]

    if not isinstance(data, dict):
        return data

    if id(data) in seen:
        return "[Circular]"
    seen = seen | {id(data)}

    sanitized: dict[Any, Any] = {}
    for key, value in data.items():
        if key in _SECRET_KEYS:
            sanitized[key] = REDACTED
        elif key in _SIGNATURE_KEYS and value:
            sanitized[key] = _summarize_signature(value)
        elif key in _PAYLOAD_KEYS and value:
            sanitized[key] = _summarize_payload(value)
        else:
            sanitized[key] = _sanitize(value, seen)
    return sanitized


def _summarize_signature(value: Any) -> Any:
    if isinstance(value, SignatureDescriptor):
        return {"type": value.kind, "length": len(value.value)}
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, dict):
        inner = value.get("value")
        return {
            "type": value.get("type"),
            "length": len(inner) if isinstance(inner, (dict, list, bytes)) else None,
        }
    return REDACTED


def _summarize_payload(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if not isinstance(value, dict):
        return {"has_iv": False, "has_data": bool(value), "data_length": None}
    payload_data = value.get("data")
    return {
        "has_iv": bool(value.get("iv")),
        "has_data": bool(payload_data),
        "data_length": len(payload_data) if isinstance(payload_data, (str, list)) else None,
    }


def log_swap_execution_failure(
    logger: logging.Logger,
    context: SwapExecutionContext,
    error: BaseException,
) -> None:
    """Log quote and group details for a failed swap at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    quote = context.quote
    details = {
        "error": str(error),
        "quote": {
            "from_asset_id": quote.from_asset_id,
            "to_asset_id": quote.to_asset_id,
            "type": quote.type,
            "quote": str(quote.quote),
            "required_app_opt_ins": list(quote.required_app_opt_ins),
            "route": [
                {
                    "percentage": route.percentage,
                    "path": " -> ".join(element.name for element in route.path),
                }
                for route in quote.route or []
            ],
        },
        "swap": {
            "address": context.address,
            "slippage": context.slippage,
            "transaction_count": context.transaction_count,
            "middleware_count": context.middleware_count,
            "group_size": context.group_size,
        },
    }
    logger.debug("Swap execution failed: %s", sanitize(details))
