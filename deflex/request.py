"""JSON request helper for the routing API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .debug import sanitize
from .errors import HTTPError

logger = logging.getLogger(__name__)

ERROR_BODY_PLACEHOLDER = "Failed to parse error response"


async def request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json: Any = None,
) -> Any:
    """Send a request and return the parsed JSON body.

    Transport failures (timeouts, connection errors) propagate as httpx
    exceptions.

    Args:
        client: HTTP client to send with.
        method: HTTP method.
        url: Absolute URL.
        params: Query parameters.
        json: JSON request body.

    Returns:
        The decoded JSON response.

    Raises:
        HTTPError: If the status is not 2xx, or a 2xx body is not JSON.
    """
    logger.debug("%s %s %s", method, url, sanitize(params) if params else "")

    response = await client.request(method, url, params=params, json=json)

    if not response.is_success:
        data = _error_body(response)
        logger.debug("%s %s failed with HTTP %d: %s", method, url, response.status_code, data)
        raise HTTPError(response.status_code, response.reason_phrase, data)

    try:
        return response.json()
    except ValueError as e:
        raise HTTPError(response.status_code, "Invalid JSON response", response.text) from e


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        pass
    try:
        return response.text
    except Exception:
        return ERROR_BODY_PLACEHOLDER
