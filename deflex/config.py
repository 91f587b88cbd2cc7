"""Client configuration, optionally loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .constants import (
    DEFAULT_ALGOD_PORT,
    DEFAULT_ALGOD_TOKEN,
    DEFAULT_ALGOD_URI,
    DEFAULT_API_BASE_URL,
    DEFAULT_AUTO_OPT_IN,
    DEFAULT_FEE_BPS,
    DEFAULT_TIMEOUT,
    MAX_FEE_BPS,
)
from .errors import InvalidInputError
from .utils import validate_address

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class DeflexConfig:
    """Settings shared by the routing client and the ledger.

    Attributes:
        api_key: Deflex API key (required).
        api_base_url: Routing API base URL.
        algod_uri: Algod node URI.
        algod_token: Algod API token.
        algod_port: Algod port, appended to the URI when it has none.
        referrer_address: Address that receives referral fees.
        fee_bps: Fee in basis points, 0 to 300.
        auto_opt_in: Ask the router for asset opt-ins when the address needs one.
        timeout: HTTP timeout in seconds.
    """

    api_key: str
    api_base_url: str = DEFAULT_API_BASE_URL
    algod_uri: str = DEFAULT_ALGOD_URI
    algod_token: str = DEFAULT_ALGOD_TOKEN
    algod_port: int | None = DEFAULT_ALGOD_PORT
    referrer_address: str | None = None
    fee_bps: int = DEFAULT_FEE_BPS
    auto_opt_in: bool = DEFAULT_AUTO_OPT_IN
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not self.api_key:
            raise InvalidInputError("API key is required")
        if not 0 <= self.fee_bps <= MAX_FEE_BPS:
            raise InvalidInputError(
                f"Invalid fee in basis points: {self.fee_bps} (must be 0-{MAX_FEE_BPS})"
            )
        if self.referrer_address:
            validate_address(self.referrer_address)

    @classmethod
    def from_env(cls, env_file: str | None = None, **overrides) -> "DeflexConfig":
        """Build a config from environment variables.

        Loads ``env_file`` (or a ``.env`` found by python-dotenv) first, without
        overriding variables already set. Keyword overrides win over both.

        Reads DEFLEX_API_KEY, DEFLEX_API_BASE_URL, ALGOD_URI, ALGOD_TOKEN,
        ALGOD_PORT, DEFLEX_REFERRER_ADDRESS, DEFLEX_FEE_BPS, DEFLEX_AUTO_OPT_IN.

        Raises:
            InvalidInputError: If a value is missing or malformed.
        """
        load_dotenv(env_file)

        values: dict = {
            "api_key": os.getenv("DEFLEX_API_KEY", ""),
            "api_base_url": os.getenv("DEFLEX_API_BASE_URL", DEFAULT_API_BASE_URL),
            "algod_uri": os.getenv("ALGOD_URI", DEFAULT_ALGOD_URI),
            "algod_token": os.getenv("ALGOD_TOKEN", DEFAULT_ALGOD_TOKEN),
            "referrer_address": os.getenv("DEFLEX_REFERRER_ADDRESS") or None,
        }

        port = os.getenv("ALGOD_PORT")
        if port:
            values["algod_port"] = _parse_int("ALGOD_PORT", port)

        fee_bps = os.getenv("DEFLEX_FEE_BPS")
        if fee_bps:
            values["fee_bps"] = _parse_int("DEFLEX_FEE_BPS", fee_bps)

        auto_opt_in = os.getenv("DEFLEX_AUTO_OPT_IN")
        if auto_opt_in:
            values["auto_opt_in"] = auto_opt_in.strip().lower() in _TRUE_VALUES

        values.update(overrides)
        return cls(**values)

    @property
    def algod_address(self) -> str:
        """Algod URI with the port applied."""
        uri = self.algod_uri.rstrip("/")
        if not self.algod_port:
            return uri
        host = uri.split("://", 1)[-1]
        if ":" in host:
            return uri
        return f"{uri}:{self.algod_port}"


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidInputError(f"{name} must be an integer, got {raw!r}") from e
