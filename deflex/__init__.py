"""Deflex Python SDK.

Client for the Deflex order router on Algorand: fetches swap quotes, decodes
the routed transactions and composes them into one atomic group that can be
signed, submitted and confirmed.

Features:
- Quotes with exact integer amounts and slippage bounds
- Atomic group composition (up to 16 transactions) around the routed swap
- Automatic app opt-ins required by the route
- Router pre-signed legs (secret key and logic signature) re-signed in place
- Index-driven and ARC-1 sparse signers
- Middleware hooks for assets that need extra transactions

Environment Variables (see ``DeflexConfig.from_env``):
    DEFLEX_API_KEY: Deflex API key (required)
    DEFLEX_API_BASE_URL: Routing API base URL
    ALGOD_URI / ALGOD_TOKEN / ALGOD_PORT: Algod node
    DEFLEX_REFERRER_ADDRESS: Referral fee recipient
    DEFLEX_FEE_BPS: Fee in basis points (0-300)
    DEFLEX_AUTO_OPT_IN: Automatic asset opt-in detection

Usage:
    ```python
    from deflex import AlgorandSigner, DeflexClient, DeflexConfig, FetchQuoteParams

    signer = AlgorandSigner.from_mnemonic(os.environ["ALGORAND_MNEMONIC"])

    async with DeflexClient(DeflexConfig.from_env()) as deflex:
        quote = await deflex.new_quote(
            FetchQuoteParams(from_asset_id=0, to_asset_id=31566704, amount=1_000_000)
        )
        composer = await deflex.new_swap(
            quote=quote, address=signer.address, slippage=1, signer=signer
        )
        result = await composer.execute()
        print(f"Confirmed in round {result.confirmed_round}")
    ```
"""

# Constants
from .constants import (
    ALGO_ASSET_ID,
    DEFAULT_API_BASE_URL,
    DEFAULT_CONFIRMATION_ROUNDS,
    DEFAULT_FEE_BPS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_GROUP_SIZE,
    DEPRECATED_PROTOCOLS,
    MAX_FEE_BPS,
    MAX_GROUP_SIZE,
    QUOTE_TYPE_FIXED_INPUT,
    QUOTE_TYPE_FIXED_OUTPUT,
    Protocol,
)

# Errors
from .errors import (
    AlreadyAddedError,
    AlreadyCommittedError,
    AlreadySubmittedError,
    ConfirmationTimeoutError,
    DecodeError,
    DeflexError,
    GroupSizeExceededError,
    HTTPError,
    InvalidAddressError,
    InvalidInputError,
    InvalidStateTransitionError,
    MalformedSignatureError,
    ReSignError,
    SigningError,
    UnsupportedSignatureKindError,
)

# Wire models
from .schemas import (
    DeflexSignature,
    DeflexTransaction,
    FetchQuoteResponse,
    FetchSwapTxnsResponse,
    TxnPayload,
)

# Types
from .types import (
    AccountInfo,
    AssetHolding,
    ExecuteResult,
    FetchQuoteParams,
    GroupTransaction,
    MethodCall,
    QuoteContext,
    SignatureDescriptor,
    SwapContext,
    TransactionWithSigner,
)

# Collaborator protocols and implementations
from .signer import ClientSigner, LedgerClient, SignerLike
from .signers import AlgorandSigner
from .ledger import AlgodLedger

# Core
from .config import DeflexConfig
from .quote import DeflexQuote
from .composer import SwapComposer, SwapComposerStatus
from .middleware import AutoOptOutMiddleware, SwapMiddleware
from .client import DeflexClient

# Utilities
from .debug import sanitize
from .utils import is_valid_address

__all__ = [
    # Constants
    "ALGO_ASSET_ID",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_CONFIRMATION_ROUNDS",
    "DEFAULT_FEE_BPS",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MAX_GROUP_SIZE",
    "DEPRECATED_PROTOCOLS",
    "MAX_FEE_BPS",
    "MAX_GROUP_SIZE",
    "QUOTE_TYPE_FIXED_INPUT",
    "QUOTE_TYPE_FIXED_OUTPUT",
    "Protocol",
    # Errors
    "AlreadyAddedError",
    "AlreadyCommittedError",
    "AlreadySubmittedError",
    "ConfirmationTimeoutError",
    "DecodeError",
    "DeflexError",
    "GroupSizeExceededError",
    "HTTPError",
    "InvalidAddressError",
    "InvalidInputError",
    "InvalidStateTransitionError",
    "MalformedSignatureError",
    "ReSignError",
    "SigningError",
    "UnsupportedSignatureKindError",
    # Wire models
    "DeflexSignature",
    "DeflexTransaction",
    "FetchQuoteResponse",
    "FetchSwapTxnsResponse",
    "TxnPayload",
    # Types
    "AccountInfo",
    "AssetHolding",
    "ExecuteResult",
    "FetchQuoteParams",
    "GroupTransaction",
    "MethodCall",
    "QuoteContext",
    "SignatureDescriptor",
    "SwapContext",
    "TransactionWithSigner",
    # Collaborators
    "AlgodLedger",
    "AlgorandSigner",
    "ClientSigner",
    "LedgerClient",
    "SignerLike",
    # Core
    "AutoOptOutMiddleware",
    "DeflexClient",
    "DeflexConfig",
    "DeflexQuote",
    "SwapComposer",
    "SwapComposerStatus",
    "SwapMiddleware",
    # Utilities
    "is_valid_address",
    "sanitize",
]
