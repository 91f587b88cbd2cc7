"""Deflex constants - API defaults, protocol names, group limits, error codes."""

from enum import Enum

# ============================================================================
# Routing API
# ============================================================================

# Default Deflex API base URL
DEFAULT_API_BASE_URL = "https://deflex.txnlab.dev/api"

# Default fee in basis points (0.15%)
DEFAULT_FEE_BPS = 15

# Maximum allowed fee in basis points (3.00%)
MAX_FEE_BPS = 300

# Default maximum routing depth (number of hops)
DEFAULT_MAX_DEPTH = 4

# Default auto opt-in setting (automatic asset opt-in detection)
DEFAULT_AUTO_OPT_IN = False

# Default HTTP timeout in seconds
DEFAULT_TIMEOUT = 30.0

# Quote types
QUOTE_TYPE_FIXED_INPUT = "fixed-input"
QUOTE_TYPE_FIXED_OUTPUT = "fixed-output"


class Protocol(str, Enum):
    """DEX protocols supported for swap routing."""

    TINYMAN_V2 = "TinymanV2"
    ALGOFI = "Algofi"
    ALGOMINT = "Algomint"
    PACT = "Pact"
    FOLKS = "Folks"
    TALGO = "TAlgo"


# Deprecated protocols, always excluded from routing
DEPRECATED_PROTOCOLS = ("Humble", "Tinyman")

# ============================================================================
# Algod
# ============================================================================

# Default Algod node (mainnet)
DEFAULT_ALGOD_URI = "https://mainnet-api.4160.nodely.dev/"
DEFAULT_ALGOD_TOKEN = ""
DEFAULT_ALGOD_PORT = 443

# ============================================================================
# Transaction groups
# ============================================================================

# Maximum transactions in an atomic group
MAX_GROUP_SIZE = 16

# Default maximum group size requested from the router
DEFAULT_MAX_GROUP_SIZE = MAX_GROUP_SIZE

# Default number of rounds to wait for transaction confirmation
DEFAULT_CONFIRMATION_ROUNDS = 4

# Asset ID of the native token
ALGO_ASSET_ID = 0

# Algorand address validation regex (58 character base32 with checksum)
ADDRESS_REGEX = r"^[A-Z2-7]{58}$"

# Pre-signature kinds returned by the router
SIGNATURE_KIND_SECRET_KEY = "secret_key"
SIGNATURE_KIND_LOGIC_SIGNATURE = "logic_signature"

# First four bytes of the last log of an app call that returns an ABI value
ABI_RETURN_PREFIX = b"\x15\x1f\x7c\x75"

# Returned by the sanitizer in place of secrets
REDACTED = "[REDACTED]"

# ============================================================================
# Error codes
# ============================================================================

ERR_INVALID_INPUT = "invalid_input"
ERR_INVALID_ADDRESS = "invalid_address"
ERR_GROUP_TOO_LARGE = "group_size_exceeded"
ERR_INVALID_STATE = "invalid_state_transition"
ERR_ALREADY_ADDED = "swap_transactions_already_added"
ERR_ALREADY_SUBMITTED = "group_already_submitted"
ERR_ALREADY_COMMITTED = "group_already_committed"
ERR_TXN_DECODE_FAILED = "transaction_decode_failed"
ERR_RESIGN_FAILED = "transaction_resign_failed"
ERR_MALFORMED_SIGNATURE = "malformed_signature"
ERR_UNSUPPORTED_SIGNATURE = "unsupported_signature_kind"
ERR_SIGNING_FAILED = "signing_failed"
ERR_CONFIRMATION_TIMEOUT = "confirmation_timeout"
ERR_HTTP = "http_error"
