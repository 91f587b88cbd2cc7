"""Shared fixtures for Deflex unit tests.

The ledger and signers are small in-memory fakes; transactions and keys are
real algosdk objects, so encoding and signing paths run for real.
"""

import base64

import msgpack
import pytest
from algosdk import account, encoding, transaction

from deflex.errors import ConfirmationTimeoutError
from deflex.types import AccountInfo, AssetHolding

GENESIS_HASH = "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI="

# TEAL v6: pushint 1
LOGIC_PROGRAM = b"\x06\x81\x01"

USDC_ASA_ID = 31566704


def make_params() -> transaction.SuggestedParams:
    return transaction.SuggestedParams(
        fee=1000,
        first=1000,
        last=2000,
        gh=GENESIS_HASH,
        gen="testnet-v1.0",
        flat_fee=True,
        min_fee=1000,
    )


def index_map(data: bytes) -> dict[str, int]:
    """Encode bytes the way the router does: ``{"0": b0, "1": b1, ...}``."""
    return {str(i): b for i, b in enumerate(data)}


class FakeLedger:
    """In-memory LedgerClient that records every call."""

    def __init__(
        self,
        apps_opted_in=None,
        assets=None,
        confirmed_round=4321,
        timeout=False,
        account_error=None,
        logs=None,
        info_error=None,
    ):
        self.apps_opted_in = list(apps_opted_in or [])
        self.assets = dict(assets or {})
        self.confirmed_round = confirmed_round
        self.timeout = timeout
        self.account_error = account_error
        self.logs = list(logs or [])
        self.info_error = info_error

        self.account_queries = []
        self.params_calls = 0
        self.submitted = []
        self.confirmations = []
        self.info_queries = []

    async def get_account_info(self, address):
        self.account_queries.append(address)
        if self.account_error is not None:
            raise self.account_error
        return AccountInfo(
            address=address,
            apps_opted_in=list(self.apps_opted_in),
            assets_held=[AssetHolding(asset_id=k, amount=v) for k, v in self.assets.items()],
        )

    async def get_suggested_params(self):
        self.params_calls += 1
        return make_params()

    async def submit_raw(self, signed_txns):
        self.submitted.append(list(signed_txns))
        first = encoding.msgpack_decode(base64.b64encode(signed_txns[0]).decode("utf-8"))
        return first.get_txid()

    async def await_confirmation(self, txid, max_rounds):
        self.confirmations.append((txid, max_rounds))
        if self.timeout:
            raise ConfirmationTimeoutError(txid, max_rounds)
        return self.confirmed_round

    async def get_pending_transaction_info(self, txid):
        self.info_queries.append(txid)
        if self.info_error is not None:
            raise self.info_error
        return {"confirmed-round": self.confirmed_round, "logs": list(self.logs)}


class RecordingSigner:
    """Private-key signer that records the indexes of every call.

    ``mode`` picks the output convention: "sparse" returns a list parallel to
    the group with None for skipped positions, "dense" returns one entry per
    requested index.
    """

    def __init__(self, private_key, mode="sparse"):
        self.private_key = private_key
        self.address = account.address_from_private_key(private_key)
        self.mode = mode
        self.calls = []

    def sign_transactions(self, txn_group, indexes):
        self.calls.append(list(indexes))
        signed = {
            i: base64.b64decode(encoding.msgpack_encode(txn_group[i].sign(self.private_key)))
            for i in indexes
        }
        if self.mode == "sparse":
            return [signed.get(i) for i in range(len(txn_group))]
        return [signed[i] for i in indexes]


class AsyncRecordingSigner(RecordingSigner):
    """RecordingSigner with a coroutine ``sign_transactions``."""

    async def sign_transactions(self, txn_group, indexes):
        return RecordingSigner.sign_transactions(self, txn_group, indexes)


@pytest.fixture
def params():
    return make_params()


@pytest.fixture
def user_account():
    """(private_key, address) of the swapping user."""
    return account.generate_account()


@pytest.fixture
def router_account():
    """(private_key, address) of an account the router signs for."""
    return account.generate_account()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def make_ledger():
    return FakeLedger


@pytest.fixture
def signer(user_account):
    return RecordingSigner(user_account[0])


@pytest.fixture
def make_signer():
    def _make(private_key, mode="sparse", is_async=False):
        cls = AsyncRecordingSigner if is_async else RecordingSigner
        return cls(private_key, mode=mode)

    return _make


@pytest.fixture
def make_routed():
    """Build a routed transaction record as the router returns it."""

    def _make(txn, signature=None):
        record = {
            "data": encoding.msgpack_encode(txn),
            "group": "",
            "logicSigBlob": False,
            "signature": False,
        }
        if signature is not None:
            record["signature"] = signature
        return record

    return _make


@pytest.fixture
def secret_key_signature():
    """Router pre-signature for a private key."""

    def _make(private_key):
        return {"type": "secret_key", "value": index_map(base64.b64decode(private_key))}

    return _make


@pytest.fixture
def logic_signature():
    """Router pre-signature for a logic signature program."""

    def _make(program=LOGIC_PROGRAM, args=None):
        lsig = {"l": program}
        if args is not None:
            lsig["arg"] = args
        blob = msgpack.packb({"lsig": lsig}, use_bin_type=True)
        return {"type": "logic_signature", "value": index_map(blob)}

    return _make


@pytest.fixture
def make_quote_response():
    """Build a fetchQuote response payload."""

    def _make(**overrides):
        data = {
            "quote": "990000",
            "profit": {"amount": 0, "asa": {"id": 0, "decimals": 6, "unit_name": "ALGO"}},
            "priceBaseline": 0.99,
            "userPriceImpact": 0.01,
            "marketPriceImpact": 0.005,
            "usdIn": 0.25,
            "usdOut": 0.2475,
            "route": [
                {
                    "percentage": 100,
                    "path": [
                        {
                            "name": "TinymanV2",
                            "class": [["TinymanV2Swap"]],
                            "in": {"id": 0},
                            "out": {"id": USDC_ASA_ID},
                        }
                    ],
                }
            ],
            "flattenedRoute": {"TinymanV2": 1},
            "quotes": [{"name": "TinymanV2", "class": "TinymanV2Swap", "value": 990000}],
            "requiredAppOptIns": [],
            "txnPayload": {"iv": "aXY=", "data": "ZW5jcnlwdGVk"},
            "protocolFees": {"TinymanV2": 0.003},
            "fromASAID": 0,
            "toASAID": USDC_ASA_ID,
            "type": "fixed-input",
            "timing": {"total": 120},
        }
        data.update(overrides)
        return data

    return _make
