"""Unit tests for SwapComposer."""

import base64
import logging

import pytest
from algosdk import abi, encoding, transaction
from algosdk import atomic_transaction_composer as atc

from deflex.composer import SwapComposer, SwapComposerStatus
from deflex.errors import (
    AlreadyAddedError,
    AlreadyCommittedError,
    AlreadySubmittedError,
    ConfirmationTimeoutError,
    DecodeError,
    GroupSizeExceededError,
    InvalidAddressError,
    InvalidInputError,
    InvalidStateTransitionError,
    SigningError,
)
from deflex.middleware import SwapMiddleware
from deflex.quote import DeflexQuote
from deflex.schemas import FetchQuoteResponse
from deflex.types import MethodCall, TransactionWithSigner


def _payment(address, params, amount):
    return transaction.PaymentTxn(address, params, address, amount)


def _decode(blob):
    return encoding.msgpack_decode(base64.b64encode(blob).decode("utf-8"))


@pytest.fixture
def quote(make_quote_response):
    return DeflexQuote(make_quote_response(), amount=1_000_000)


_UNSET = object()


@pytest.fixture
def make_composer(quote, ledger, user_account, signer, params, make_routed):
    """Build a composer whose legs are user-signable payments by default."""

    def _make(legs=1, **kwargs):
        deflex_txns = kwargs.pop("deflex_txns", _UNSET)
        if deflex_txns is _UNSET:
            deflex_txns = [
                make_routed(_payment(user_account[1], params, 5000 + i)) for i in range(legs)
            ]
        options = {
            "quote": quote,
            "deflex_txns": deflex_txns,
            "ledger": ledger,
            "address": user_account[1],
            "signer": signer,
        }
        options.update(kwargs)
        return SwapComposer(**options)

    return _make


class RecordingMiddleware(SwapMiddleware):
    """Middleware that adds one transaction before and one after the swap."""

    name = "Recording"
    version = "1.0.0"

    def __init__(self, applies=True):
        self.applies = applies
        self.contexts = []
        self.hook_calls = []

    async def should_apply(self, context):
        self.contexts.append(context)
        return self.applies

    async def before_swap(self, context):
        self.hook_calls.append("before")
        return [TransactionWithSigner(_payment(context.address, context.suggested_params, 7001))]

    async def after_swap(self, context):
        self.hook_calls.append("after")
        return [_payment(context.address, context.suggested_params, 7002)]


class TestConstruction:
    """Tests for composer construction."""

    def test_initial_state(self, make_composer):
        """Test a new composer is empty and BUILDING."""
        composer = make_composer()
        assert composer.get_status() == SwapComposerStatus.BUILDING
        assert composer.count() == 0

    def test_missing_quote(self, make_composer):
        """Test a missing quote is rejected."""
        with pytest.raises(InvalidInputError, match="Quote"):
            make_composer(quote=None)

    def test_missing_transactions(self, make_composer):
        """Test None routed transactions are rejected."""
        with pytest.raises(InvalidInputError):
            make_composer(deflex_txns=None)

    def test_empty_transactions(self, make_composer):
        """Test an empty routed transaction list is rejected."""
        with pytest.raises(InvalidInputError, match="cannot be empty"):
            make_composer(deflex_txns=[])

    def test_missing_ledger(self, make_composer):
        """Test a missing ledger is rejected."""
        with pytest.raises(InvalidInputError):
            make_composer(ledger=None)

    def test_missing_signer(self, make_composer):
        """Test a missing signer is rejected."""
        with pytest.raises(InvalidInputError):
            make_composer(signer=None)

    def test_invalid_address_before_any_ledger_call(self, make_composer, ledger):
        """Test an invalid address fails fast without touching the ledger."""
        with pytest.raises(InvalidAddressError):
            make_composer(address="bogus")
        assert ledger.account_queries == []
        assert ledger.params_calls == 0

    def test_raw_quote_dict(self, make_composer, make_quote_response):
        """Test a raw response dict is validated into a model."""
        composer = make_composer(quote=make_quote_response())
        assert isinstance(composer.quote, FetchQuoteResponse)


class TestAddTransaction:
    """Tests for adding caller transactions."""

    def test_add_and_chain(self, make_composer, user_account, params):
        """Test transactions are appended and the composer is returned."""
        composer = make_composer()
        result = composer.add_transaction(_payment(user_account[1], params, 1))
        assert result is composer
        assert composer.count() == 1

    def test_sixteenth_fits_seventeenth_fails(self, make_composer, user_account, params):
        """Test the group holds at most 16 transactions."""
        composer = make_composer()
        for i in range(16):
            composer.add_transaction(_payment(user_account[1], params, i))

        with pytest.raises(GroupSizeExceededError) as exc_info:
            composer.add_transaction(_payment(user_account[1], params, 16))
        assert exc_info.value.limit == 16
        assert exc_info.value.attempted == 17
        assert composer.count() == 16

    def test_rejects_grouped_transaction(self, make_composer, user_account, params):
        """Test a transaction that already has a group ID is rejected."""
        txns = transaction.assign_group_id(
            [_payment(user_account[1], params, 1), _payment(user_account[1], params, 2)]
        )
        with pytest.raises(InvalidInputError, match="group ID"):
            make_composer().add_transaction(txns[0])

    def test_rejects_non_transaction(self, make_composer):
        """Test arbitrary objects are rejected."""
        with pytest.raises(InvalidInputError):
            make_composer().add_transaction(b"raw bytes")

    @pytest.mark.asyncio
    async def test_add_after_sign(self, make_composer, user_account, params):
        """Test adding after signing is an invalid transition."""
        composer = make_composer()
        await composer.sign()

        with pytest.raises(InvalidStateTransitionError):
            composer.add_transaction(_payment(user_account[1], params, 1))
        assert composer.get_status() == SwapComposerStatus.SIGNED


class TestAddMethodCall:
    """Tests for adding ABI method calls."""

    def test_method_call(self, make_composer, user_account, params, make_signer, router_account):
        """Test the app call is added ungrouped with its signer."""
        app_signer = make_signer(router_account[0])
        composer = make_composer()
        composer.add_method_call(
            MethodCall(
                app_id=1234,
                method=abi.Method.from_signature("hello(string)string"),
                sender=user_account[1],
                suggested_params=params,
                method_args=["world"],
                signer=app_signer,
            )
        )

        (slot,) = composer.build_group()
        assert isinstance(slot.txn, transaction.ApplicationCallTxn)
        assert slot.txn.index == 1234
        assert slot.txn.group is None
        assert slot.signer is app_signer

    def test_method_call_defaults_to_user_signer(self, make_composer, user_account, params):
        """Test an app call without a signer is left for the user signer."""
        composer = make_composer()
        composer.add_method_call(
            MethodCall(
                app_id=1234,
                method=abi.Method.from_signature("noop()void"),
                sender=user_account[1],
                suggested_params=params,
            )
        )
        assert composer.build_group()[0].signer is None

    def test_method_recorded_on_app_call(self, make_composer, user_account, params):
        """Test the ABI method is kept on the app call slot only."""
        method = abi.Method.from_signature("pay(pay)string")
        composer = make_composer()
        composer.add_method_call(
            MethodCall(
                app_id=1234,
                method=method,
                sender=user_account[1],
                suggested_params=params,
                method_args=[
                    atc.TransactionWithSigner(
                        _payment(user_account[1], params, 7), atc.EmptySigner()
                    )
                ],
            )
        )

        payment, app_call = composer.build_group()
        assert payment.method is None
        assert app_call.method is method

    def test_method_call_respects_capacity(self, make_composer, user_account, params):
        """Test an app call does not fit in a full group."""
        composer = make_composer()
        for i in range(16):
            composer.add_transaction(_payment(user_account[1], params, i))

        with pytest.raises(GroupSizeExceededError):
            composer.add_method_call(
                MethodCall(
                    app_id=1234,
                    method=abi.Method.from_signature("noop()void"),
                    sender=user_account[1],
                    suggested_params=params,
                )
            )
        assert composer.count() == 16


class TestAddSwapTransactions:
    """Tests for adding the swap to the group."""

    @pytest.mark.asyncio
    async def test_order(
        self, make_composer, make_ledger, make_quote_response, user_account, params
    ):
        """Test caller txns, then missing opt-ins, then swap legs."""
        ledger = make_ledger(apps_opted_in=[200])
        quote = DeflexQuote(make_quote_response(requiredAppOptIns=[100, 200]), amount=1)
        composer = make_composer(legs=2, ledger=ledger, quote=quote)
        composer.add_transaction(_payment(user_account[1], params, 999))

        await composer.add_swap_transactions()
        group = composer.build_group()

        assert len(group) == 4
        assert group[0].txn.amt == 999
        assert isinstance(group[1].txn, transaction.ApplicationOptInTxn)
        assert group[1].txn.index == 100
        assert [slot.txn.amt for slot in group[2:]] == [5000, 5001]

    @pytest.mark.asyncio
    async def test_twice_raises(self, make_composer):
        """Test the swap can only be added once."""
        composer = make_composer()
        await composer.add_swap_transactions()

        with pytest.raises(AlreadyAddedError):
            await composer.add_swap_transactions()
        assert composer.count() == 1

    @pytest.mark.asyncio
    async def test_exactly_sixteen(self, make_composer, user_account, params):
        """Test a swap that fills the group to 16 is accepted."""
        composer = make_composer(legs=2)
        for i in range(14):
            composer.add_transaction(_payment(user_account[1], params, i))

        await composer.add_swap_transactions()
        assert composer.count() == 16

    @pytest.mark.asyncio
    async def test_overflow_leaves_group_unchanged(self, make_composer, user_account, params):
        """Test an oversized swap adds nothing and can be retried after."""
        composer = make_composer(legs=2)
        for i in range(15):
            composer.add_transaction(_payment(user_account[1], params, i))

        with pytest.raises(GroupSizeExceededError, match="maximum atomic group size of 16"):
            await composer.add_swap_transactions()
        assert composer.count() == 15
        assert composer.get_status() == SwapComposerStatus.BUILDING

    @pytest.mark.asyncio
    async def test_decode_failure_leaves_group_unchanged(self, make_composer):
        """Test a malformed leg adds nothing."""
        composer = make_composer(deflex_txns=[{"data": "%%%", "signature": False}])
        with pytest.raises(DecodeError):
            await composer.add_swap_transactions()
        assert composer.count() == 0

    @pytest.mark.asyncio
    async def test_after_build_raises(self, make_composer, user_account, params):
        """Test the swap cannot be added after the group is built."""
        composer = make_composer()
        composer.add_transaction(_payment(user_account[1], params, 1))
        composer.build_group()

        with pytest.raises(InvalidStateTransitionError):
            await composer.add_swap_transactions()


class TestMiddleware:
    """Tests for middleware hooks during swap composition."""

    @pytest.mark.asyncio
    async def test_hook_order(self, make_composer, make_ledger, make_quote_response):
        """Test [opt-ins] [before] [legs] [after]."""
        middleware = RecordingMiddleware()
        quote = DeflexQuote(make_quote_response(requiredAppOptIns=[100]), amount=1)
        composer = make_composer(legs=1, quote=quote, middleware=[middleware])

        await composer.add_swap_transactions()
        group = composer.build_group()

        assert isinstance(group[0].txn, transaction.ApplicationOptInTxn)
        assert [slot.txn.amt for slot in group[1:]] == [7001, 5000, 7002]
        assert middleware.hook_calls == ["before", "after"]

    @pytest.mark.asyncio
    async def test_context_carries_quote_amount(self, make_composer, user_account):
        """Test should_apply sees the quote's requested amount and the address."""
        middleware = RecordingMiddleware(applies=False)
        composer = make_composer(middleware=[middleware])

        await composer.add_swap_transactions()

        (context,) = middleware.contexts
        assert context.amount == 1_000_000
        assert context.address == user_account[1]
        assert context.from_asset_id == 0

    @pytest.mark.asyncio
    async def test_not_applicable_skips_hooks(self, make_composer, ledger):
        """Test hooks and the params fetch are skipped when nothing applies."""
        middleware = RecordingMiddleware(applies=False)
        composer = make_composer(middleware=[middleware])

        await composer.add_swap_transactions()

        assert middleware.hook_calls == []
        assert ledger.params_calls == 0
        assert composer.count() == 1

    @pytest.mark.asyncio
    async def test_duck_typed_middleware(self, make_composer):
        """Test middleware with only should_apply works."""

        class Minimal:
            def should_apply(self, context):
                return True

        composer = make_composer(middleware=[Minimal()])
        await composer.add_swap_transactions()
        assert composer.count() == 1

    @pytest.mark.asyncio
    async def test_hook_signer_used(self, make_composer, make_signer, router_account, signer):
        """Test a hook transaction's own signer signs it."""
        hook_signer = make_signer(router_account[0])

        class RouterPays(SwapMiddleware):
            async def should_apply(self, context):
                return True

            async def after_swap(self, context):
                txn = _payment(router_account[1], context.suggested_params, 1)
                return [TransactionWithSigner(txn, signer=hook_signer)]

        composer = make_composer(middleware=[RouterPays()])
        await composer.sign()

        assert signer.calls == [[0]]
        assert hook_signer.calls == [[1]]


class TestBuildGroup:
    """Tests for group finalization."""

    def test_empty_group(self, make_composer):
        """Test an empty group cannot be built."""
        composer = make_composer()
        with pytest.raises(InvalidStateTransitionError):
            composer.build_group()
        assert composer.get_status() == SwapComposerStatus.BUILDING

    @pytest.mark.asyncio
    async def test_single_transaction_has_no_group_id(self, make_composer):
        """Test a one-transaction group is left ungrouped."""
        composer = make_composer()
        await composer.add_swap_transactions()

        (slot,) = composer.build_group()
        assert slot.txn.group is None
        assert composer.get_status() == SwapComposerStatus.BUILT

    @pytest.mark.asyncio
    async def test_shared_group_id(self, make_composer):
        """Test every transaction gets the same group ID."""
        composer = make_composer(legs=3)
        await composer.add_swap_transactions()

        group = composer.build_group()
        assert all(slot.txn.group for slot in group)
        assert {slot.txn.group for slot in group} == {group[0].txn.group}

    @pytest.mark.asyncio
    async def test_idempotent(self, make_composer):
        """Test building twice keeps the same group."""
        composer = make_composer(legs=2)
        await composer.add_swap_transactions()

        first = [slot.txn.get_txid() for slot in composer.build_group()]
        second = [slot.txn.get_txid() for slot in composer.build_group()]
        assert first == second

    @pytest.mark.asyncio
    async def test_tx_ids(self, make_composer):
        """Test transaction IDs are only available once built."""
        composer = make_composer(legs=2)
        await composer.add_swap_transactions()

        with pytest.raises(InvalidStateTransitionError):
            composer.get_tx_ids()

        group = composer.build_group()
        assert composer.get_tx_ids() == [slot.txn.get_txid() for slot in group]


class TestSign:
    """Tests for signing the group."""

    @pytest.mark.asyncio
    async def test_adds_swap_and_signs(self, make_composer, signer):
        """Test sign adds the swap and calls the user signer once."""
        composer = make_composer(legs=3)

        signed = await composer.sign()

        assert composer.count() == 3
        assert composer.get_status() == SwapComposerStatus.SIGNED
        assert signer.calls == [[0, 1, 2]]
        assert [_decode(b).transaction.get_txid() for b in signed] == composer.get_tx_ids()

    @pytest.mark.asyncio
    async def test_idempotent(self, make_composer, signer):
        """Test a second sign returns the same list without signing again."""
        composer = make_composer(legs=2)

        first = await composer.sign()
        second = await composer.sign()

        assert second is first
        assert len(signer.calls) == 1

    @pytest.mark.asyncio
    async def test_presigned_legs_skip_signer(
        self,
        make_composer,
        signer,
        router_account,
        params,
        make_routed,
        secret_key_signature,
        logic_signature,
    ):
        """Test router pre-signed legs never reach the user signer."""
        deflex_txns = [
            make_routed(
                _payment(router_account[1], params, 1),
                signature=secret_key_signature(router_account[0]),
            ),
            make_routed(_payment(router_account[1], params, 2), signature=logic_signature()),
        ]
        composer = make_composer(deflex_txns=deflex_txns)

        signed = await composer.sign()

        assert signer.calls == []
        assert isinstance(_decode(signed[0]), transaction.SignedTransaction)
        assert isinstance(_decode(signed[1]), transaction.LogicSigTransaction)

    @pytest.mark.asyncio
    async def test_mixed_group(
        self, make_composer, signer, user_account, router_account, params, make_routed,
        secret_key_signature,
    ):
        """Test only user slots are sent to the user signer."""
        deflex_txns = [
            make_routed(_payment(user_account[1], params, 1)),
            make_routed(
                _payment(router_account[1], params, 2),
                signature=secret_key_signature(router_account[0]),
            ),
            make_routed(_payment(user_account[1], params, 3)),
        ]
        composer = make_composer(deflex_txns=deflex_txns)

        signed = await composer.sign()

        assert signer.calls == [[0, 2]]
        assert len(signed) == 3
        assert [_decode(b).transaction.get_txid() for b in signed] == composer.get_tx_ids()

    @pytest.mark.asyncio
    async def test_per_transaction_signer(
        self, make_composer, signer, make_signer, router_account, params
    ):
        """Test a transaction added with its own signer is signed by it."""
        other = make_signer(router_account[0], mode="dense")
        composer = make_composer()
        composer.add_transaction(_payment(router_account[1], params, 1), signer=other)

        await composer.sign()

        assert other.calls == [[0]]
        assert signer.calls == [[1]]

    @pytest.mark.asyncio
    async def test_async_signer(self, make_composer, make_signer, user_account):
        """Test an async signer is awaited."""
        async_signer = make_signer(user_account[0], is_async=True)
        composer = make_composer(legs=2, signer=async_signer)

        signed = await composer.sign()
        assert len(signed) == 2
        assert async_signer.calls == [[0, 1]]

    @pytest.mark.asyncio
    async def test_signer_failure(self, make_composer):
        """Test a failing signer raises SigningError and the group stays built."""

        def reject(txn_group, indexes):
            raise RuntimeError("rejected by user")

        composer = make_composer(signer=reject)
        with pytest.raises(SigningError, match="rejected by user"):
            await composer.sign()
        assert composer.get_status() == SwapComposerStatus.BUILT

    @pytest.mark.asyncio
    async def test_signer_failure_logged(self, make_composer, caplog):
        """Test failures are logged at DEBUG with the quote summary."""

        def reject(txn_group, indexes):
            raise RuntimeError("rejected by user")

        caplog.set_level(logging.DEBUG, logger="deflex.composer")
        composer = make_composer(signer=reject, slippage=1.0)
        with pytest.raises(SigningError):
            await composer.sign()

        assert "Swap execution failed" in caplog.text
        assert "TinymanV2" in caplog.text

    @pytest.mark.asyncio
    async def test_swap_decode_failure_logged(self, make_composer, caplog):
        """Test a failure while adding the swap during sign is logged."""
        caplog.set_level(logging.DEBUG, logger="deflex.composer")
        composer = make_composer(deflex_txns=[None])

        with pytest.raises(DecodeError, match="missing transaction record"):
            await composer.sign()

        assert "Swap execution failed" in caplog.text
        assert composer.get_status() == SwapComposerStatus.BUILDING

    @pytest.mark.asyncio
    async def test_sign_after_manual_build_without_swap(
        self, make_composer, user_account, params
    ):
        """Test signing a built group that lacks the swap is rejected."""
        composer = make_composer()
        composer.add_transaction(_payment(user_account[1], params, 1))
        composer.build_group()

        with pytest.raises(InvalidStateTransitionError):
            await composer.sign()


class TestSubmitAndExecute:
    """Tests for submission and confirmation."""

    @pytest.mark.asyncio
    async def test_submit(self, make_composer, ledger):
        """Test submit sends the signed group and returns its IDs."""
        composer = make_composer(legs=2)

        tx_ids = await composer.submit()

        assert composer.get_status() == SwapComposerStatus.SUBMITTED
        assert ledger.submitted == [await composer.sign()]
        assert tx_ids == composer.get_tx_ids()
        assert ledger.confirmations == []

    @pytest.mark.asyncio
    async def test_submit_twice(self, make_composer, ledger):
        """Test a second submit raises and sends nothing."""
        composer = make_composer()
        await composer.submit()

        with pytest.raises(AlreadySubmittedError):
            await composer.submit()
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_submit_failure_keeps_signed(self, make_composer, ledger):
        """Test a rejected submission leaves the group SIGNED."""

        async def fail(signed_txns):
            raise RuntimeError("overspend")

        ledger.submit_raw = fail
        composer = make_composer()

        with pytest.raises(RuntimeError, match="overspend"):
            await composer.submit()
        assert composer.get_status() == SwapComposerStatus.SIGNED

    @pytest.mark.asyncio
    async def test_execute(self, make_composer, ledger):
        """Test execute signs, submits and confirms."""
        composer = make_composer(legs=2)

        result = await composer.execute()

        assert result.confirmed_round == 4321
        assert result.tx_ids == composer.get_tx_ids()
        assert ledger.confirmations == [(result.tx_ids[0], 4)]
        assert composer.get_status() == SwapComposerStatus.COMMITTED
        assert result.method_results == []
        assert ledger.info_queries == []

    @pytest.mark.asyncio
    async def test_execute_method_results(self, make_composer, ledger, user_account, params):
        """Test app call return values are decoded after confirmation."""
        encoded = abi.StringType().encode("hello world")
        ledger.logs = [base64.b64encode(b"\x15\x1f\x7c\x75" + encoded).decode()]
        method = abi.Method.from_signature("hello(string)string")
        composer = make_composer()
        composer.add_method_call(
            MethodCall(
                app_id=1234,
                method=method,
                sender=user_account[1],
                suggested_params=params,
                method_args=["world"],
            )
        )

        result = await composer.execute()

        (method_result,) = result.method_results
        assert method_result.tx_id == result.tx_ids[0]
        assert method_result.method is method
        assert method_result.return_value == "hello world"
        assert method_result.decode_error is None
        assert ledger.info_queries == [result.tx_ids[0]]

    @pytest.mark.asyncio
    async def test_execute_method_result_unavailable(
        self, make_composer, ledger, user_account, params
    ):
        """Test a failed info lookup is reported on the result, not raised."""
        ledger.info_error = RuntimeError("node unavailable")
        composer = make_composer()
        composer.add_method_call(
            MethodCall(
                app_id=1234,
                method=abi.Method.from_signature("noop()void"),
                sender=user_account[1],
                suggested_params=params,
            )
        )

        result = await composer.execute()

        assert composer.get_status() == SwapComposerStatus.COMMITTED
        assert isinstance(result.method_results[0].decode_error, RuntimeError)
        assert result.method_results[0].return_value is None

    @pytest.mark.asyncio
    async def test_execute_wait_rounds(self, make_composer, ledger):
        """Test the confirmation window is passed through."""
        composer = make_composer()
        await composer.execute(wait_rounds=10)
        assert ledger.confirmations[0][1] == 10

    @pytest.mark.asyncio
    async def test_execute_after_submit_only_confirms(self, make_composer, ledger):
        """Test execute after submit does not submit again."""
        composer = make_composer()
        tx_ids = await composer.submit()

        result = await composer.execute()

        assert len(ledger.submitted) == 1
        assert result.tx_ids == tx_ids

    @pytest.mark.asyncio
    async def test_execute_twice(self, make_composer):
        """Test a committed group cannot be executed or submitted again."""
        composer = make_composer()
        await composer.execute()

        with pytest.raises(AlreadyCommittedError):
            await composer.execute()
        with pytest.raises(AlreadySubmittedError):
            await composer.submit()

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, make_composer, make_ledger):
        """Test a timeout propagates and the group stays SUBMITTED."""
        composer = make_composer(ledger=make_ledger(timeout=True))

        with pytest.raises(ConfirmationTimeoutError):
            await composer.execute(wait_rounds=2)
        assert composer.get_status() == SwapComposerStatus.SUBMITTED
