"""Application opt-in resolution for the swap's required apps."""

from __future__ import annotations

import logging

from algosdk import transaction

from .signer import LedgerClient
from .types import GroupTransaction

logger = logging.getLogger(__name__)


async def resolve_app_opt_ins(
    ledger: LedgerClient,
    address: str,
    required_app_ids: list[int],
) -> list[GroupTransaction]:
    """Build opt-in transactions for required apps the account has not joined.

    Args:
        ledger: Ledger used for the account query and suggested params.
        address: Account that will sign the swap.
        required_app_ids: Apps the route needs, in route order.

    Returns:
        One user-signable ApplicationOptInTxn per missing app, in the order of
        ``required_app_ids``.
    """
    if not required_app_ids:
        return []

    info = await ledger.get_account_info(address)
    opted_in = set(info.apps_opted_in or [])

    missing: list[int] = []
    for app_id in required_app_ids:
        if app_id not in opted_in and app_id not in missing:
            missing.append(app_id)

    if not missing:
        return []

    logger.debug("Account %s needs opt-in to apps %s", address, missing)

    params = await ledger.get_suggested_params()
    return [
        GroupTransaction(txn=transaction.ApplicationOptInTxn(address, params, app_id))
        for app_id in missing
    ]
