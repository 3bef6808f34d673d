"""Output planning for redeem splits.

Outputs are appended in a fixed order (redeem, one per split destination,
change, data note) and the returned plan mirrors every output except the
data note, in the same order, for the unlocking script builder.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from stas_sdk.bsv.address import address_to_pubkey_hash
from stas_sdk.bsv.script import p2pkh_lock_script
from stas_sdk.bsv.transaction import Transaction
from stas_sdk.errors.redeem_errors import InsufficientChangeError
from stas_sdk.redeem.models import SplitDestination, Utxo
from stas_sdk.token.templates import (
    TokenScript,
    check_destination_address,
    data_note_script,
)
from stas_sdk.token.unlocking import OutputPlanEntry

logger = logging.getLogger(__name__)


def plan_outputs(
    tx: Transaction,
    token: TokenScript,
    token_utxo: Utxo,
    split_destinations: Sequence[SplitDestination],
    *,
    payment_utxo: Utxo | None,
    payment_pkh: bytes | None,
    data: bytes | None,
    is_zero_change: bool,
    tx_cost: int,
    fee_estimate_call: bool,
    dust_threshold: int,
) -> list[OutputPlanEntry]:
    """Append the redeem-split outputs to *tx* and return the matching plan.

    Args:
        tx: Transaction with its inputs already added.
        token: Parsed token script of *token_utxo*.
        token_utxo: The token output being redeemed.
        split_destinations: Recipients, in output order.
        payment_utxo: Fee-paying output, or None for the zero-fee path.
        payment_pkh: Hash change is paid back to.
        data: Data note payload, or None.
        is_zero_change: Skip the change output.
        tx_cost: Fee in satoshis.
        fee_estimate_call: True for the sizing pass; skips the change check.
        dust_threshold: Smallest amount the payment UTXO must keep after the fee.

    Raises:
        DestinationAddressError: If a destination breaks the token kind's rule.
        InsufficientChangeError: If the payment UTXO cannot cover *tx_cost*.
    """
    plan: list[OutputPlanEntry] = []

    redeem_sats = token_utxo.satoshis - sum(d.satoshis for d in split_destinations)
    tx.add_output(redeem_sats, p2pkh_lock_script(token.redemption_pkh))
    plan.append(OutputPlanEntry(token.redemption_pkh, redeem_sats))

    for destination in split_destinations:
        destination_pkh = address_to_pubkey_hash(destination.address)
        split_token = token.with_owner(destination_pkh)
        check_destination_address(split_token.redemption_pkh, destination_pkh, token.kind)
        tx.add_output(destination.satoshis, split_token.to_bytes())
        plan.append(OutputPlanEntry(destination_pkh, destination.satoshis))

    if payment_utxo is not None and not fee_estimate_call:
        required = tx_cost + dust_threshold
        if payment_utxo.satoshis < required:
            msg = (
                f"Payment UTXO holds {payment_utxo.satoshis} satoshis; "
                f"{required} needed to cover a {tx_cost} satoshi fee"
            )
            raise InsufficientChangeError(
                msg, available=payment_utxo.satoshis, required=required
            )

    if payment_utxo is not None and payment_pkh is not None and not is_zero_change:
        change_sats = payment_utxo.satoshis - tx_cost
        tx.add_output(change_sats, p2pkh_lock_script(payment_pkh))
        plan.append(OutputPlanEntry(payment_pkh, change_sats))

    if data is not None:
        if token.kind.supports_data:
            tx.add_output(0, data_note_script(data))
        else:
            logger.warning("Ignoring data note: %s tokens cannot carry data", token.kind)

    return plan
