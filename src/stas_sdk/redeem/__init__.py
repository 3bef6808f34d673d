"""Redeem split: redeem a STAS token while splitting its value to new owners."""

from stas_sdk.redeem.models import (
    PartiallySignedTransaction,
    RedeemSplitResult,
    SignedTransaction,
    SigningDescriptor,
    SplitDestination,
    Utxo,
)
from stas_sdk.redeem.service import RedeemSplitService, fee_estimate, signed, unsigned
from stas_sdk.redeem.signing import complete_deferred_input, complete_partial

__all__ = [
    "PartiallySignedTransaction",
    "RedeemSplitResult",
    "RedeemSplitService",
    "SignedTransaction",
    "SigningDescriptor",
    "SplitDestination",
    "Utxo",
    "complete_deferred_input",
    "complete_partial",
    "fee_estimate",
    "signed",
    "unsigned",
]
