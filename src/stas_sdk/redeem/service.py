"""Redeem-split service: build, sign and price token redeem-split transactions.

Three entry points:
1. ``signed``: every key supplied; returns the signed transaction hex.
2. ``unsigned``: public keys only; returns the transaction with one
   signing descriptor per input.
3. ``fee_estimate``: the fee a transaction of the requested shape needs.

Both build entry points first price the transaction with a placeholder
build (fee 0), then build for real with that fee.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from stas_sdk.bsv.address import get_pkh_from_public_key
from stas_sdk.bsv.keys import private_key_to_public_key
from stas_sdk.bsv.transaction import Transaction
from stas_sdk.config.settings import StasSettings
from stas_sdk.errors.redeem_errors import ValidationError
from stas_sdk.redeem.fee import (
    TEMPLATE_PRIVATE_KEY,
    FeeUnit,
    build_split_destinations,
    payment_utxo_template,
    template_public_key,
)
from stas_sdk.redeem.models import (
    PartiallySignedTransaction,
    RedeemSplitResult,
    SignedTransaction,
    SplitDestination,
    Utxo,
)
from stas_sdk.redeem.planner import plan_outputs
from stas_sdk.redeem.signing import sign_or_defer
from stas_sdk.redeem.validation import (
    coerce_destinations,
    coerce_private_key,
    coerce_public_key,
    coerce_signing_key,
    coerce_utxo,
    validate_redeem_split_args,
)
from stas_sdk.token.templates import TokenScript, format_data_note
from stas_sdk.token.unlocking import build_unlocking_script_unsigned

logger = logging.getLogger(__name__)

UtxoLike = Utxo | Mapping[str, Any]
DestinationsLike = Sequence[SplitDestination | Mapping[str, Any]]


class RedeemSplitService:
    """Builds STAS redeem-split transactions.

    Each call assembles its own transaction; instances hold only settings
    and may be shared between concurrent calls.
    """

    def __init__(self, settings: StasSettings | None = None) -> None:
        self._settings = settings or StasSettings()
        self._fee_unit = FeeUnit(
            satoshis=self._settings.fee.satoshis,
            bytes=self._settings.fee.bytes,
        )

    @property
    def fee_unit(self) -> FeeUnit:
        return self._fee_unit

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def signed(
        self,
        owner_private_key: bytes | str,
        token_utxo: UtxoLike,
        split_destinations: DestinationsLike,
        payment_utxo: UtxoLike | None,
        payment_private_key: bytes | str | None,
        data: str | bytes | None = None,
        is_zero_change: bool = False,
    ) -> str:
        """Build and sign a redeem split.

        Args:
            owner_private_key: Key owning the token UTXO (bytes or WIF).
            token_utxo: Token UTXO being redeemed.
            split_destinations: Addresses and amounts split off the token, in order.
            payment_utxo: UTXO paying the fee, or None for a zero-fee transaction.
            payment_private_key: Key owning *payment_utxo*.
            data: Optional data note (STAS-20 tokens only).
            is_zero_change: Leave out the change output.

        Returns:
            The signed transaction as hex.
        """
        return await asyncio.to_thread(
            self._signed_sync,
            owner_private_key,
            token_utxo,
            split_destinations,
            payment_utxo,
            payment_private_key,
            data,
            is_zero_change,
        )

    async def unsigned(
        self,
        owner_public_key: bytes | str,
        token_utxo: UtxoLike,
        payment_public_key: bytes | str | None,
        payment_utxo: UtxoLike | None,
        split_destinations: DestinationsLike,
        data: str | bytes | None = None,
        is_zero_change: bool = False,
    ) -> PartiallySignedTransaction:
        """Build a redeem split whose inputs are left for external signers.

        Returns:
            The transaction and one :class:`SigningDescriptor` per input.
        """
        return await asyncio.to_thread(
            self._unsigned_sync,
            owner_public_key,
            token_utxo,
            payment_public_key,
            payment_utxo,
            split_destinations,
            data,
            is_zero_change,
        )

    async def fee_estimate(
        self,
        token_utxo: UtxoLike,
        split_destinations: DestinationsLike,
        data: str | bytes | None = None,
        is_zero_change: bool = False,
    ) -> int:
        """Return the fee in satoshis for a redeem split of this shape."""
        return await asyncio.to_thread(
            self.estimate_fee, token_utxo, split_destinations, data, is_zero_change
        )

    # ------------------------------------------------------------------
    # Synchronous core
    # ------------------------------------------------------------------

    def estimate_fee(
        self,
        token_utxo: UtxoLike,
        split_destinations: DestinationsLike,
        data: str | bytes | None = None,
        is_zero_change: bool = False,
    ) -> int:
        """Price a placeholder build of the same shape (see module docstring)."""
        token = coerce_utxo(token_utxo, name="token_utxo")
        count = len(coerce_destinations(split_destinations))
        placeholders = build_split_destinations(
            count, token.satoshis, testnet=self._settings.network.testnet
        )
        template_key = template_public_key()
        result = self.build(
            template_key,
            token,
            template_key,
            payment_utxo_template(),
            placeholders,
            data,
            is_zero_change,
            owner_private_key=TEMPLATE_PRIVATE_KEY,
            payment_private_key=TEMPLATE_PRIVATE_KEY,
            tx_cost=0,
            fee_estimate_call=True,
        )
        size = result.tx.size
        fee = self._fee_unit.fee_for_size(size)
        logger.debug(
            "Redeem split fee estimate: %d destinations, %d bytes, %d satoshis",
            count,
            size,
            fee,
        )
        return fee

    def build(
        self,
        owner_public_key: bytes | str,
        token_utxo: UtxoLike,
        payment_public_key: bytes | str | None,
        payment_utxo: UtxoLike | None,
        split_destinations: DestinationsLike,
        data: str | bytes | None = None,
        is_zero_change: bool = False,
        *,
        owner_private_key: bytes | str | None = None,
        payment_private_key: bytes | str | None = None,
        tx_cost: int = 0,
        fee_estimate_call: bool = False,
    ) -> RedeemSplitResult:
        """Assemble one redeem-split transaction with a known fee.

        Inputs with a private key are signed; the rest are returned as
        signing descriptors.

        Raises:
            ValidationError: If an argument is missing or malformed.
            TemplateError: If the token UTXO is not a token output.
            DestinationAddressError: If a destination breaks the token's rule.
            InsufficientChangeError: If the payment UTXO cannot cover *tx_cost*.
        """
        owner_pub = coerce_public_key(owner_public_key, name="owner_public_key")
        token = coerce_utxo(token_utxo, name="token_utxo")
        payment = None
        if payment_utxo is not None:
            payment = coerce_utxo(payment_utxo, name="payment_utxo")
        payment_pub = None
        if payment is not None or payment_public_key is not None:
            payment_pub = coerce_public_key(payment_public_key, name="payment_public_key")
        destinations = coerce_destinations(split_destinations)
        owner_priv = (
            coerce_private_key(owner_private_key, name="owner_private_key")
            if owner_private_key is not None
            else None
        )
        payment_priv = (
            coerce_private_key(payment_private_key, name="payment_private_key")
            if payment_private_key is not None and payment is not None
            else None
        )
        validate_redeem_split_args(owner_pub, token, payment_pub, payment, destinations)
        token_script = TokenScript.parse(token.script)
        payload = format_data_note(data) if data is not None else None

        tx = Transaction()
        tx.add_input(token.txid, token.vout, prev_output=token.to_output())
        if payment is not None:
            tx.add_input(payment.txid, payment.vout, prev_output=payment.to_output())

        plan = plan_outputs(
            tx,
            token_script,
            token,
            destinations,
            payment_utxo=payment,
            payment_pkh=get_pkh_from_public_key(payment_pub) if payment_pub else None,
            data=payload or None,
            is_zero_change=is_zero_change,
            tx_cost=tx_cost,
            fee_estimate_call=fee_estimate_call,
            dust_threshold=self._settings.fee.dust_threshold,
        )
        fragment = build_unlocking_script_unsigned(
            tx,
            plan,
            token_script.kind,
            payload or None,
            has_change=payment is not None and not is_zero_change,
        )
        deferred = sign_or_defer(
            tx,
            fragment,
            owner_public_key=owner_pub,
            owner_private_key=owner_priv,
            payment_public_key=payment_pub,
            payment_private_key=payment_priv,
        )
        logger.debug(
            "Built redeem split %s: %d inputs, %d outputs, %d unsigned",
            token_script.kind,
            len(tx.inputs),
            len(tx.outputs),
            len(deferred),
        )
        if deferred:
            return PartiallySignedTransaction(tx=tx, unsigned_data=deferred)
        return SignedTransaction(tx=tx)

    def _signed_sync(
        self,
        owner_private_key: bytes | str,
        token_utxo: UtxoLike,
        split_destinations: DestinationsLike,
        payment_utxo: UtxoLike | None,
        payment_private_key: bytes | str | None,
        data: str | bytes | None,
        is_zero_change: bool,
    ) -> str:
        owner_priv, owner_compressed = coerce_signing_key(
            owner_private_key, name="owner_private_key"
        )
        payment_priv = None
        payment_pub = None
        if payment_utxo is not None:
            if payment_private_key is None:
                msg = "payment_private_key is required with a payment_utxo"
                raise ValidationError(msg)
            payment_priv, payment_compressed = coerce_signing_key(
                payment_private_key, name="payment_private_key"
            )
            payment_pub = private_key_to_public_key(payment_priv, compressed=payment_compressed)
        tx_cost = 0
        if payment_utxo is not None:
            tx_cost = self.estimate_fee(token_utxo, split_destinations, data, is_zero_change)
        result = self.build(
            private_key_to_public_key(owner_priv, compressed=owner_compressed),
            token_utxo,
            payment_pub,
            payment_utxo,
            split_destinations,
            data,
            is_zero_change,
            owner_private_key=owner_priv,
            payment_private_key=payment_priv,
            tx_cost=tx_cost,
        )
        if not isinstance(result, SignedTransaction):
            msg = "Signed build left inputs unsigned"
            raise ValidationError(msg)
        return result.hex

    def _unsigned_sync(
        self,
        owner_public_key: bytes | str,
        token_utxo: UtxoLike,
        payment_public_key: bytes | str | None,
        payment_utxo: UtxoLike | None,
        split_destinations: DestinationsLike,
        data: str | bytes | None,
        is_zero_change: bool,
    ) -> PartiallySignedTransaction:
        tx_cost = 0
        if payment_utxo is not None:
            tx_cost = self.estimate_fee(token_utxo, split_destinations, data, is_zero_change)
        result = self.build(
            owner_public_key,
            token_utxo,
            payment_public_key,
            payment_utxo,
            split_destinations,
            data,
            is_zero_change,
            tx_cost=tx_cost,
        )
        if not isinstance(result, PartiallySignedTransaction):
            msg = "Unsigned build produced no signing descriptors"
            raise ValidationError(msg)
        return result


# ---------------------------------------------------------------------------
# Module-level entry points using default settings
# ---------------------------------------------------------------------------


async def signed(
    owner_private_key: bytes | str,
    token_utxo: UtxoLike,
    split_destinations: DestinationsLike,
    payment_utxo: UtxoLike | None,
    payment_private_key: bytes | str | None,
    data: str | bytes | None = None,
    is_zero_change: bool = False,
) -> str:
    """See :meth:`RedeemSplitService.signed`."""
    return await RedeemSplitService().signed(
        owner_private_key,
        token_utxo,
        split_destinations,
        payment_utxo,
        payment_private_key,
        data,
        is_zero_change,
    )


async def unsigned(
    owner_public_key: bytes | str,
    token_utxo: UtxoLike,
    payment_public_key: bytes | str | None,
    payment_utxo: UtxoLike | None,
    split_destinations: DestinationsLike,
    data: str | bytes | None = None,
    is_zero_change: bool = False,
) -> PartiallySignedTransaction:
    """See :meth:`RedeemSplitService.unsigned`."""
    return await RedeemSplitService().unsigned(
        owner_public_key,
        token_utxo,
        payment_public_key,
        payment_utxo,
        split_destinations,
        data,
        is_zero_change,
    )


async def fee_estimate(
    token_utxo: UtxoLike,
    split_destinations: DestinationsLike,
    data: str | bytes | None = None,
    is_zero_change: bool = False,
) -> int:
    """See :meth:`RedeemSplitService.fee_estimate`."""
    return await RedeemSplitService().fee_estimate(
        token_utxo, split_destinations, data, is_zero_change
    )
