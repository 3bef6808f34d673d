"""Signing coordination: sign each input now, or defer it to an external signer.

Each input ends in one of two states: signed (its unlocking script is
complete) or deferred (a :class:`SigningDescriptor` is recorded and the
unlocking script holds whatever can be built without a signature).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from stas_sdk.bsv.keys import private_key_to_public_key
from stas_sdk.bsv.script import p2pkh_unlock_script
from stas_sdk.bsv.sighash import SIGHASH_ALL_FORKID, sign_input
from stas_sdk.bsv.transaction import Transaction
from stas_sdk.errors.redeem_errors import SigningError
from stas_sdk.redeem.models import (
    PartiallySignedTransaction,
    SignedTransaction,
    SigningDescriptor,
)

logger = logging.getLogger(__name__)

TOKEN_INPUT_INDEX = 0
PAYMENT_INPUT_INDEX = 1


def _descriptor(tx: Transaction, index: int, public_key: bytes, *, stas: bool) -> SigningDescriptor:
    spent = tx.inputs[index].prev_output
    if spent is None:
        msg = f"Input {index} does not carry the output it spends"
        raise SigningError(msg)
    return SigningDescriptor(
        input_index=index,
        satoshis=spent.value,
        script=spent.script_pubkey,
        sighash=SIGHASH_ALL_FORKID,
        public_key=public_key,
        stas=stas,
    )


def _signature_suffix(tx: Transaction, index: int, private_key: bytes, public_key: bytes) -> bytes:
    signature = sign_input(tx, index, private_key, SIGHASH_ALL_FORKID)
    return p2pkh_unlock_script(signature, public_key)


def sign_or_defer(
    tx: Transaction,
    unlocking_fragment: bytes,
    *,
    owner_public_key: bytes,
    owner_private_key: bytes | None,
    payment_public_key: bytes | None,
    payment_private_key: bytes | None,
) -> list[SigningDescriptor]:
    """Complete or defer the token input and, when present, the payment input.

    The token input always receives *unlocking_fragment*; a signature and
    public key are appended only when *owner_private_key* is given.

    Returns:
        Descriptors for the inputs left unsigned, in input order.
    """
    deferred: list[SigningDescriptor] = []

    token_input = tx.inputs[TOKEN_INPUT_INDEX]
    if owner_private_key is not None:
        token_input.script_sig = unlocking_fragment + _signature_suffix(
            tx, TOKEN_INPUT_INDEX, owner_private_key, owner_public_key
        )
    else:
        token_input.script_sig = unlocking_fragment
        deferred.append(_descriptor(tx, TOKEN_INPUT_INDEX, owner_public_key, stas=True))

    if len(tx.inputs) > PAYMENT_INPUT_INDEX:
        if payment_public_key is None:
            msg = "A payment input requires a payment public key"
            raise SigningError(msg)
        payment_input = tx.inputs[PAYMENT_INPUT_INDEX]
        if payment_private_key is not None:
            payment_input.script_sig = _signature_suffix(
                tx, PAYMENT_INPUT_INDEX, payment_private_key, payment_public_key
            )
        else:
            deferred.append(
                _descriptor(tx, PAYMENT_INPUT_INDEX, payment_public_key, stas=False)
            )

    return deferred


# ---------------------------------------------------------------------------
# Completing deferred inputs
# ---------------------------------------------------------------------------


def complete_deferred_input(
    tx: Transaction,
    descriptor: SigningDescriptor,
    private_key: bytes,
) -> None:
    """Sign a deferred input and append ``<signature> <public key>`` to it.

    Raises:
        SigningError: If the key does not match the descriptor's public key.
    """
    compressed = len(descriptor.public_key) == 33
    public_key = private_key_to_public_key(private_key, compressed=compressed)
    if public_key != descriptor.public_key:
        msg = f"Key does not match the public key expected for input {descriptor.input_index}"
        raise SigningError(msg)
    signature = sign_input(
        tx,
        descriptor.input_index,
        private_key,
        descriptor.sighash,
        script=descriptor.script,
        satoshis=descriptor.satoshis,
    )
    inp = tx.inputs[descriptor.input_index]
    inp.script_sig += p2pkh_unlock_script(signature, public_key)


def complete_partial(
    partial: PartiallySignedTransaction,
    keys: Mapping[int, bytes],
) -> SignedTransaction | PartiallySignedTransaction:
    """Sign the deferred inputs of *partial* for which *keys* holds a private key.

    Args:
        partial: Result of an unsigned build.
        keys: Private keys by input index.

    Returns:
        A :class:`SignedTransaction` once every input is signed, otherwise
        a new :class:`PartiallySignedTransaction` with the remaining descriptors.
    """
    remaining: list[SigningDescriptor] = []
    for descriptor in partial.unsigned_data:
        key = keys.get(descriptor.input_index)
        if key is None:
            remaining.append(descriptor)
            continue
        complete_deferred_input(partial.tx, descriptor, key)
    logger.debug(
        "Completed %d of %d deferred inputs",
        len(partial.unsigned_data) - len(remaining),
        len(partial.unsigned_data),
    )
    if remaining:
        return PartiallySignedTransaction(tx=partial.tx, unsigned_data=remaining)
    return SignedTransaction(tx=partial.tx)
