"""Argument validation and coercion for redeem-split builds.

Everything here runs before a transaction object exists; failures raise
:class:`ValidationError` with a message naming the offending argument.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from stas_sdk.bsv.address import validate_address, wif_to_privkey
from stas_sdk.bsv.keys import is_valid_public_key
from stas_sdk.errors.redeem_errors import ValidationError
from stas_sdk.redeem.models import SplitDestination, Utxo

# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def coerce_signing_key(key: bytes | str, *, name: str) -> tuple[bytes, bool]:
    """Accept a 32-byte scalar or a WIF string.

    Returns:
        The private key and whether its public key is used compressed.
        Raw scalars are taken as compressed.
    """
    if isinstance(key, bytes):
        if len(key) != 32:
            msg = f"{name} must be 32 bytes, got {len(key)}"
            raise ValidationError(msg)
        return key, True
    if isinstance(key, str):
        try:
            privkey, compressed, _testnet = wif_to_privkey(key)
        except ValueError as exc:
            raise ValidationError(f"{name} is not a valid WIF key: {exc}") from exc
        return privkey, compressed
    msg = f"{name} must be bytes or a WIF string"
    raise ValidationError(msg)


def coerce_private_key(key: bytes | str, *, name: str) -> bytes:
    return coerce_signing_key(key, name=name)[0]


def coerce_public_key(key: bytes | str | None, *, name: str) -> bytes:
    """Accept SEC-encoded public key bytes or their hex string."""
    if isinstance(key, str):
        try:
            key = bytes.fromhex(key)
        except ValueError as exc:
            raise ValidationError(f"{name} is not valid hex") from exc
    if not isinstance(key, bytes) or not is_valid_public_key(key):
        msg = f"{name} is not a valid public key"
        raise ValidationError(msg)
    return key


def coerce_utxo(utxo: Utxo | Mapping[str, Any] | None, *, name: str) -> Utxo:
    if utxo is None:
        msg = f"{name} is required"
        raise ValidationError(msg)
    if isinstance(utxo, Utxo):
        return utxo
    if isinstance(utxo, Mapping):
        try:
            return Utxo.from_dict(dict(utxo))
        except (KeyError, ValueError, TypeError) as exc:
            raise ValidationError(f"{name} is malformed: {exc}") from exc
    msg = f"{name} must be a Utxo or a mapping"
    raise ValidationError(msg)


def coerce_destinations(
    destinations: Sequence[SplitDestination | Mapping[str, Any]] | None,
) -> list[SplitDestination]:
    if destinations is None or isinstance(destinations, (str, bytes)):
        msg = "split_destinations must be a sequence of destinations"
        raise ValidationError(msg)
    result: list[SplitDestination] = []
    for i, destination in enumerate(destinations):
        if isinstance(destination, SplitDestination):
            result.append(destination)
        elif isinstance(destination, Mapping) and "address" in destination:
            result.append(
                SplitDestination(
                    address=destination["address"],
                    satoshis=destination.get("satoshis", destination.get("amount")),
                )
            )
        else:
            msg = f"split_destinations[{i}] must have an address and satoshis"
            raise ValidationError(msg)
    return result


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_amount(value: object, *, name: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer number of satoshis"
        raise ValidationError(msg)
    if value < minimum:
        msg = f"{name} must be at least {minimum}, got {value}"
        raise ValidationError(msg)


def _check_utxo(utxo: Utxo, *, name: str) -> None:
    if not isinstance(utxo.txid, bytes) or len(utxo.txid) != 32:
        msg = f"{name} txid must be 32 bytes"
        raise ValidationError(msg)
    if isinstance(utxo.vout, bool) or not isinstance(utxo.vout, int) or utxo.vout < 0:
        msg = f"{name} vout must be a non-negative integer"
        raise ValidationError(msg)
    if not isinstance(utxo.script, bytes) or not utxo.script:
        msg = f"{name} has no locking script"
        raise ValidationError(msg)
    _check_amount(utxo.satoshis, name=f"{name} satoshis", minimum=0)


def validate_redeem_split_args(
    owner_public_key: bytes,
    token_utxo: Utxo,
    payment_public_key: bytes | None,
    payment_utxo: Utxo | None,
    split_destinations: Sequence[SplitDestination],
) -> None:
    """Check redeem-split arguments before any transaction is built.

    Raises:
        ValidationError: On the first invalid argument.
    """
    if not is_valid_public_key(owner_public_key):
        msg = "owner_public_key is not a valid public key"
        raise ValidationError(msg)
    _check_utxo(token_utxo, name="token_utxo")

    if not split_destinations:
        msg = "split_destinations must contain at least one destination"
        raise ValidationError(msg)
    for i, destination in enumerate(split_destinations):
        if not isinstance(destination.address, str) or not validate_address(destination.address):
            msg = f"split_destinations[{i}] address {destination.address!r} is invalid"
            raise ValidationError(msg)
        _check_amount(destination.satoshis, name=f"split_destinations[{i}] satoshis", minimum=1)

    total = sum(d.satoshis for d in split_destinations)
    if total > token_utxo.satoshis:
        msg = f"split_destinations total {total} exceeds token_utxo value {token_utxo.satoshis}"
        raise ValidationError(msg)

    if payment_utxo is not None:
        _check_utxo(payment_utxo, name="payment_utxo")
        if payment_public_key is None or not is_valid_public_key(payment_public_key):
            msg = "payment_public_key is not a valid public key"
            raise ValidationError(msg)
