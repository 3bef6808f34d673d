"""Signature hashing for BSV inputs (BIP143 digest with SIGHASH_FORKID).

The preimage commits to the spent output's script and value, so an input
can only be hashed when its ``prev_output`` is known (or supplied).
"""

from __future__ import annotations

import enum
import struct
from io import BytesIO

from stas_sdk.bsv.keys import sign_message, verify_signature
from stas_sdk.bsv.transaction import Transaction, TxInput, encode_varint, read_varint
from stas_sdk.utils.crypto import sha256d

_ZERO_HASH = b"\x00" * 32
# version, hashPrevouts, hashSequence
_OUTPOINT_OFFSET = 4 + 32 + 32
# nSequence, hashOutputs, nLocktime, sighash
_PREIMAGE_TRAILER = 4 + 32 + 4 + 4


class SigHash(enum.IntFlag):
    """Signature hash type flags."""

    ALL = 0x01
    NONE = 0x02
    SINGLE = 0x03
    FORKID = 0x40
    ANYONECANPAY = 0x80


# The only mode the token builders sign with.
SIGHASH_ALL_FORKID = SigHash.ALL | SigHash.FORKID


def _spent_output(inp: TxInput, script: bytes | None, satoshis: int | None) -> tuple[bytes, int]:
    if script is not None and satoshis is not None:
        return script, satoshis
    if inp.prev_output is None:
        msg = "Input does not carry the output it spends"
        raise ValueError(msg)
    return inp.prev_output.script_pubkey, inp.prev_output.value


def signature_preimage(
    tx: Transaction,
    input_index: int,
    script: bytes | None = None,
    satoshis: int | None = None,
    sighash: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """Build the BIP143 signature preimage for one input.

    Args:
        tx: The transaction being signed.
        input_index: Index of the input to hash.
        script: Locking script of the spent output (defaults to ``prev_output``).
        satoshis: Value of the spent output (defaults to ``prev_output``).
        sighash: Hash type flags; FORKID is required.

    Raises:
        ValueError: If the index is out of range, FORKID is missing, or the
            spent output is unknown.
    """
    if not 0 <= input_index < len(tx.inputs):
        msg = f"Input index {input_index} out of range"
        raise ValueError(msg)
    if not sighash & SigHash.FORKID:
        msg = f"Sighash {int(sighash):#x} lacks SIGHASH_FORKID"
        raise ValueError(msg)

    inp = tx.inputs[input_index]
    script_code, value = _spent_output(inp, script, satoshis)
    base = sighash & 0x1F
    anyone_can_pay = bool(sighash & SigHash.ANYONECANPAY)

    hash_prevouts = _ZERO_HASH
    if not anyone_can_pay:
        hash_prevouts = sha256d(b"".join(i.outpoint() for i in tx.inputs))

    hash_sequence = _ZERO_HASH
    if not anyone_can_pay and base not in (SigHash.SINGLE, SigHash.NONE):
        hash_sequence = sha256d(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))

    hash_outputs = _ZERO_HASH
    if base not in (SigHash.SINGLE, SigHash.NONE):
        hash_outputs = sha256d(b"".join(o.serialize() for o in tx.outputs))
    elif base == SigHash.SINGLE and input_index < len(tx.outputs):
        hash_outputs = sha256d(tx.outputs[input_index].serialize())

    return (
        struct.pack("<i", tx.version)
        + hash_prevouts
        + hash_sequence
        + inp.outpoint()
        + encode_varint(len(script_code))
        + script_code
        + struct.pack("<q", value)
        + struct.pack("<I", inp.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash)
    )


def signature_hash(
    tx: Transaction,
    input_index: int,
    script: bytes | None = None,
    satoshis: int | None = None,
    sighash: int = SIGHASH_ALL_FORKID,
) -> bytes:
    """Double SHA-256 of :func:`signature_preimage`."""
    return sha256d(signature_preimage(tx, input_index, script, satoshis, sighash))


def sign_input(
    tx: Transaction,
    input_index: int,
    privkey: bytes,
    sighash: int = SIGHASH_ALL_FORKID,
    *,
    script: bytes | None = None,
    satoshis: int | None = None,
) -> bytes:
    """Sign one input, returning the DER signature with the hash type byte appended.

    *script* and *satoshis* describe the spent output when the input does
    not carry it.
    """
    digest = signature_hash(tx, input_index, script, satoshis, sighash)
    return sign_message(privkey, digest) + bytes([sighash])


def parse_preimage(preimage: bytes) -> tuple[bytes, bytes, int]:
    """Read the spent outpoint, script code and value back out of a preimage.

    Raises:
        ValueError: If *preimage* is not a well-formed BIP143 preimage.
    """
    stream = BytesIO(preimage)
    stream.read(_OUTPOINT_OFFSET)
    outpoint = stream.read(36)
    try:
        script_code = stream.read(read_varint(stream))
        (value,) = struct.unpack("<q", stream.read(8))
    except struct.error as exc:
        msg = f"Truncated sighash preimage: {exc}"
        raise ValueError(msg) from exc
    if len(outpoint) != 36 or len(stream.read()) != _PREIMAGE_TRAILER:
        msg = "Malformed sighash preimage"
        raise ValueError(msg)
    return outpoint, script_code, value


def verify_input_signature(
    tx: Transaction,
    input_index: int,
    signature: bytes,
    pubkey: bytes,
    *,
    script: bytes | None = None,
    satoshis: int | None = None,
) -> bool:
    """Check a transaction-format signature (DER + hash type) for one input."""
    if len(signature) < 2:
        return False
    sighash = signature[-1]
    try:
        digest = signature_hash(tx, input_index, script, satoshis, sighash)
    except ValueError:
        return False
    return verify_signature(pubkey, digest, signature[:-1])
