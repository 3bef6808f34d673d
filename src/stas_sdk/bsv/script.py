"""BSV script building: P2PKH, OP_RETURN, script numbers, chunk parsing.

Provides construction and parsing of the locking/unlocking scripts used
by token transactions:
- P2PKH (Pay-to-Public-Key-Hash) lock and unlock scripts
- OP_RETURN (null data) scripts
- Minimal data and script-number pushes
- Chunk iteration and script type detection
"""

from __future__ import annotations

import enum
import struct
from collections.abc import Iterator
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------


class OpCode(int, enum.Enum):
    """Commonly used Bitcoin opcodes."""

    OP_0 = 0x00
    OP_FALSE = 0x00
    OP_PUSHDATA1 = 0x4C
    OP_PUSHDATA2 = 0x4D
    OP_PUSHDATA4 = 0x4E
    OP_1NEGATE = 0x4F
    OP_1 = 0x51
    OP_16 = 0x60
    OP_VERIFY = 0x69
    OP_RETURN = 0x6A
    OP_DUP = 0x76
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88
    OP_HASH160 = 0xA9
    OP_CHECKSIG = 0xAC


# ---------------------------------------------------------------------------
# Script Type
# ---------------------------------------------------------------------------


class ScriptType(enum.StrEnum):
    """Known script types."""

    P2PKH = "pubkeyhash"
    NULL_DATA = "nulldata"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Data push helpers
# ---------------------------------------------------------------------------


def push_data(data: bytes) -> bytes:
    """Encode a data push operation using minimal encoding rules.

    Args:
        data: Arbitrary data bytes.

    Returns:
        The opcode(s) + data for a minimal push of *data*.
    """
    length = len(data)
    if length == 0:
        return bytes([OpCode.OP_0])
    if length <= 0x4B:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OpCode.OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OpCode.OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OpCode.OP_PUSHDATA4]) + struct.pack("<I", length) + data


def encode_number(n: int) -> bytes:
    """Encode an integer as a minimal little-endian sign-magnitude script number."""
    if n == 0:
        return b""
    negative = n < 0
    magnitude = abs(n)
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xFF)
        magnitude >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def decode_number(data: bytes) -> int:
    """Decode a little-endian sign-magnitude script number."""
    if not data:
        return 0
    value = int.from_bytes(data, "little")
    if data[-1] & 0x80:
        return -(value & ~(0x80 << (8 * (len(data) - 1))))
    return value


def push_number(n: int) -> bytes:
    """Push an integer, using the small-integer opcodes where possible."""
    if n == 0:
        return bytes([OpCode.OP_0])
    if n == -1:
        return bytes([OpCode.OP_1NEGATE])
    if 1 <= n <= 16:
        return bytes([OpCode.OP_1 + n - 1])
    return push_data(encode_number(n))


# ---------------------------------------------------------------------------
# Chunk parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScriptChunk:
    """A single opcode, with its pushed bytes for push operations."""

    op: int
    data: bytes | None = None

    @property
    def is_push(self) -> bool:
        return self.data is not None or OpCode.OP_1NEGATE <= self.op <= OpCode.OP_16

    def to_number(self) -> int:
        """Interpret the chunk as a script number.

        Raises:
            ValueError: If the chunk is not a push.
        """
        if self.op == OpCode.OP_1NEGATE:
            return -1
        if OpCode.OP_1 <= self.op <= OpCode.OP_16:
            return self.op - OpCode.OP_1 + 1
        if self.data is None:
            msg = f"Opcode {int(self.op):#x} is not a number push"
            raise ValueError(msg)
        return decode_number(self.data)


def iter_chunks(script: bytes) -> Iterator[ScriptChunk]:
    """Iterate over the opcodes and pushes of a script.

    Raises:
        ValueError: If a push runs past the end of the script.
    """
    i = 0
    end = len(script)
    while i < end:
        op = script[i]
        i += 1
        if op == OpCode.OP_0:
            yield ScriptChunk(op, b"")
            continue
        if op <= 0x4B:
            length = op
        elif op == OpCode.OP_PUSHDATA1:
            length = script[i] if i < end else -1
            i += 1
        elif op == OpCode.OP_PUSHDATA2:
            length = struct.unpack("<H", script[i : i + 2])[0] if i + 2 <= end else -1
            i += 2
        elif op == OpCode.OP_PUSHDATA4:
            length = struct.unpack("<I", script[i : i + 4])[0] if i + 4 <= end else -1
            i += 4
        else:
            yield ScriptChunk(op)
            continue
        if length < 0 or i + length > end:
            msg = f"Push of {length} bytes overruns script at offset {i}"
            raise ValueError(msg)
        yield ScriptChunk(op, script[i : i + length])
        i += length


# ---------------------------------------------------------------------------
# P2PKH scripts
# ---------------------------------------------------------------------------


def p2pkh_lock_script(pubkey_hash: bytes) -> bytes:
    """Build a P2PKH locking script (scriptPubKey).

    OP_DUP OP_HASH160 <20 bytes> OP_EQUALVERIFY OP_CHECKSIG

    Args:
        pubkey_hash: 20-byte RIPEMD160(SHA256(pubkey)).

    Returns:
        25-byte locking script.
    """
    if len(pubkey_hash) != 20:
        msg = f"pubkey_hash must be 20 bytes, got {len(pubkey_hash)}"
        raise ValueError(msg)
    return (
        bytes([OpCode.OP_DUP, OpCode.OP_HASH160])
        + push_data(pubkey_hash)
        + bytes([OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG])
    )


def p2pkh_unlock_script(signature: bytes, pubkey: bytes) -> bytes:
    """Build a P2PKH unlocking script (scriptSig).

    <sig> <pubkey>

    Args:
        signature: DER-encoded signature (with sighash byte appended).
        pubkey: 33-byte compressed public key.
    """
    return push_data(signature) + push_data(pubkey)


# ---------------------------------------------------------------------------
# OP_RETURN scripts
# ---------------------------------------------------------------------------


def op_return_script(*data_items: bytes) -> bytes:
    """Build an OP_RETURN (null data) script.

    ``OP_FALSE OP_RETURN <push data1> <push data2> ...``
    """
    script = bytes([OpCode.OP_FALSE, OpCode.OP_RETURN])
    for item in data_items:
        script += push_data(item)
    return script


# ---------------------------------------------------------------------------
# Script type detection
# ---------------------------------------------------------------------------


def detect_script_type(script: bytes) -> ScriptType:
    """Detect the type of a locking script.

    Recognises:
    - P2PKH: ``OP_DUP OP_HASH160 <20> ... OP_EQUALVERIFY OP_CHECKSIG``
    - NULL_DATA: ``OP_FALSE OP_RETURN ...`` or ``OP_RETURN ...``
    """
    if len(script) == 0:
        return ScriptType.UNKNOWN

    if (
        len(script) == 25
        and script[0] == OpCode.OP_DUP
        and script[1] == OpCode.OP_HASH160
        and script[2] == 0x14  # push 20 bytes
        and script[23] == OpCode.OP_EQUALVERIFY
        and script[24] == OpCode.OP_CHECKSIG
    ):
        return ScriptType.P2PKH

    if script[0] == OpCode.OP_RETURN:
        return ScriptType.NULL_DATA
    if len(script) >= 2 and script[0] == OpCode.OP_FALSE and script[1] == OpCode.OP_RETURN:
        return ScriptType.NULL_DATA

    return ScriptType.UNKNOWN


def extract_pubkey_hash(script: bytes) -> bytes | None:
    """Extract the 20-byte pubkey hash from a P2PKH locking script.

    Returns None if the script is not P2PKH.
    """
    if detect_script_type(script) != ScriptType.P2PKH:
        return None
    return script[3:23]
