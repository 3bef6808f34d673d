"""secp256k1 keys: Base58Check, public key encoding, ECDSA signing.

Provides the key material helpers the transaction builders rely on:
- Base58 / Base58Check encoding and decoding
- Public key derivation, compression and validation
- Deterministic (RFC 6979) low-S DER signatures and verification
"""

from __future__ import annotations

import hashlib

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey
from ecdsa.errors import MalformedPointError

from stas_sdk.utils.crypto import sha256d

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_CURVE = SECP256k1
_CURVE_ORDER = _CURVE.order
_HALF_ORDER = _CURVE_ORDER // 2


# ---------------------------------------------------------------------------
# Base58Check encoding / decoding
# ---------------------------------------------------------------------------

_B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(payload: bytes) -> str:
    """Encode raw bytes to Base58 (no checksum)."""
    n = int.from_bytes(payload, "big")
    result: list[int] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_B58_ALPHABET[remainder])
    # Leading zero bytes become '1'
    for byte in payload:
        if byte != 0:
            break
        result.append(_B58_ALPHABET[0])
    return bytes(reversed(result)).decode("ascii")


def base58_decode(s: str) -> bytes:
    """Decode a Base58 string to raw bytes (no checksum).

    Raises:
        ValueError: If *s* contains a character outside the alphabet.
    """
    n = 0
    for char in s:
        index = _B58_ALPHABET.find(char.encode("ascii", errors="replace"))
        if index < 0:
            msg = f"Invalid Base58 character: {char!r}"
            raise ValueError(msg)
        n = n * 58 + index
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad_count = len(s) - len(s.lstrip("1"))
    return b"\x00" * pad_count + result


def base58check_encode(payload: bytes) -> str:
    """Encode bytes with a 4-byte SHA256d checksum (Base58Check)."""
    return base58_encode(payload + sha256d(payload)[:4])


def base58check_decode(s: str) -> bytes:
    """Decode a Base58Check string, verifying the checksum.

    Raises:
        ValueError: If the string is malformed or the checksum is invalid.
    """
    raw = base58_decode(s)
    if len(raw) < 4:
        msg = "Base58Check string too short"
        raise ValueError(msg)
    payload, checksum = raw[:-4], raw[-4:]
    if checksum != sha256d(payload)[:4]:
        msg = "Base58Check checksum mismatch"
        raise ValueError(msg)
    return payload


# ---------------------------------------------------------------------------
# Public keys
# ---------------------------------------------------------------------------


def private_key_to_public_key(privkey_bytes: bytes, *, compressed: bool = True) -> bytes:
    """Derive the public key from a 32-byte private key.

    Args:
        privkey_bytes: 32-byte big-endian scalar.
        compressed: If True, return the 33-byte SEC compressed encoding.

    Returns:
        The public key bytes (33 compressed or 65 uncompressed).
    """
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    raw = sk.get_verifying_key().to_string()
    if compressed:
        return compress_public_key(raw)
    return b"\x04" + raw


def compress_public_key(raw_pubkey: bytes) -> bytes:
    """Compress a 64-byte (or 65-byte with 0x04 prefix) raw public key to 33 bytes."""
    if len(raw_pubkey) == 33 and raw_pubkey[0] in (0x02, 0x03):
        return raw_pubkey
    if len(raw_pubkey) == 65 and raw_pubkey[0] == 0x04:
        raw_pubkey = raw_pubkey[1:]
    if len(raw_pubkey) != 64:
        msg = f"Invalid raw public key length: {len(raw_pubkey)}"
        raise ValueError(msg)
    y = int.from_bytes(raw_pubkey[32:], "big")
    prefix = b"\x02" if y % 2 == 0 else b"\x03"
    return prefix + raw_pubkey[:32]


def decompress_public_key(compressed: bytes) -> bytes:
    """Decompress a 33-byte compressed public key to 65-byte uncompressed."""
    if len(compressed) != 33:
        msg = f"Invalid compressed key length: {len(compressed)}"
        raise ValueError(msg)
    prefix = compressed[0]
    if prefix not in (0x02, 0x03):
        msg = f"Invalid compressed key prefix: {prefix:#x}"
        raise ValueError(msg)
    x = int.from_bytes(compressed[1:], "big")
    p = _CURVE.curve.p()
    # y^2 = x^3 + 7  (mod p)
    y_sq = (pow(x, 3, p) + 7) % p
    y = pow(y_sq, (p + 1) // 4, p)
    if pow(y, 2, p) != y_sq:
        msg = "Public key is not on the secp256k1 curve"
        raise ValueError(msg)
    if (y % 2 == 0) != (prefix == 0x02):
        y = p - y
    return b"\x04" + x.to_bytes(32, "big") + y.to_bytes(32, "big")


def is_valid_public_key(pubkey: bytes) -> bool:
    """Check that *pubkey* is a SEC-encoded point on secp256k1."""
    try:
        _verifying_key(pubkey)
    except (ValueError, MalformedPointError):
        return False
    return True


# ---------------------------------------------------------------------------
# ECDSA
# ---------------------------------------------------------------------------


def sign_message(privkey_bytes: bytes, message_hash: bytes) -> bytes:
    """Sign a 32-byte hash with the private key.

    Nonces are derived per RFC 6979 and ``s`` is normalised to the lower
    half of the curve order, so the same key and hash always produce the
    same DER signature.
    """
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    return sk.sign_digest_deterministic(
        message_hash, hashfunc=hashlib.sha256, sigencode=_der_encode
    )


def verify_signature(pubkey_bytes: bytes, message_hash: bytes, signature: bytes) -> bool:
    """Verify a DER-encoded signature against a public key and message hash."""
    try:
        vk = _verifying_key(pubkey_bytes)
        return vk.verify_digest(signature, message_hash, sigdecode=_der_decode)
    except (BadSignatureError, MalformedPointError, ValueError, IndexError):
        return False


def _verifying_key(pubkey_bytes: bytes) -> VerifyingKey:
    if len(pubkey_bytes) == 33:
        raw_key = decompress_public_key(pubkey_bytes)[1:]
    elif len(pubkey_bytes) == 65 and pubkey_bytes[0] == 0x04:
        raw_key = pubkey_bytes[1:]
    else:
        msg = f"Invalid public key length: {len(pubkey_bytes)}"
        raise ValueError(msg)
    return VerifyingKey.from_string(raw_key, curve=_CURVE)


def _der_encode(r: int, s: int, order: int) -> bytes:
    """Encode r, s as a low-S DER signature."""
    if s > order // 2:
        s = order - s
    rb = _int_to_der_bytes(r)
    sb = _int_to_der_bytes(s)
    return b"\x30" + bytes([len(rb) + len(sb)]) + rb + sb


def _der_decode(signature: bytes, order: int) -> tuple[int, int]:
    """Decode a DER signature to (r, s)."""
    if len(signature) < 8 or signature[0] != 0x30:
        msg = "Invalid DER signature"
        raise ValueError(msg)
    idx = 2  # skip 0x30 and length byte
    if signature[idx] != 0x02:
        msg = "Invalid DER signature (r marker)"
        raise ValueError(msg)
    r_len = signature[idx + 1]
    idx += 2
    r = int.from_bytes(signature[idx : idx + r_len], "big")
    idx += r_len
    if signature[idx] != 0x02:
        msg = "Invalid DER signature (s marker)"
        raise ValueError(msg)
    s_len = signature[idx + 1]
    idx += 2
    s = int.from_bytes(signature[idx : idx + s_len], "big")
    if s > _HALF_ORDER:
        msg = "Signature is not low-S"
        raise ValueError(msg)
    return r, s


def _int_to_der_bytes(n: int) -> bytes:
    """Encode an integer as a DER INTEGER TLV."""
    b = n.to_bytes((n.bit_length() + 7) // 8, "big")
    if b[0] & 0x80:
        b = b"\x00" + b
    return b"\x02" + bytes([len(b)]) + b
