"""Tests for key helpers — bsv/keys.py and utils/crypto.py."""

from __future__ import annotations

import pytest
from ecdsa import SECP256k1
from ecdsa.util import sigdecode_der

from stas_sdk.bsv.keys import (
    base58_decode,
    base58_encode,
    base58check_decode,
    base58check_encode,
    compress_public_key,
    decompress_public_key,
    is_valid_public_key,
    private_key_to_public_key,
    sign_message,
    verify_signature,
)
from stas_sdk.utils.crypto import hash160, sha256, sha256d

PRIVKEY_ONE = (1).to_bytes(32, "big")
PUBKEY_ONE = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)


class TestHashes:
    def test_sha256_empty(self) -> None:
        assert sha256(b"").hex() == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_sha256d_empty(self) -> None:
        assert sha256d(b"").hex() == (
            "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"
        )

    def test_hash160_generator_point(self) -> None:
        assert hash160(PUBKEY_ONE).hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"


class TestBase58:
    """Base58 and Base58Check encoding."""

    def test_leading_zeros(self) -> None:
        assert base58_encode(b"\x00\x00\x01") == "112"
        assert base58_decode("112") == b"\x00\x00\x01"

    def test_roundtrip(self) -> None:
        payload = bytes(range(1, 40))
        assert base58_decode(base58_encode(payload)) == payload

    def test_invalid_character(self) -> None:
        with pytest.raises(ValueError, match="Invalid Base58"):
            base58_decode("0OIl")

    def test_check_roundtrip(self) -> None:
        payload = b"\x00" + bytes(20)
        assert base58check_decode(base58check_encode(payload)) == payload

    def test_check_detects_corruption(self) -> None:
        encoded = base58check_encode(b"\x00" + bytes(range(20)))
        tampered = encoded[:-1] + ("2" if encoded[-1] != "2" else "3")
        with pytest.raises(ValueError):
            base58check_decode(tampered)


class TestPublicKeys:
    def test_generator_point_compressed(self) -> None:
        assert private_key_to_public_key(PRIVKEY_ONE) == PUBKEY_ONE

    def test_uncompressed_form(self) -> None:
        raw = private_key_to_public_key(PRIVKEY_ONE, compressed=False)
        assert len(raw) == 65
        assert raw[0] == 0x04
        assert compress_public_key(raw) == PUBKEY_ONE

    def test_decompress_roundtrip(self) -> None:
        raw = decompress_public_key(PUBKEY_ONE)
        assert raw == private_key_to_public_key(PRIVKEY_ONE, compressed=False)

    def test_validity(self) -> None:
        assert is_valid_public_key(PUBKEY_ONE)
        assert not is_valid_public_key(b"\x02" + bytes(31))
        assert not is_valid_public_key(b"")
        assert not is_valid_public_key(b"\x05" + PUBKEY_ONE[1:])


class TestSignatures:
    """Deterministic low-S signing."""

    digest = sha256d(b"redeem split")

    def test_sign_and_verify(self) -> None:
        sig = sign_message(PRIVKEY_ONE, self.digest)
        assert verify_signature(PUBKEY_ONE, self.digest, sig)

    def test_deterministic(self) -> None:
        assert sign_message(PRIVKEY_ONE, self.digest) == sign_message(PRIVKEY_ONE, self.digest)

    def test_low_s(self) -> None:
        for i in range(1, 9):
            digest = sha256d(bytes([i]))
            sig = sign_message(PRIVKEY_ONE, digest)
            _r, s = sigdecode_der(sig, SECP256k1.order)
            assert s <= SECP256k1.order // 2

    def test_wrong_digest_fails(self) -> None:
        sig = sign_message(PRIVKEY_ONE, self.digest)
        assert not verify_signature(PUBKEY_ONE, sha256d(b"other"), sig)

    def test_wrong_key_fails(self) -> None:
        sig = sign_message(PRIVKEY_ONE, self.digest)
        other = private_key_to_public_key((2).to_bytes(32, "big"))
        assert not verify_signature(other, self.digest, sig)

    def test_garbage_signature(self) -> None:
        assert not verify_signature(PUBKEY_ONE, self.digest, b"\x30\x01\x00")
