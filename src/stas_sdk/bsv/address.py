"""Address encoding: P2PKH addresses, public-key hashes, WIF keys.

BSV address operations:
- P2PKH address generation from public keys
- Address to public-key-hash extraction and validation
- WIF (Wallet Import Format) decoding
"""

from __future__ import annotations

from stas_sdk.bsv.keys import base58check_decode, base58check_encode
from stas_sdk.utils.crypto import hash160

# Network version bytes
_MAINNET_PUBKEY_HASH = 0x00  # 1...
_TESTNET_PUBKEY_HASH = 0x6F  # m... or n...
_MAINNET_WIF = 0x80
_TESTNET_WIF = 0xEF


def pubkey_to_address(pubkey: bytes, *, testnet: bool = False) -> str:
    """Generate a P2PKH address from a compressed/uncompressed public key.

    Args:
        pubkey: 33-byte compressed or 65-byte uncompressed public key.
        testnet: If True, use testnet version byte.

    Returns:
        Base58Check-encoded P2PKH address.
    """
    return pkh_to_address(hash160(pubkey), testnet=testnet)


def pkh_to_address(pubkey_hash: bytes, *, testnet: bool = False) -> str:
    """Encode a 20-byte public key hash as a P2PKH address."""
    if len(pubkey_hash) != 20:
        msg = f"pubkey_hash must be 20 bytes, got {len(pubkey_hash)}"
        raise ValueError(msg)
    version = _TESTNET_PUBKEY_HASH if testnet else _MAINNET_PUBKEY_HASH
    return base58check_encode(bytes([version]) + pubkey_hash)


def get_pkh_from_public_key(pubkey: bytes) -> bytes:
    """Return the 20-byte Hash160 of a public key."""
    return hash160(pubkey)


def address_to_pubkey_hash(address: str) -> bytes:
    """Extract the 20-byte public key hash from a P2PKH address.

    Args:
        address: Base58Check-encoded P2PKH address.

    Returns:
        The 20-byte RIPEMD160(SHA256(pubkey)) hash.

    Raises:
        ValueError: If the address is invalid or not P2PKH.
    """
    payload = base58check_decode(address)
    if len(payload) != 21:
        msg = f"Invalid address payload length: {len(payload)}"
        raise ValueError(msg)
    if payload[0] not in (_MAINNET_PUBKEY_HASH, _TESTNET_PUBKEY_HASH):
        msg = f"Unsupported address version: {payload[0]:#x}"
        raise ValueError(msg)
    return payload[1:]


def validate_address(address: str) -> bool:
    """Check if an address is a valid Base58Check-encoded P2PKH address."""
    try:
        address_to_pubkey_hash(address)
    except ValueError:
        return False
    return True


def wif_to_privkey(wif: str) -> tuple[bytes, bool, bool]:
    """Decode a WIF string to a private key.

    Returns:
        Tuple of (privkey_bytes, compressed, testnet).
    """
    payload = base58check_decode(wif)
    if len(payload) not in (33, 34):
        msg = f"Invalid WIF payload length: {len(payload)}"
        raise ValueError(msg)
    if payload[0] not in (_MAINNET_WIF, _TESTNET_WIF):
        msg = f"Unsupported WIF version: {payload[0]:#x}"
        raise ValueError(msg)
    testnet = payload[0] == _TESTNET_WIF
    if len(payload) == 34 and payload[-1] == 0x01:
        return payload[1:33], True, testnet
    return payload[1:33], False, testnet


def privkey_to_wif(privkey: bytes, *, compressed: bool = True, testnet: bool = False) -> str:
    """Encode a 32-byte private key as WIF."""
    version = _TESTNET_WIF if testnet else _MAINNET_WIF
    payload = bytes([version]) + privkey
    if compressed:
        payload += b"\x01"
    return base58check_encode(payload)
