"""Shared test fixtures for py-stas test suite."""

from __future__ import annotations

import os

import pytest

from stas_sdk.bsv.address import get_pkh_from_public_key, pubkey_to_address
from stas_sdk.bsv.keys import private_key_to_public_key
from stas_sdk.bsv.script import p2pkh_lock_script
from stas_sdk.config.settings import StasSettings
from stas_sdk.redeem.models import SplitDestination, Utxo
from stas_sdk.token.templates import TokenKind, build_token_script

OWNER_KEY = bytes.fromhex("11" * 32)
PAYMENT_KEY = bytes.fromhex("22" * 32)
ISSUER_KEY = bytes.fromhex("33" * 32)
ALICE_KEY = bytes.fromhex("44" * 32)
BOB_KEY = bytes.fromhex("55" * 32)

TOKEN_TXID = bytes.fromhex("aa" * 32)
PAYMENT_TXID = bytes.fromhex("bb" * 32)


def key_pkh(privkey: bytes) -> bytes:
    return get_pkh_from_public_key(private_key_to_public_key(privkey))


def key_address(privkey: bytes) -> str:
    return pubkey_to_address(private_key_to_public_key(privkey))


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep STAS_* variables from the host out of settings under test."""
    for key in list(os.environ):
        if key.upper().startswith("STAS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> StasSettings:
    return StasSettings()


@pytest.fixture
def owner_key() -> bytes:
    return OWNER_KEY


@pytest.fixture
def owner_pub() -> bytes:
    return private_key_to_public_key(OWNER_KEY)


@pytest.fixture
def payment_key() -> bytes:
    return PAYMENT_KEY


@pytest.fixture
def payment_pub() -> bytes:
    return private_key_to_public_key(PAYMENT_KEY)


@pytest.fixture
def owner_pkh() -> bytes:
    return key_pkh(OWNER_KEY)


@pytest.fixture
def issuer_pkh() -> bytes:
    """Redemption hash of the test tokens."""
    return key_pkh(ISSUER_KEY)


@pytest.fixture
def issuer_address() -> str:
    return key_address(ISSUER_KEY)


@pytest.fixture
def alice_address() -> str:
    return key_address(ALICE_KEY)


@pytest.fixture
def bob_address() -> str:
    return key_address(BOB_KEY)


@pytest.fixture
def stas_script(owner_pkh: bytes, issuer_pkh: bytes) -> bytes:
    return build_token_script(TokenKind.STAS, owner_pkh, issuer_pkh, b"TOKEN")


@pytest.fixture
def stas20_script(owner_pkh: bytes, issuer_pkh: bytes) -> bytes:
    return build_token_script(TokenKind.STAS_20, owner_pkh, issuer_pkh, b"TOKEN20")


@pytest.fixture
def token_utxo(stas_script: bytes) -> Utxo:
    return Utxo(txid=TOKEN_TXID, vout=0, script=stas_script, satoshis=10_000)


@pytest.fixture
def stas20_utxo(stas20_script: bytes) -> Utxo:
    return Utxo(txid=TOKEN_TXID, vout=0, script=stas20_script, satoshis=10_000)


@pytest.fixture
def payment_utxo() -> Utxo:
    return Utxo(
        txid=PAYMENT_TXID,
        vout=2,
        script=p2pkh_lock_script(key_pkh(PAYMENT_KEY)),
        satoshis=50_000,
    )


@pytest.fixture
def destinations(alice_address: str, bob_address: str) -> list[SplitDestination]:
    """3,000 to Alice and 4,000 to Bob, leaving 3,000 to redeem."""
    return [
        SplitDestination(address=alice_address, satoshis=3_000),
        SplitDestination(address=bob_address, satoshis=4_000),
    ]
