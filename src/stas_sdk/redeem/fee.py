"""Fee estimation for redeem splits.

A redeem split's fee depends on its size, and its size depends on the
change output the fee determines. The estimator breaks the cycle by
building a throwaway transaction of the same shape from the placeholders
here, with a fee of 0, and pricing its serialized size.
"""

from __future__ import annotations

from dataclasses import dataclass

from stas_sdk.bsv.address import get_pkh_from_public_key, pubkey_to_address
from stas_sdk.bsv.keys import private_key_to_public_key
from stas_sdk.bsv.script import p2pkh_lock_script
from stas_sdk.redeem.models import SplitDestination, Utxo

# Placeholder key signing both inputs of the sizing transaction.
TEMPLATE_PRIVATE_KEY = bytes.fromhex(
    "0c28fca386c7a227600b2fe50b7cae11ec86d3bf1fbe471be89827e19d72aa1d"
)
TEMPLATE_PAYMENT_SATOSHIS = 100_000_000
_TEMPLATE_PAYMENT_TXID = bytes.fromhex("11" * 32)
_TEMPLATE_PAYMENT_VOUT = 1


@dataclass(frozen=True)
class FeeUnit:
    """Mining fee rate.

    Attributes:
        satoshis: Satoshis per `bytes` unit (e.g. 50).
        bytes: Byte unit size (e.g. 1000 → 50 sat/1000 bytes).
    """

    satoshis: int = 50
    bytes: int = 1000

    def fee_for_size(self, size_bytes: int) -> int:
        """Calculate the fee for a given transaction size.

        Returns:
            Fee in satoshis (rounded up, at least 1).
        """
        return max(1, (size_bytes * self.satoshis + self.bytes - 1) // self.bytes)


def template_public_key() -> bytes:
    return private_key_to_public_key(TEMPLATE_PRIVATE_KEY)


def payment_utxo_template() -> Utxo:
    """A P2PKH payment UTXO owned by the template key."""
    return Utxo(
        txid=_TEMPLATE_PAYMENT_TXID,
        vout=_TEMPLATE_PAYMENT_VOUT,
        script=p2pkh_lock_script(get_pkh_from_public_key(template_public_key())),
        satoshis=TEMPLATE_PAYMENT_SATOSHIS,
    )


def build_split_destinations(
    count: int,
    token_satoshis: int,
    *,
    testnet: bool = False,
) -> list[SplitDestination]:
    """Build *count* placeholder destinations that fit inside *token_satoshis*.

    Each receives an equal share of ``count + 1`` parts, leaving a share for
    the redeem output.
    """
    address = pubkey_to_address(template_public_key(), testnet=testnet)
    amount = max(1, token_satoshis // (count + 1))
    return [SplitDestination(address=address, satoshis=amount) for _ in range(count)]
