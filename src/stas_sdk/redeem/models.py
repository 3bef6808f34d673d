"""Redeem-split data models: UTXOs, destinations, signing descriptors, results.

All instances are built fresh per call and never shared between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stas_sdk.bsv.transaction import Transaction, TxOutput

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Utxo:
    """An unspent output to be used as a transaction input.

    Attributes:
        txid: 32-byte id of the transaction holding the output (internal byte order).
        vout: Output index within that transaction.
        script: Locking script of the output.
        satoshis: Output value.
    """

    txid: bytes
    vout: int
    script: bytes
    satoshis: int

    @property
    def txid_hex(self) -> str:
        """Transaction ID in display (reversed) hex."""
        return self.txid[::-1].hex()

    def to_output(self) -> TxOutput:
        return TxOutput(value=self.satoshis, script_pubkey=self.script)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Utxo:
        """Create a Utxo from a JSON-style dict.

        Accepts ``txid`` (display hex), ``vout``/``outputIndex``,
        ``script``/``scriptPubKey`` (hex) and ``satoshis``/``amount``.
        """
        script = data.get("script", data.get("scriptPubKey", ""))
        return cls(
            txid=bytes.fromhex(data["txid"])[::-1],
            vout=data.get("vout", data.get("outputIndex", 0)),
            script=bytes.fromhex(script) if isinstance(script, str) else bytes(script),
            satoshis=data.get("satoshis", data.get("amount", 0)),
        )


@dataclass(frozen=True)
class SplitDestination:
    """One recipient of a split: a P2PKH address and the token amount it receives."""

    address: str
    satoshis: int


# ---------------------------------------------------------------------------
# Signing descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SigningDescriptor:
    """Everything an external signer needs to complete one input.

    Attributes:
        input_index: Index of the unsigned input.
        satoshis: Value of the output the input spends.
        script: Locking script of the output the input spends.
        sighash: Signature hash flags to sign with.
        public_key: Public key the signature must verify against.
        stas: True for the token input.
    """

    input_index: int
    satoshis: int
    script: bytes
    sighash: int
    public_key: bytes
    stas: bool

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "inputIndex": self.input_index,
            "satoshis": self.satoshis,
            "script": self.script.hex(),
            "sighash": int(self.sighash),
            "publicKey": self.public_key.hex(),
            "stas": self.stas,
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class SignedTransaction:
    """A redeem-split transaction with every input signed."""

    tx: Transaction
    is_complete: bool = field(default=True, init=False)

    @property
    def hex(self) -> str:
        return self.tx.to_hex()


@dataclass
class PartiallySignedTransaction:
    """A redeem-split transaction with inputs awaiting external signatures."""

    tx: Transaction
    unsigned_data: list[SigningDescriptor]
    is_complete: bool = field(default=False, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "unsignedData": [d.to_dict() for d in self.unsigned_data],
            "tx": self.tx.to_hex(),
        }


RedeemSplitResult = SignedTransaction | PartiallySignedTransaction
