"""Token unlocking scripts for redeem splits, and their verification.

The unsigned part of the token input's unlocking script is, in order::

    (<amount> <pkh>) for each planned output   redeem, splits, change
    [OP_FALSE OP_FALSE]                        when there is no change output
    [<data note> | OP_FALSE]                   STAS-20 only
    <funding vout> <funding txid> | OP_FALSE   payment input outpoint
    <spending type>
    <sighash preimage of input 0>

The signed script appends ``<signature> <public key>``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from stas_sdk.bsv.script import (
    ScriptChunk,
    extract_pubkey_hash,
    iter_chunks,
    push_data,
    push_number,
)
from stas_sdk.bsv.sighash import (
    SIGHASH_ALL_FORKID,
    parse_preimage,
    signature_preimage,
    verify_input_signature,
)
from stas_sdk.bsv.transaction import Transaction
from stas_sdk.errors.redeem_errors import TemplateError, VerificationError
from stas_sdk.token.templates import TokenKind, TokenScript, data_note_script
from stas_sdk.utils.crypto import hash160

SPENDING_TYPE_REDEEM = 3

_NO_CHANGE = push_number(0) + push_number(0)


@dataclass(frozen=True)
class OutputPlanEntry:
    """Destination hash and amount of one planned output, in output order."""

    public_key_hash: bytes
    satoshis: int


def build_unlocking_script_unsigned(
    tx: Transaction,
    output_plan: Sequence[OutputPlanEntry],
    kind: TokenKind,
    data: bytes | None,
    *,
    has_change: bool,
) -> bytes:
    """Build the signature-independent part of the token input's unlocking script.

    Every output must already be in *tx*; the embedded preimage commits to them.
    """
    script = b""
    for entry in output_plan:
        script += push_number(entry.satoshis) + push_data(entry.public_key_hash)
    if not has_change:
        script += _NO_CHANGE
    if kind.supports_data:
        script += push_data(data) if data else push_number(0)
    if len(tx.inputs) > 1:
        funding = tx.inputs[1]
        script += push_number(funding.prev_tx_out_index) + push_data(funding.prev_tx_id)
    else:
        script += push_number(0)
    script += push_number(SPENDING_TYPE_REDEEM)
    script += push_data(signature_preimage(tx, 0, sighash=SIGHASH_ALL_FORKID))
    return script


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def verify_redeem_split(tx: Transaction) -> None:
    """Check that the token input's unlocking script matches *tx*.

    The spent token output is read back from the preimage pushed in the
    unlocking script, so a transaction parsed from hex verifies on its own.
    A ``prev_output`` carried by the first input must agree with it.

    Raises:
        VerificationError: On the first mismatch found.
    """
    if not tx.inputs:
        msg = "Transaction has no token input"
        raise VerificationError(msg)
    token_input = tx.inputs[0]
    try:
        chunks = list(iter_chunks(token_input.script_sig))
    except ValueError as exc:
        raise VerificationError(f"Cannot parse token input: {exc}") from exc

    signature: bytes | None = None
    pubkey: bytes | None = None
    script, satoshis = _spent_token_output(tx, chunks[-1:])
    if script is not None:
        chunks = chunks[:-1]
    elif len(chunks) >= 3:
        script, satoshis = _spent_token_output(tx, chunks[-3:-2])
        signature, pubkey = chunks[-2].data, chunks[-1].data
        if script is not None and (not signature or not pubkey):
            msg = "Token input signature and public key must be data pushes"
            raise VerificationError(msg)
        chunks = chunks[:-3]
    if script is None or satoshis is None:
        msg = "Unlocking script does not commit to this transaction's preimage"
        raise VerificationError(msg)

    spent = token_input.prev_output
    if spent is not None and (spent.script_pubkey, spent.value) != (script, satoshis):
        msg = "Carried spent output differs from the one in the preimage"
        raise VerificationError(msg)
    try:
        token = TokenScript.parse(script)
    except (TemplateError, ValueError) as exc:
        raise VerificationError(f"Cannot parse token input: {exc}") from exc

    chunks = _verify_tail(tx, token.kind, chunks)
    note = None
    if token.kind.supports_data:
        note = chunks.pop().data or None

    if len(chunks) % 2:
        msg = "Unlocking script has an unpaired output commitment"
        raise VerificationError(msg)
    pairs = [(chunks[i], chunks[i + 1]) for i in range(0, len(chunks), 2)]
    has_change = True
    if pairs and pairs[-1][0].data == b"" and pairs[-1][1].data == b"":
        pairs.pop()
        has_change = False
    if has_change and len(tx.inputs) < 2:
        msg = "Change committed without a payment input"
        raise VerificationError(msg)

    if len(pairs) < (3 if has_change else 2):
        msg = "Unlocking script commits to no split outputs"
        raise VerificationError(msg)
    expected_outputs = len(pairs) + (1 if note else 0)
    if len(tx.outputs) != expected_outputs:
        msg = f"Expected {expected_outputs} outputs, transaction has {len(tx.outputs)}"
        raise VerificationError(msg)

    token_total = 0
    last_token = len(pairs) - (2 if has_change else 1)
    for index, (amount_chunk, pkh_chunk) in enumerate(pairs):
        amount = _number(amount_chunk)
        pkh = pkh_chunk.data
        output = tx.outputs[index]
        if output.value != amount:
            msg = f"Output {index} value {output.value} != committed {amount}"
            raise VerificationError(msg)
        if index == 0 or index > last_token:
            expected_script_pkh = extract_pubkey_hash(output.script_pubkey)
            if index == 0 and pkh != token.redemption_pkh:
                msg = "Redeem output is not committed to the redemption address"
                raise VerificationError(msg)
            if expected_script_pkh != pkh:
                msg = f"Output {index} does not pay the committed P2PKH hash"
                raise VerificationError(msg)
        elif (
            pkh is None
            or len(pkh) != 20
            or output.script_pubkey != token.with_owner(pkh).to_bytes()
        ):
            msg = f"Output {index} is not the token re-templated to the committed owner"
            raise VerificationError(msg)
        if index <= last_token:
            token_total += amount

    if token_total != satoshis:
        msg = f"Token value not conserved: {token_total} out of {satoshis}"
        raise VerificationError(msg)
    if note and tx.outputs[-1].script_pubkey != data_note_script(note):
        msg = "Data output does not match the committed data note"
        raise VerificationError(msg)

    if signature and pubkey:
        if hash160(pubkey) != token.owner_pkh:
            msg = "Public key does not own the token input"
            raise VerificationError(msg)
        if not verify_input_signature(
            tx, 0, signature, pubkey, script=script, satoshis=satoshis
        ):
            msg = "Token input signature is invalid"
            raise VerificationError(msg)


def _verify_tail(tx: Transaction, kind: TokenKind, chunks: list[ScriptChunk]) -> list[ScriptChunk]:
    """Check spending type and funding outpoint; return the remaining chunks."""
    if not chunks or _number(chunks[-1]) != SPENDING_TYPE_REDEEM:
        msg = "Unlocking script is not a redeem spend"
        raise VerificationError(msg)
    chunks = chunks[:-1]
    if len(tx.inputs) > 1:
        funding = tx.inputs[1]
        if (
            len(chunks) < 2
            or chunks[-1].data != funding.prev_tx_id
            or _number(chunks[-2]) != funding.prev_tx_out_index
        ):
            msg = "Funding outpoint does not match the payment input"
            raise VerificationError(msg)
        chunks = chunks[:-2]
    else:
        if not chunks or chunks[-1].data != b"":
            msg = "Zero-fee spend must not commit to a funding outpoint"
            raise VerificationError(msg)
        chunks = chunks[:-1]
    if kind.supports_data and not chunks:
        msg = "STAS-20 unlocking script lacks its data note slot"
        raise VerificationError(msg)
    return chunks


def _number(chunk: ScriptChunk) -> int:
    try:
        return chunk.to_number()
    except ValueError as exc:
        raise VerificationError(str(exc)) from exc


def _spent_token_output(
    tx: Transaction, candidate: list[ScriptChunk]
) -> tuple[bytes | None, int | None]:
    """Return the spent script and value if *candidate* is input 0's preimage."""
    if not candidate or not candidate[0].data:
        return None, None
    preimage = candidate[0].data
    try:
        outpoint, script, satoshis = parse_preimage(preimage)
    except ValueError:
        return None, None
    if outpoint != tx.inputs[0].outpoint():
        return None, None
    if signature_preimage(tx, 0, script, satoshis, SIGHASH_ALL_FORKID) != preimage:
        return None, None
    return script, satoshis
