"""STAS token locking scripts: kind detection, parsing, re-templating.

A token locking script has three parts::

    OP_DUP OP_HASH160 <owner pkh> OP_EQUALVERIFY OP_CHECKSIG OP_VERIFY
    <template body>
    OP_RETURN <redemption pkh> <flags> <symbol> [<data> ...]

The owner hash changes on every transfer. The body and everything after
OP_RETURN travel unchanged with the token. The redemption hash is the
issuer-designated address that receives value when the token is redeemed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from stas_sdk.bsv.script import OpCode, iter_chunks, op_return_script, push_data
from stas_sdk.errors.redeem_errors import DestinationAddressError, TemplateError

_OWNER_PREFIX = bytes([OpCode.OP_DUP, OpCode.OP_HASH160, 0x14])
_OWNER_SUFFIX = bytes([OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG, OpCode.OP_VERIFY])
_OWNER_END = len(_OWNER_PREFIX) + 20 + len(_OWNER_SUFFIX)

# Template bodies. Only the opcode sequence matters for detection.
_STAS_BODY = bytes.fromhex(
    "76aa607f5f7f7c5e7d7c5d7c5c7c5b7c5a7c597c587c577c567c557c547c537c527c517c"
    "7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7c7e7eaa7c687b7eaa587a7d877663516752687c7287"
)
# Data-note handling that only STAS-20 templates carry.
_STAS_20_MARKER = bytes.fromhex("5579636c76697668")
_STAS_20_BODY = _STAS_BODY + _STAS_20_MARKER


class TokenKind(enum.StrEnum):
    """Token template variants."""

    STAS = "stas"
    STAS_20 = "stas-20"

    @property
    def supports_data(self) -> bool:
        """Whether the template commits to an attached data note."""
        return self is TokenKind.STAS_20

    @property
    def template_body(self) -> bytes:
        return _STAS_20_BODY if self is TokenKind.STAS_20 else _STAS_BODY


@dataclass(frozen=True)
class TokenScript:
    """A parsed token locking script.

    Attributes:
        kind: Template variant, detected from the body.
        owner_pkh: Current owner's 20-byte public key hash.
        body: Template body between the owner check and OP_RETURN.
        redemption_pkh: 20-byte hash receiving value on redemption.
        flags: Token flags push.
        symbol: Token symbol push.
        data: Any further pushes after the symbol.
    """

    kind: TokenKind
    owner_pkh: bytes
    body: bytes
    redemption_pkh: bytes
    flags: bytes = b""
    symbol: bytes = b""
    data: tuple[bytes, ...] = ()

    @classmethod
    def parse(cls, script: bytes) -> TokenScript:
        """Parse a token locking script.

        Raises:
            TemplateError: If *script* is not a token locking script.
        """
        if (
            len(script) < _OWNER_END
            or script[: len(_OWNER_PREFIX)] != _OWNER_PREFIX
            or script[23:_OWNER_END] != _OWNER_SUFFIX
        ):
            msg = "Script does not start with a token owner check"
            raise TemplateError(msg)

        offset = _OWNER_END
        try:
            chunks = list(iter_chunks(script[_OWNER_END:]))
        except ValueError as exc:
            raise TemplateError(f"Malformed token script: {exc}") from exc

        tail: list[bytes] | None = None
        for i, chunk in enumerate(chunks):
            if chunk.data is None and chunk.op == OpCode.OP_RETURN:
                tail = [c.data for c in chunks[i + 1 :] if c.data is not None]
                if len(tail) != len(chunks) - i - 1:
                    msg = "Token script metadata must contain only data pushes"
                    raise TemplateError(msg)
                break
            offset += 1 + (len(chunk.data) if chunk.data is not None else 0)
            offset += _push_header_length(chunk.op)
        if tail is None:
            msg = "Token script has no OP_RETURN metadata"
            raise TemplateError(msg)
        if not tail or len(tail[0]) != 20:
            msg = "Token script metadata lacks a 20-byte redemption hash"
            raise TemplateError(msg)

        body = script[_OWNER_END:offset]
        if not body:
            msg = "Token script has an empty template body"
            raise TemplateError(msg)
        kind = TokenKind.STAS_20 if _STAS_20_MARKER in body else TokenKind.STAS
        return cls(
            kind=kind,
            owner_pkh=script[3:23],
            body=body,
            redemption_pkh=tail[0],
            flags=tail[1] if len(tail) > 1 else b"",
            symbol=tail[2] if len(tail) > 2 else b"",
            data=tuple(tail[3:]),
        )

    def to_bytes(self) -> bytes:
        """Serialize back to a locking script."""
        script = _OWNER_PREFIX + self.owner_pkh + _OWNER_SUFFIX + self.body
        script += bytes([OpCode.OP_RETURN]) + push_data(self.redemption_pkh)
        for item in (self.flags, self.symbol, *self.data):
            script += push_data(item)
        return script

    def with_owner(self, owner_pkh: bytes) -> TokenScript:
        """Return the same token bound to a new owner."""
        if len(owner_pkh) != 20:
            msg = f"owner_pkh must be 20 bytes, got {len(owner_pkh)}"
            raise TemplateError(msg)
        return replace(self, owner_pkh=owner_pkh)


def _push_header_length(op: int) -> int:
    if op == OpCode.OP_PUSHDATA1:
        return 1
    if op == OpCode.OP_PUSHDATA2:
        return 2
    if op == OpCode.OP_PUSHDATA4:
        return 4
    return 0


# ---------------------------------------------------------------------------
# Template engine operations
# ---------------------------------------------------------------------------


def build_token_script(
    kind: TokenKind,
    owner_pkh: bytes,
    redemption_pkh: bytes,
    symbol: bytes,
    *,
    flags: bytes = b"\x01",
    data: tuple[bytes, ...] = (),
) -> bytes:
    """Build a token locking script as issued to *owner_pkh*."""
    if len(owner_pkh) != 20 or len(redemption_pkh) != 20:
        msg = "owner and redemption hashes must be 20 bytes"
        raise TemplateError(msg)
    token = TokenScript(
        kind=kind,
        owner_pkh=owner_pkh,
        body=kind.template_body,
        redemption_pkh=redemption_pkh,
        flags=flags,
        symbol=symbol,
        data=data,
    )
    return token.to_bytes()


def detect_token_kind(script: bytes) -> TokenKind:
    """Return the template variant of a token locking script."""
    return TokenScript.parse(script).kind


def is_stas_20(script: bytes) -> bool:
    return detect_token_kind(script) is TokenKind.STAS_20


def get_redeem_pkh(script: bytes) -> bytes:
    """Return the redemption public key hash embedded in a token script."""
    return TokenScript.parse(script).redemption_pkh


def update_stas_script(destination_pkh: bytes, script: bytes) -> bytes:
    """Re-template a token script so it is owned by *destination_pkh*."""
    return TokenScript.parse(script).with_owner(destination_pkh).to_bytes()


def check_destination_address(
    redemption_pkh: bytes,
    destination_pkh: bytes,
    kind: TokenKind,
) -> None:
    """Apply the kind's rule for which destinations a split may pay.

    STAS-20 tokens cannot be split to their own redemption address; value
    for that address must leave through the redeem output.

    Raises:
        DestinationAddressError: If the destination is not allowed.
    """
    if kind is TokenKind.STAS_20 and destination_pkh == redemption_pkh:
        msg = (
            f"Destination {destination_pkh.hex()} is the redemption address "
            "of a STAS-20 token"
        )
        raise DestinationAddressError(msg)


def format_data_note(data: str | bytes) -> bytes:
    """Normalise a data note to bytes (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def data_note_script(payload: bytes) -> bytes:
    """Build the zero-value data output: ``OP_FALSE OP_RETURN <payload>``."""
    return op_return_script(payload)
