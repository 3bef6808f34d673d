"""STAS token scripts: templates, unlocking scripts, redemption checks."""

from stas_sdk.token.templates import TokenKind, TokenScript, build_token_script
from stas_sdk.token.unlocking import verify_redeem_split

__all__ = ["TokenKind", "TokenScript", "build_token_script", "verify_redeem_split"]
