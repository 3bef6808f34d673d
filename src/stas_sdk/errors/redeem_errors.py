"""Errors raised while building, signing and verifying token transactions."""

from __future__ import annotations

from stas_sdk.errors.stas_errors import StasError


class ValidationError(StasError):
    """Malformed or missing arguments, detected before any transaction exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid-argument")


class TemplateError(StasError):
    """A locking script is not a recognised token template."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid-token-script")


class DestinationAddressError(StasError):
    """A destination is incompatible with the token kind's redemption rule."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="destination-incompatible")


class InsufficientChangeError(StasError):
    """The payment UTXO cannot cover the transaction cost plus the dust threshold.

    Attributes:
        available: Satoshis held by the payment UTXO.
        required: Transaction cost plus the dust threshold.
    """

    def __init__(self, message: str, *, available: int, required: int) -> None:
        super().__init__(message, code="insufficient-change")
        self.available = available
        self.required = required


class SigningError(StasError):
    """A key cannot complete the input it was offered for."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="signing-error")


class VerificationError(StasError):
    """A token unlocking script does not match the transaction it is in."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="verification-failed")
