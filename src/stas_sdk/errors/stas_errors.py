"""StasError: base exception class for all py-stas errors."""

from __future__ import annotations


class StasError(Exception):
    """Base error for all token transaction operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "stas-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
