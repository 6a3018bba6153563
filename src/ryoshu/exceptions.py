"""
ryoshu.exceptions
~~~~~~~~~~~~~~~~~
Exception hierarchy for the ryoshu library.
"""

from __future__ import annotations


class RyoshuError(Exception):
    """Base exception for all ryoshu errors."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.message = message

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by {type(self.cause).__name__}: {self.cause})"
        return self.message


class StorageError(RyoshuError):
    """Raised when the durable key-value storage cannot be read or written."""


class IssuerNotFoundError(RyoshuError):
    """
    Raised when an issuer id does not match any stored issuer.

    Attributes:
        issuer_id: The id that was looked up.
    """

    def __init__(self, message: str, *, issuer_id: object) -> None:
        super().__init__(message)
        self.issuer_id = issuer_id


class IssuerNotSelectedError(RyoshuError):
    """Raised when a receipt is issued without a valid issuer selection."""


class UnknownTaxModeError(RyoshuError):
    """Raised when a tax strategy name is not registered."""


class InvalidImageError(RyoshuError):
    """Raised when uploaded hanko data is not a readable image."""


class RenderError(RyoshuError):
    """Raised when a receipt document cannot be rendered to an output format."""
