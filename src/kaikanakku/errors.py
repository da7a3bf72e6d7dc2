"""Errores de validación de entrada y de persistencia."""

from __future__ import annotations


class KaiKanakkuError(Exception):
    """Base error for the package."""


class InputValidationError(ValueError, KaiKanakkuError):
    """User input rejected before any conversion runs.

    Attributes:
        code: Stable error identifier shown to the user.
        field: Name of the offending input field, when known.
    """

    code = "invalid-input"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidViralError(InputValidationError):
    """Raw viral component above 23."""

    code = "invalid-viral"


class InvalidCmError(InputValidationError):
    """Raw cm component of 3 or more."""

    code = "invalid-cm"


class InvalidNumberFormatError(InputValidationError):
    """Numeric field that cannot be parsed."""

    code = "invalid-number-format"


class NegativeInputError(InputValidationError):
    """Negative component or scalar length."""

    code = "negative-input"


class SubtractionOrderError(InputValidationError):
    """Subtrahend longer than the minuend."""

    code = "subtraction-order"


class StorageError(KaiKanakkuError):
    """The history/settings store could not complete a request."""
