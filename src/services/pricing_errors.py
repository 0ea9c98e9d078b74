"""Error types raised by the pricing service and its durable stores."""
from __future__ import annotations

from enum import Enum
from typing import Any


class ValidationErrorKind(str, Enum):
    NULL_OR_MISSING = "NULL_OR_MISSING"
    NOT_A_NUMBER = "NOT_A_NUMBER"
    NON_FINITE = "NON_FINITE"
    TOO_LOW = "TOO_LOW"
    TOO_HIGH = "TOO_HIGH"


class PricingError(Exception):
    """Base class for pricing failures surfaced to callers."""


class PriceValidationError(PricingError):
    """A candidate price broke a business rule. Always a caller error."""

    def __init__(self, kind: ValidationErrorKind, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.value = value

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "error": self.message}


class PriceStorageError(PricingError):
    """The durable price record could not be read or written."""
