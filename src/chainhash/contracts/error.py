"""Exception hierarchy and error envelopes for the chained hash table."""

from __future__ import annotations

import json
from dataclasses import dataclass


class EnvelopeError(Exception):
    """Base exception that carries an optional hint for the error envelope."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class BadInputError(EnvelopeError):
    """Raised for malformed caller input (config values, table arguments)."""


class InvariantError(EnvelopeError):
    """Raised when internal consistency checks fail."""


class PolicyError(EnvelopeError):
    """Raised for unsupported operations or contract violations."""


class TableCreationError(BadInputError):
    """Raised when a table cannot be created (bad size, seed, or no memory)."""


class ItemAllocationError(PolicyError):
    """Raised when insert cannot obtain an item; the table is left untouched."""


_EXCEPTION_ORDER: tuple[tuple[type[EnvelopeError], str], ...] = (
    (TableCreationError, "TableCreation"),
    (ItemAllocationError, "ItemAllocation"),
    (BadInputError, "BadInput"),
    (InvariantError, "Invariant"),
    (PolicyError, "Policy"),
)


@dataclass(slots=True)
class ErrorEnvelope:
    """Machine-readable error contract for table failures."""

    error: str
    detail: str
    hint: str | None = None

    def to_json(self) -> str:
        payload = {"error": self.error, "detail": self.detail}
        if self.hint:
            payload["hint"] = self.hint
        return json.dumps(payload, ensure_ascii=False)

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorEnvelope:
        if isinstance(exc, EnvelopeError):
            for exc_type, label in _EXCEPTION_ORDER:
                if isinstance(exc, exc_type):
                    return cls(error=label, detail=str(exc), hint=exc.hint)
            return cls(error="UnhandledEnvelope", detail=str(exc), hint=exc.hint)
        return cls(error="Unhandled", detail=f"{type(exc).__name__}: {exc}")


__all__ = [
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "InvariantError",
    "PolicyError",
    "TableCreationError",
    "ItemAllocationError",
]
