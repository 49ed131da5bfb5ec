"""Contract helpers for the chained hash table."""

from .error import (
    BadInputError,
    EnvelopeError,
    ErrorEnvelope,
    InvariantError,
    ItemAllocationError,
    PolicyError,
    TableCreationError,
)

__all__ = [
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "InvariantError",
    "PolicyError",
    "TableCreationError",
    "ItemAllocationError",
]
