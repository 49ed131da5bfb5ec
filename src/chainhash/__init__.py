"""Fixed-size chained hash table with seeded hashing."""

from . import analysis, contracts, core
from .core import (
    DEFAULT_SEED,
    ChainedHashTable,
    ChainItem,
    attribute_extractor,
    create,
    mixing_hash,
    siphash_hash,
)

__all__ = [
    "analysis",
    "contracts",
    "core",
    "ChainItem",
    "ChainedHashTable",
    "DEFAULT_SEED",
    "attribute_extractor",
    "create",
    "mixing_hash",
    "siphash_hash",
]
