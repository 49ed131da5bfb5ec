from .hashing import (
    DEFAULT_SEED,
    HASH_FUNCTIONS,
    MASK_64,
    SEED_SIZE,
    coerce_seed,
    mixing_hash,
    random_seed,
    resolve_hash_function,
    seed_from_hex,
    siphash_hash,
)
from .items import ChainItem, IntrusiveItemAdapter, ItemStore, OwnedItemArena, attribute_extractor
from .table import ChainedHashTable, create

__all__ = [
    "ChainItem",
    "ChainedHashTable",
    "IntrusiveItemAdapter",
    "ItemStore",
    "OwnedItemArena",
    "attribute_extractor",
    "create",
    "DEFAULT_SEED",
    "HASH_FUNCTIONS",
    "MASK_64",
    "SEED_SIZE",
    "coerce_seed",
    "mixing_hash",
    "random_seed",
    "resolve_hash_function",
    "seed_from_hex",
    "siphash_hash",
]
