"""Seeded 64-bit hash functions over byte strings.

Both functions share the ``(data, seed, length)`` calling shape so either one
can be handed to :class:`~chainhash.core.table.ChainedHashTable` as its
``hash_fn`` when keys are bytes.
"""

from __future__ import annotations

import secrets
from typing import Callable, Dict, Optional, Union

from siphash24 import siphash24

from chainhash.contracts.error import BadInputError

BytesLike = Union[bytes, bytearray, memoryview]
HashFunction = Callable[..., int]

SEED_SIZE: int = 16
MASK_64: int = 0xFFFFFFFFFFFFFFFF

DEFAULT_SEED: bytes = bytes(SEED_SIZE)

_INITIAL_ROTATE = 11


def coerce_seed(seed: Optional[BytesLike]) -> bytes:
    """Return ``seed`` as 16 immutable bytes, or :data:`DEFAULT_SEED` for ``None``."""

    if seed is None:
        return DEFAULT_SEED
    if not isinstance(seed, (bytes, bytearray, memoryview)):
        raise TypeError("seed must be bytes-like")
    raw = bytes(seed)
    if len(raw) != SEED_SIZE:
        raise ValueError(f"seed must be exactly {SEED_SIZE} bytes (got {len(raw)})")
    return raw


def seed_from_hex(text: str) -> bytes:
    try:
        raw = bytes.fromhex(text.strip())
    except ValueError as exc:
        raise BadInputError(f"seed is not valid hex: {text!r}") from exc
    if len(raw) != SEED_SIZE:
        raise BadInputError(
            f"seed must decode to {SEED_SIZE} bytes (got {len(raw)})",
            hint="use 32 hexadecimal characters",
        )
    return raw


def random_seed() -> bytes:
    """Draw a fresh seed from the OS CSPRNG."""

    return secrets.token_bytes(SEED_SIZE)


def _prefix(data: BytesLike, length: Optional[int]) -> memoryview:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"data must be bytes-like, not {type(data).__name__}")
    view = memoryview(data).cast("B")
    if length is None:
        return view
    if length < 0 or length > len(view):
        raise ValueError(f"length {length} out of range for {len(view)} bytes")
    return view[:length]


def mixing_hash(data: BytesLike, seed: Optional[BytesLike] = DEFAULT_SEED, length: Optional[int] = None) -> int:
    """Fast non-cryptographic hash with a data-dependent shift.

    The accumulator starts from seed bytes 8..15 (little endian). Every byte
    folds in the data, the matching seed byte, a shift-xor by 8 and a right
    shift whose width is taken from the accumulator left by the previous
    byte. Not collision resistant against chosen inputs; use
    :func:`siphash_hash` when keys may be attacker controlled.
    """

    key = coerce_seed(seed)
    view = _prefix(data, length)
    h = int.from_bytes(key[8:16], "little")
    rotate = _INITIAL_ROTATE
    for i, byte in enumerate(view):
        h ^= byte
        h ^= key[i & 15]
        h = (h ^ (h << 8)) & MASK_64
        h = (h + (h >> rotate)) & MASK_64
        rotate = (h & 31) + _INITIAL_ROTATE
    h ^= h >> rotate
    return h


def siphash_hash(data: BytesLike, seed: Optional[BytesLike] = DEFAULT_SEED, length: Optional[int] = None) -> int:
    """SipHash-2-4 keyed by ``seed``; the 8-byte digest is read little endian."""

    key = coerce_seed(seed)
    view = _prefix(data, length)
    digest = siphash24(view.tobytes(), key=key).digest()
    return int.from_bytes(digest[:8], "little")


HASH_FUNCTIONS: Dict[str, HashFunction] = {
    "mixing": mixing_hash,
    "siphash": siphash_hash,
}


def resolve_hash_function(name: str) -> HashFunction:
    try:
        return HASH_FUNCTIONS[name.strip().lower()]
    except KeyError:
        choices = ", ".join(sorted(HASH_FUNCTIONS))
        raise BadInputError(f"Unknown hash function {name!r}", hint=f"choose one of: {choices}") from None


__all__ = [
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
