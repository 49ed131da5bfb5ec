from __future__ import annotations

import logging
import struct
import sys
from typing import Any, Callable, Iterator, List, Optional

from chainhash.contracts.error import ItemAllocationError, PolicyError, TableCreationError

from .hashing import MASK_64, BytesLike, coerce_seed
from .items import ChainItem, IntrusiveItemAdapter, ItemStore, KeyToItem, OwnedItemArena

logger = logging.getLogger("chainhash")

POINTER_SIZE: int = struct.calcsize("P")

HashFn = Callable[[Any, bytes], int]
CompareFn = Callable[[Any, Any], Any]
ReleaseFn = Callable[[Any], None]


class ChainedHashTable:
    """Fixed-size hash table with singly linked, most-recent-first chains.

    Items are either allocated by the table from an owning arena ("owned"
    mode) or taken from the caller's keys through ``item_extractor``
    ("intrusive" mode). Keys are never released by the table unless a
    deletion call asks for it, in which case ``release_key`` is invoked.
    Equal keys are not deduplicated; :meth:`retrieve` returns the newest.
    """

    __slots__ = (
        "_bucket_count",
        "_buckets",
        "_count",
        "_seed",
        "_hash_fn",
        "_compare_fn",
        "_store",
        "_release_key",
    )

    def __init__(
        self,
        bucket_count: int,
        hash_fn: HashFn,
        compare_fn: CompareFn,
        item_extractor: Optional[KeyToItem] = None,
        seed: Optional[BytesLike] = None,
        *,
        release_key: Optional[ReleaseFn] = None,
        max_items: Optional[int] = None,
    ) -> None:
        if isinstance(bucket_count, bool) or not isinstance(bucket_count, int) or bucket_count < 1:
            raise TableCreationError(f"bucket_count must be a positive integer (got {bucket_count!r})")
        if bucket_count > sys.maxsize // POINTER_SIZE:
            raise TableCreationError(
                f"bucket_count {bucket_count} overflows the bucket array size",
                hint=f"use at most {sys.maxsize // POINTER_SIZE} buckets",
            )
        if not callable(hash_fn) or not callable(compare_fn):
            raise TableCreationError("hash_fn and compare_fn must be callable")
        if release_key is not None and not callable(release_key):
            raise TableCreationError("release_key must be callable")
        try:
            seed_bytes = coerce_seed(seed)
        except (TypeError, ValueError) as exc:
            raise TableCreationError(f"invalid seed: {exc}") from exc

        store: ItemStore
        try:
            if item_extractor is None:
                store = OwnedItemArena(max_items)
            else:
                if max_items is not None:
                    raise TableCreationError("max_items only applies to tables that own their items")
                store = IntrusiveItemAdapter(item_extractor)
        except (TypeError, ValueError) as exc:
            raise TableCreationError(str(exc)) from exc

        try:
            buckets: Optional[List[Optional[ChainItem]]] = [None] * bucket_count
        except (MemoryError, OverflowError) as exc:
            raise TableCreationError(f"cannot allocate {bucket_count} buckets") from exc

        self._bucket_count = bucket_count
        self._buckets = buckets
        self._count = 0
        self._seed = seed_bytes
        self._hash_fn = hash_fn
        self._compare_fn = compare_fn
        self._store = store
        self._release_key = release_key
        logger.debug("Created chained table (buckets=%d, mode=%s)", bucket_count, self.mode)

    def __len__(self) -> int:
        return self._count

    def __contains__(self, key: Any) -> bool:
        return self.retrieve(key) is not None

    def __iter__(self) -> Iterator[ChainItem]:
        return self.items()

    def __repr__(self) -> str:
        state = "destroyed" if self.destroyed else f"items={self._count}"
        return f"<ChainedHashTable buckets={self._bucket_count} {state} mode={self.mode}>"

    @property
    def bucket_count(self) -> int:
        return self._bucket_count

    @property
    def seed(self) -> bytes:
        return self._seed

    @property
    def intrusive(self) -> bool:
        return self._store.intrusive

    @property
    def mode(self) -> str:
        return "intrusive" if self._store.intrusive else "owned"

    @property
    def destroyed(self) -> bool:
        return self._buckets is None

    @property
    def store(self) -> ItemStore:
        return self._store

    def _live_buckets(self) -> List[Optional[ChainItem]]:
        if self._buckets is None:
            raise PolicyError("table has been destroyed", hint="create a new table")
        return self._buckets

    def _release(self, key: Any) -> None:
        if self._release_key is not None:
            self._release_key(key)

    def hash_key(self, key: Any) -> int:
        return self._hash_fn(key, self._seed) & MASK_64

    def bucket_index(self, key: Any) -> int:
        return self.hash_key(key) % self._bucket_count

    def matches(self, key: Any, item: ChainItem) -> bool:
        return bool(self._compare_fn(key, item.key))

    def retrieve(self, key: Any) -> Optional[ChainItem]:
        buckets = self._live_buckets()
        item = buckets[self.bucket_index(key)]
        while item is not None:
            if self.matches(key, item):
                return item
            item = item.next
        return None

    def insert(self, key: Any) -> ChainItem:
        """Link ``key`` at the head of its chain and return its item.

        No duplicate check is made. Raises :class:`ItemAllocationError` when
        no item can be obtained, leaving the table unchanged.
        """

        buckets = self._live_buckets()
        h = self.hash_key(key)
        idx = h % self._bucket_count
        try:
            item = self._store.allocate(key)
        except MemoryError as exc:
            logger.warning("Item allocation ran out of memory (items=%d)", self._count)
            raise ItemAllocationError("out of memory allocating a chain item") from exc
        if item is None:
            logger.warning("Item allocation failed (mode=%s, items=%d)", self.mode, self._count)
            raise ItemAllocationError(
                "could not obtain a chain item for insert",
                hint="intrusive extractor returned None" if self.intrusive else "owned item limit reached",
            )
        item.hash = h
        item.key = key
        item.next = buckets[idx]
        buckets[idx] = item
        self._count += 1
        return item

    def delete_item(self, item: ChainItem, delete_key_too: bool = False) -> bool:
        """Unlink ``item``; returns False when it was not found in its bucket.

        Owned items go back to the arena and the key is released when
        ``delete_key_too`` is set. Intrusive items keep that handling even when
        not linked; an owned item the arena no longer holds is left alone and
        its key is not released.
        """

        buckets = self._live_buckets()
        idx = item.hash % self._bucket_count
        previous = buckets[idx]
        unlinked = False
        if previous is item:
            buckets[idx] = item.next
            unlinked = True
        else:
            while previous is not None:
                if previous.next is item:
                    previous.next = item.next
                    unlinked = True
                    break
                previous = previous.next

        if unlinked:
            self._count -= 1
            item.next = None
        else:
            logger.warning("delete_item: item not linked in bucket %d, unlink skipped", idx)

        key = item.key
        freed = self._store.release(item)
        if not self._store.intrusive and not freed:
            # Owned item this arena no longer holds: its key was already scrubbed or is not ours.
            if delete_key_too:
                logger.warning("delete_item: stale owned item, key release skipped")
            return unlinked
        if delete_key_too:
            self._release(key)
        return unlinked

    def delete_key(self, key: Any, delete_key_too: bool = False) -> bool:
        item = self.retrieve(key)
        if item is not None:
            self.delete_item(item, delete_key_too)
            return True
        if delete_key_too:
            # Caller hands over the key whether or not it was indexed.
            self._release(key)
        return False

    def destroy(self, delete_key_too: bool = False) -> None:
        buckets = self._live_buckets()
        released = 0
        if self._count > 0:
            for head in buckets:
                item = head
                while item is not None:
                    nxt = item.next
                    key = item.key
                    self._store.release(item)
                    if delete_key_too:
                        self._release(key)
                        released += 1
                    item = nxt
        if isinstance(self._store, OwnedItemArena):
            self._store.clear()
        self._buckets = None
        self._count = 0
        logger.debug("Destroyed chained table (buckets=%d, keys_released=%d)", self._bucket_count, released)

    def chain(self, bucket: int) -> Iterator[ChainItem]:
        buckets = self._live_buckets()
        if not 0 <= bucket < self._bucket_count:
            raise IndexError(f"bucket {bucket} out of range [0, {self._bucket_count})")
        item = buckets[bucket]
        while item is not None:
            yield item
            item = item.next

    def items(self) -> Iterator[ChainItem]:
        for bucket in range(self._bucket_count):
            yield from self.chain(bucket)

    def chain_lengths(self) -> List[int]:
        return [sum(1 for _ in self.chain(bucket)) for bucket in range(self._bucket_count)]

    def max_chain_len(self) -> int:
        return max(self.chain_lengths(), default=0)

    def load_factor(self) -> float:
        return self._count / self._bucket_count


def create(
    bucket_count: int,
    hash_fn: HashFn,
    compare_fn: CompareFn,
    item_extractor: Optional[KeyToItem] = None,
    seed: Optional[BytesLike] = None,
    **kwargs: Any,
) -> ChainedHashTable:
    """Create a table; without an extractor the table owns its items."""

    return ChainedHashTable(bucket_count, hash_fn, compare_fn, item_extractor, seed, **kwargs)


__all__ = ["ChainedHashTable", "CompareFn", "HashFn", "POINTER_SIZE", "ReleaseFn", "create"]
