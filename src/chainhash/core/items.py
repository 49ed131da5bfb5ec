from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol


@dataclass(eq=False, slots=True)
class ChainItem:
    """One link of a bucket chain.

    ``hash`` is cached at insert time so deletion can find the bucket without
    hashing the key again. ``slot`` is the stable arena index for items owned
    by the table and stays ``None`` for items embedded in caller keys.
    """

    hash: int = 0
    key: Any = None
    next: Optional["ChainItem"] = None
    slot: Optional[int] = None


KeyToItem = Callable[[Any], Optional[ChainItem]]


class ItemStore(Protocol):
    intrusive: bool

    def allocate(self, key: Any) -> Optional[ChainItem]:
        ...

    def release(self, item: ChainItem) -> bool:
        ...


class OwnedItemArena:
    """Item storage owned by the table: a slot list with a free list of indices."""

    __slots__ = ("_slots", "_free", "max_items")

    intrusive = False

    def __init__(self, max_items: Optional[int] = None) -> None:
        if max_items is not None and max_items < 0:
            raise ValueError("max_items must be >= 0")
        self._slots: List[Optional[ChainItem]] = []
        self._free: List[int] = []
        self.max_items = max_items

    def __len__(self) -> int:
        return self.live

    @property
    def live(self) -> int:
        return len(self._slots) - len(self._free)

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def allocate(self, key: Any = None) -> Optional[ChainItem]:
        del key
        if self.max_items is not None and self.live >= self.max_items:
            return None
        if self._free:
            idx = self._free.pop()
        else:
            idx = len(self._slots)
            self._slots.append(None)
        item = ChainItem(slot=idx)
        self._slots[idx] = item
        return item

    def owns(self, item: ChainItem) -> bool:
        idx = item.slot
        return idx is not None and 0 <= idx < len(self._slots) and self._slots[idx] is item

    def release(self, item: ChainItem) -> bool:
        idx = item.slot
        if idx is None or not self.owns(item):
            return False
        self._slots[idx] = None
        self._free.append(idx)
        item.slot = None
        item.key = None
        item.next = None
        return True

    def clear(self) -> None:
        for item in self._slots:
            if item is not None:
                item.slot = None
                item.key = None
                item.next = None
        self._slots = []
        self._free = []


class IntrusiveItemAdapter:
    """Borrow the ``ChainItem`` embedded in each caller-owned key."""

    __slots__ = ("extractor",)

    intrusive = True

    def __init__(self, extractor: KeyToItem) -> None:
        if not callable(extractor):
            raise TypeError("extractor must be callable")
        self.extractor = extractor

    def allocate(self, key: Any) -> Optional[ChainItem]:
        item = self.extractor(key)
        if item is not None and not isinstance(item, ChainItem):
            raise TypeError(f"extractor returned {type(item).__name__}, expected ChainItem")
        return item

    def release(self, item: ChainItem) -> bool:
        # The caller's key owns the item.
        del item
        return False


def attribute_extractor(name: str) -> KeyToItem:
    """Build an extractor that reads the ``ChainItem`` stored at ``key.<name>``."""

    def extract(key: Any) -> Optional[ChainItem]:
        return getattr(key, name, None)

    extract.__name__ = f"extract_{name}"
    return extract


__all__ = [
    "ChainItem",
    "IntrusiveItemAdapter",
    "ItemStore",
    "KeyToItem",
    "OwnedItemArena",
    "attribute_extractor",
]
