"""Chain statistics and consistency checks for :class:`ChainedHashTable`."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from chainhash.contracts.error import InvariantError
from chainhash.core.table import ChainedHashTable


@dataclass
class TableStats:
    bucket_count: int
    item_count: int
    load_factor: float
    max_chain_len: int
    empty_buckets: int
    mode: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def sample_stats(table: ChainedHashTable) -> TableStats:
    lengths = table.chain_lengths()
    return TableStats(
        bucket_count=table.bucket_count,
        item_count=len(table),
        load_factor=table.load_factor(),
        max_chain_len=max(lengths, default=0),
        empty_buckets=sum(1 for length in lengths if length == 0),
        mode=table.mode,
    )


def collect_chain_histogram(table: ChainedHashTable) -> List[List[int]]:
    """Return ``[[chain_length, buckets_with_that_length], ...]`` sorted by length."""

    histogram: Dict[int, int] = defaultdict(int)
    for length in table.chain_lengths():
        histogram[length] += 1
    return [[length, count] for length, count in sorted(histogram.items())]


def verify_invariants(table: ChainedHashTable) -> None:
    """Raise :class:`InvariantError` when the table's bookkeeping is inconsistent."""

    total = 0
    limit = len(table)
    for bucket in range(table.bucket_count):
        seen: set[int] = set()
        for item in table.chain(bucket):
            if id(item) in seen:
                raise InvariantError(f"bucket {bucket} chain is cyclic")
            seen.add(id(item))
            expected = item.hash % table.bucket_count
            if expected != bucket:
                raise InvariantError(
                    f"item {item.key!r} found in bucket {bucket}, expected {expected}"
                )
            total += 1
            if total > limit:
                raise InvariantError(f"chains hold more than the {limit} recorded items")
    if total != limit:
        raise InvariantError(f"item count is {limit} but chains hold {total} items")


__all__ = [
    "TableStats",
    "collect_chain_histogram",
    "sample_stats",
    "verify_invariants",
]
