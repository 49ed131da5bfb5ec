from __future__ import annotations

import logging
import operator
import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pytest

from chainhash.contracts.error import ItemAllocationError, PolicyError, TableCreationError
from chainhash.core.hashing import DEFAULT_SEED, mixing_hash, siphash_hash
from chainhash.core.items import ChainItem, attribute_extractor
from chainhash.core.table import ChainedHashTable, create

SCENARIO_HASHES: Dict[str, int] = {"a": 0, "b": 4, "c": 1}


def scenario_hash(key: str, seed: bytes) -> int:
    del seed
    return SCENARIO_HASHES[key]


def chain_keys(table: ChainedHashTable, bucket: int) -> List[Any]:
    return [item.key for item in table.chain(bucket)]


@dataclass(eq=False)
class Conn:
    """Caller key with an embedded chain item."""

    cid: bytes
    serial: int = 0
    link: ChainItem = field(default_factory=ChainItem)


def conn_hash(key: Conn, seed: bytes) -> int:
    return siphash_hash(key.cid, seed)


def same_cid(left: Conn, right: Conn) -> bool:
    return left.cid == right.cid


class ReleaseLog:
    def __init__(self) -> None:
        self.calls: Counter[int] = Counter()
        self.keys: List[Any] = []

    def __call__(self, key: Any) -> None:
        self.calls[id(key)] += 1
        self.keys.append(key)


def test_bucket_scenario_is_lifo_and_counts_track() -> None:
    table = ChainedHashTable(4, scenario_hash, operator.eq)
    counts = [len(table)]
    items = {}
    for key in ("a", "b", "c"):
        items[key] = table.insert(key)
        counts.append(len(table))

    assert chain_keys(table, 0) == ["b", "a"]
    assert chain_keys(table, 1) == ["c"]
    found = table.retrieve("a")
    assert found is items["a"]
    assert found.key == "a"

    assert table.delete_item(items["b"]) is True
    counts.append(len(table))
    assert chain_keys(table, 0) == ["a"]
    assert counts == [0, 1, 2, 3, 2]


def test_cached_hash_is_reduced_to_64_bits() -> None:
    table = ChainedHashTable(7, lambda key, seed: -1, operator.eq)
    item = table.insert("neg")
    assert item.hash == 0xFFFFFFFFFFFFFFFF
    assert table.bucket_index("neg") == 0xFFFFFFFFFFFFFFFF % 7
    assert table.retrieve("neg") is item


def test_distinct_keys_are_retrievable_and_deletable() -> None:
    table = ChainedHashTable(16, mixing_hash, operator.eq)
    keys = [f"conn-{i}".encode() for i in range(50)]
    for key in keys:
        table.insert(key)
    assert len(table) == 50
    for key in keys:
        item = table.retrieve(key)
        assert item is not None and item.key == key

    assert table.delete_key(keys[7]) is True
    assert len(table) == 49
    assert table.retrieve(keys[7]) is None
    assert keys[7] not in table
    assert keys[8] in table


def test_duplicate_keys_both_reachable_newest_first() -> None:
    table = ChainedHashTable(8, conn_hash, same_cid)
    older = Conn(b"dup", serial=1)
    newer = Conn(b"dup", serial=2)
    older_item = table.insert(older)
    table.insert(newer)

    assert len(table) == 2
    bucket = table.bucket_index(older)
    assert [item.key.serial for item in table.chain(bucket)] == [2, 1]
    assert table.retrieve(Conn(b"dup")).key is newer

    # The older duplicate can still be removed directly through its item.
    assert table.delete_item(older_item) is True
    assert len(table) == 1
    assert table.retrieve(Conn(b"dup")).key is newer


def test_seed_defaults_to_zero_and_reaches_hash_fn() -> None:
    seen: List[bytes] = []

    def recording_hash(key: bytes, seed: bytes) -> int:
        seen.append(seed)
        return mixing_hash(key, seed)

    table = ChainedHashTable(4, recording_hash, operator.eq)
    table.insert(b"k")
    assert table.seed == DEFAULT_SEED
    assert seen == [DEFAULT_SEED]

    seed = bytes(range(16))
    seeded = create(4, recording_hash, operator.eq, seed=bytearray(seed))
    seeded.retrieve(b"k")
    assert seeded.seed == seed
    assert seen[-1] == seed


@pytest.mark.parametrize("bucket_count", [0, -3, 2.5, True, "8", sys.maxsize])
def test_invalid_bucket_counts_rejected(bucket_count: Any) -> None:
    with pytest.raises(TableCreationError):
        ChainedHashTable(bucket_count, mixing_hash, operator.eq)


def test_creation_rejects_bad_arguments() -> None:
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, mixing_hash, operator.eq, seed=b"too short")
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, mixing_hash, operator.eq, seed="0" * 16)  # type: ignore[arg-type]
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, "mixing", operator.eq)  # type: ignore[arg-type]
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, mixing_hash, operator.eq, item_extractor=attribute_extractor("link"), max_items=3)
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, mixing_hash, operator.eq, max_items=-1)
    with pytest.raises(TableCreationError):
        ChainedHashTable(8, mixing_hash, operator.eq, item_extractor=42)  # type: ignore[arg-type]


def test_owned_allocation_failure_leaves_table_untouched() -> None:
    table = ChainedHashTable(4, scenario_hash, operator.eq, max_items=2)
    table.insert("a")
    table.insert("b")
    with pytest.raises(ItemAllocationError):
        table.insert("c")
    assert len(table) == 2
    assert chain_keys(table, 1) == []
    assert table.retrieve("c") is None

    # Freed slots become available again.
    table.delete_key("a")
    table.insert("c")
    assert chain_keys(table, 1) == ["c"]


def test_intrusive_mode_links_embedded_items() -> None:
    table = ChainedHashTable(8, conn_hash, same_cid, attribute_extractor("link"))
    conn = Conn(b"abc")
    item = table.insert(conn)
    assert table.intrusive is True
    assert table.mode == "intrusive"
    assert item is conn.link
    assert item.slot is None
    assert table.retrieve(Conn(b"abc")) is conn.link

    assert table.delete_item(conn.link) is True
    assert len(table) == 0
    # The embedded item stays with its key after removal.
    assert conn.link.key is conn


def test_intrusive_extractor_returning_none_is_allocation_failure(caplog: pytest.LogCaptureFixture) -> None:
    table = ChainedHashTable(8, conn_hash, same_cid, lambda key: None)
    with caplog.at_level(logging.WARNING, logger="chainhash"):
        with pytest.raises(ItemAllocationError) as excinfo:
            table.insert(Conn(b"x"))
    assert len(table) == 0
    assert excinfo.value.hint == "intrusive extractor returned None"
    assert "allocation failed" in caplog.text


def test_owned_items_are_returned_to_the_arena() -> None:
    table = ChainedHashTable(4, scenario_hash, operator.eq)
    item = table.insert("a")
    assert table.store.owns(item)  # type: ignore[attr-defined]
    table.delete_item(item)
    assert not table.store.owns(item)  # type: ignore[attr-defined]
    assert item.key is None


def test_stale_item_delete_is_noop_for_count(caplog: pytest.LogCaptureFixture) -> None:
    released = ReleaseLog()
    table = ChainedHashTable(8, conn_hash, same_cid, attribute_extractor("link"), release_key=released)
    first = Conn(b"one")
    table.insert(first)
    table.insert(Conn(b"two"))
    assert table.delete_item(first.link) is True

    with caplog.at_level(logging.WARNING, logger="chainhash"):
        assert table.delete_item(first.link, delete_key_too=True) is False
    assert len(table) == 1
    assert "unlink skipped" in caplog.text
    # Key handling still proceeds for the stale item.
    assert released.keys == [first]


def test_foreign_owned_item_is_not_freed() -> None:
    mine = ChainedHashTable(4, scenario_hash, operator.eq)
    other = ChainedHashTable(4, scenario_hash, operator.eq)
    mine.insert("a")
    foreign = other.insert("a")

    assert mine.delete_item(foreign) is False
    assert len(mine) == 1
    assert other.retrieve("a") is foreign
    assert foreign.key == "a"


def test_repeated_owned_delete_does_not_release_scrubbed_key(caplog: pytest.LogCaptureFixture) -> None:
    released = ReleaseLog()
    table = ChainedHashTable(4, scenario_hash, operator.eq, release_key=released)
    item = table.insert("a")
    table.insert("b")
    assert table.delete_item(item, delete_key_too=True) is True

    with caplog.at_level(logging.WARNING, logger="chainhash"):
        assert table.delete_item(item, delete_key_too=True) is False
    assert released.keys == ["a"]
    assert len(table) == 1
    assert "key release skipped" in caplog.text


def test_foreign_owned_item_key_is_not_released() -> None:
    released = ReleaseLog()
    mine = ChainedHashTable(4, scenario_hash, operator.eq, release_key=released)
    other = ChainedHashTable(4, scenario_hash, operator.eq)
    foreign = other.insert("c")

    assert mine.delete_item(foreign, delete_key_too=True) is False
    assert released.keys == []
    assert other.retrieve("c") is foreign


def test_matches_uses_compare_fn() -> None:
    table = ChainedHashTable(8, conn_hash, same_cid)
    item = table.insert(Conn(b"k", serial=1))
    assert table.matches(Conn(b"k"), item) is True
    assert table.matches(Conn(b"other"), item) is False


def test_delete_key_releases_stored_key_when_found() -> None:
    released = ReleaseLog()
    table = ChainedHashTable(8, conn_hash, same_cid, release_key=released)
    stored = Conn(b"k")
    table.insert(stored)
    probe = Conn(b"k")
    assert table.delete_key(probe, delete_key_too=True) is True
    assert released.keys == [stored]
    assert len(table) == 0


def test_delete_key_absent_still_releases_key() -> None:
    released = ReleaseLog()
    table = ChainedHashTable(4, scenario_hash, operator.eq, release_key=released)
    table.insert("a")
    assert table.delete_key("b", delete_key_too=True) is False
    assert released.keys == ["b"]
    assert len(table) == 1

    assert table.delete_key("c") is False
    assert released.keys == ["b"]


def test_destroy_releases_every_key_once() -> None:
    released = ReleaseLog()
    table = ChainedHashTable(4, conn_hash, same_cid, release_key=released)
    conns = [Conn(bytes([i])) for i in range(20)]
    for conn in conns:
        table.insert(conn)
    table.delete_key(conns[0])

    table.destroy(delete_key_too=True)
    assert sorted(released.calls.values()) == [1] * 19
    assert set(released.calls) == {id(conn) for conn in conns[1:]}
    assert table.destroyed
    assert len(table) == 0


def test_destroy_without_release_touches_no_key() -> None:
    released = ReleaseLog()
    table = ChainedHashTable(4, scenario_hash, operator.eq, release_key=released)
    for key in ("a", "b", "c"):
        table.insert(key)
    table.destroy()
    assert released.keys == []


def test_destroy_empty_table_and_use_after_destroy() -> None:
    table = ChainedHashTable(4, scenario_hash, operator.eq)
    table.destroy(delete_key_too=True)
    assert "destroyed" in repr(table)
    with pytest.raises(PolicyError):
        table.insert("a")
    with pytest.raises(PolicyError):
        table.retrieve("a")
    with pytest.raises(PolicyError):
        table.delete_key("a")
    with pytest.raises(PolicyError):
        table.destroy()


def test_destroy_intrusive_leaves_items_with_keys() -> None:
    released = ReleaseLog()
    table = ChainedHashTable(8, conn_hash, same_cid, attribute_extractor("link"), release_key=released)
    conns = [Conn(bytes([i])) for i in range(5)]
    for conn in conns:
        table.insert(conn)
    table.destroy(delete_key_too=True)
    assert len(released.keys) == 5
    assert all(conn.link.key is conn for conn in conns)


def test_iteration_and_chain_accessors() -> None:
    table = ChainedHashTable(4, scenario_hash, operator.eq)
    for key in ("a", "b", "c"):
        table.insert(key)
    assert [item.key for item in table] == ["b", "a", "c"]
    assert table.chain_lengths() == [2, 1, 0, 0]
    assert table.max_chain_len() == 2
    assert table.load_factor() == pytest.approx(0.75)
    with pytest.raises(IndexError):
        list(table.chain(4))
