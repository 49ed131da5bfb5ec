"""Chain-walk tracing for retrieve and insert."""

from __future__ import annotations

from typing import Any, Dict, List

from chainhash.core.table import ChainedHashTable

ChainTrace = Dict[str, Any]


def trace_retrieve(table: ChainedHashTable, key: Any) -> ChainTrace:
    h = table.hash_key(key)
    bucket = h % table.bucket_count
    path: List[Dict[str, Any]] = []
    found = False
    for pos, item in enumerate(table.chain(bucket)):
        matches = table.matches(key, item)
        path.append(
            {
                "position": pos,
                "key_repr": repr(item.key),
                "cached_hash": item.hash,
                "matches": matches,
            }
        )
        if matches:
            found = True
            break
    return {
        "operation": "retrieve",
        "mode": table.mode,
        "key_repr": repr(key),
        "hash": h,
        "bucket": bucket,
        "found": found,
        "terminal": "match" if found else "end-of-chain",
        "path": path,
    }


def trace_insert(table: ChainedHashTable, key: Any) -> ChainTrace:
    """Describe where ``key`` would be linked, without inserting it."""

    trace = trace_retrieve(table, key)
    chain_len = sum(1 for _ in table.chain(trace["bucket"]))
    trace.update(
        {
            "operation": "insert",
            "chain_length": chain_len,
            "terminal": "shadow-duplicate" if trace["found"] else "new-head",
        }
    )
    return trace


def format_trace_lines(trace: Dict[str, Any]) -> List[str]:
    """Return a human-friendly rendering of a chain trace."""

    lines: List[str] = []
    operation = trace.get("operation", "?")
    lines.append(f"Chain walk [{trace.get('mode', '?')}] {operation.upper()} key={trace.get('key_repr', '?')}")
    lines.append(f"Bucket: {trace.get('bucket')} | Hash: {trace.get('hash', 0):#018x}")
    lines.append(f"Found: {trace.get('found')} | Terminal: {trace.get('terminal')}")
    lines.append("Steps:")
    path = trace.get("path")
    if not isinstance(path, list) or not path:
        lines.append("  (empty chain)")
        return lines
    for step in path:
        if not isinstance(step, dict):
            lines.append(f"  {step!r}")
            continue
        attrs: List[str] = []
        for key in ("key_repr", "cached_hash", "matches"):
            if key in step:
                value = step[key]
                if isinstance(value, bool):
                    value = str(value).lower()
                attrs.append(f"{key}={value}")
        lines.append(f"  Entry {step.get('position', '?')}: " + ", ".join(attrs))
    return lines


__all__ = ["ChainTrace", "format_trace_lines", "trace_insert", "trace_retrieve"]
