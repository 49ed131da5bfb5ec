"""Diagnostics for chained hash tables."""

from .chains import (
    TableStats,
    collect_chain_histogram,
    sample_stats,
    verify_invariants,
)
from .trace import format_trace_lines, trace_insert, trace_retrieve

__all__ = [
    "TableStats",
    "collect_chain_histogram",
    "format_trace_lines",
    "sample_stats",
    "trace_insert",
    "trace_retrieve",
    "verify_invariants",
]
