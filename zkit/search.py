"""Searches over interleaved key/value word lists for the first key >= k."""

from __future__ import annotations

import bisect
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor


def naive(xs: Sequence[int], k: int) -> int:
    """Scan the keys (even positions) for the first one >= k."""
    keys = xs[::2]
    return next((idx for idx, key in enumerate(keys) if key >= k), len(keys))


def clever(xs: Sequence[int], k: int) -> int:
    """Search four keys at a time; lists shorter than 8 words fall back to naive."""
    if len(xs) < 8:
        return naive(xs, k)
    for base in range(0, len(xs), 8):
        for off in (0, 2, 4, 6):
            if xs[base + off] >= k:
                return (base + off) // 2
    return len(xs) // 2


def _scan_chunk(head: int, chunk: Sequence[int], k: int) -> int | None:
    for local, word in enumerate(chunk[::2]):
        if word >= k:
            return (2 * local + head) // 2
    return None


def parallel(xs: Sequence[int], k: int) -> int:
    """Split the list into one chunk per CPU and scan the chunks concurrently."""
    cpus = os.cpu_count() or 1
    if cpus % 2 != 0:
        raise RuntimeError(f"odd number of CPUs {cpus}")
    size = len(xs) // cpus + 1
    starts = range(0, len(xs), size)
    with ThreadPoolExecutor(max_workers=cpus) as pool:
        results = pool.map(lambda start: _scan_chunk(start, xs[start : start + size], k), starts)
        found = [r for r in results if r is not None]
    return min(found) if found else len(xs) // 2


def binary(keys: Sequence[int], key: int) -> int:
    """Binary search for the first key >= key."""
    n = len(keys)
    return bisect.bisect_left(range(n), True, key=lambda i: i * 2 >= n or keys[i * 2] >= key)


def search(xs: Sequence[int], k: int) -> int:
    """Index of the first key >= k, or the number of keys if none is."""
    if len(xs) < 8 or len(xs) % 8 != 0:
        return naive(xs, k)
    return clever(xs, k)