"""Runtime helpers: key hashing, tracked allocation, zeroing and a shutdown closer."""

from __future__ import annotations

import os
import random
import struct
import threading
import time
from dataclasses import dataclass

MAX_ARRAY_LEN = (1 << 50) - 1
MAX_BUFFER_SIZE = 256 << 30

_MASK64 = (1 << 64) - 1

_P1 = 11400714785074694791
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261

# Per-process seed: mem_hash values are not stable across processes.
_MEM_SEED = int.from_bytes(os.urandom(8), "little")

_tmp_dir: str | None = None


def _rotl(x: int, r: int) -> int:
    return ((x << r) | (x >> (64 - r))) & _MASK64


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK64
    acc = _rotl(acc, 31)
    return (acc * _P1) & _MASK64


def _merge(acc: int, val: int) -> int:
    acc ^= _round(0, val)
    return (acc * _P1 + _P4) & _MASK64


def xxhash64(data: bytes | bytearray | memoryview | str, seed: int = 0) -> int:
    """Return the 64-bit XXH64 digest of data."""
    buf = data.encode() if isinstance(data, str) else bytes(data)
    n = len(buf)
    seed &= _MASK64
    pos = 0
    if n >= 32:
        v1 = (seed + _P1 + _P2) & _MASK64
        v2 = (seed + _P2) & _MASK64
        v3 = seed
        v4 = (seed - _P1) & _MASK64
        limit = n - n % 32
        for a, b, c, d in struct.iter_unpack("<4Q", buf[:limit]):
            v1 = _round(v1, a)
            v2 = _round(v2, b)
            v3 = _round(v3, c)
            v4 = _round(v4, d)
        h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK64
        for v in (v1, v2, v3, v4):
            h = _merge(h, v)
        pos = limit
    else:
        h = (seed + _P5) & _MASK64

    h = (h + n) & _MASK64
    while pos + 8 <= n:
        (lane,) = struct.unpack_from("<Q", buf, pos)
        h ^= _round(0, lane)
        h = (_rotl(h, 27) * _P1 + _P4) & _MASK64
        pos += 8
    if pos + 4 <= n:
        (lane,) = struct.unpack_from("<I", buf, pos)
        h ^= (lane * _P1) & _MASK64
        h = (_rotl(h, 23) * _P2 + _P3) & _MASK64
        pos += 4
    for byte in buf[pos:]:
        h ^= (byte * _P5) & _MASK64
        h = (_rotl(h, 11) * _P1) & _MASK64

    h ^= h >> 33
    h = (h * _P2) & _MASK64
    h ^= h >> 29
    h = (h * _P3) & _MASK64
    h ^= h >> 32
    return h


def mem_hash(data: bytes | bytearray | memoryview) -> int:
    """Fast in-process hash of data; the seed changes for every process."""
    return xxhash64(data, _MEM_SEED)


def mem_hash_string(s: str) -> int:
    """Fast in-process hash of a string; equal to mem_hash of its UTF-8 bytes."""
    return mem_hash(s.encode())


def key_to_hash(key: int | str | bytes | bytearray | memoryview) -> tuple[int, int]:
    """Return the (key hash, conflict hash) pair for a cache key."""
    if isinstance(key, str):
        return mem_hash_string(key), xxhash64(key.encode())
    if isinstance(key, (bytes, bytearray, memoryview)):
        data = bytes(key)
        return mem_hash(data), xxhash64(data)
    if isinstance(key, int):
        if not -(1 << 63) <= key <= _MASK64:
            raise OverflowError(f"integer key out of 64-bit range: {key}")
        return key & _MASK64, 0
    raise TypeError(f"key type not supported: {type(key).__name__}")


def nano_time() -> int:
    """Current time in nanoseconds from a monotonic clock."""
    return time.monotonic_ns()


def fast_rand() -> int:
    """Random unsigned 32-bit integer."""
    return random.getrandbits(32)


def set_tmp_dir(dir: str | None) -> None:
    """Set the directory used for temporary buffers."""
    global _tmp_dir
    _tmp_dir = dir or None


def tmp_dir() -> str | None:
    """Directory used for temporary buffers, or None for the system default."""
    return _tmp_dir


def memclr(b: bytearray | memoryview) -> None:
    """Set every byte of a writable buffer to zero."""
    if len(b) == 0:
        return
    b[:] = bytes(len(b))


def zero_out(dst: bytearray | memoryview, start: int, end: int) -> None:
    """Zero the bytes of dst in [start, end); out-of-range requests are ignored."""
    if start < 0 or start >= len(dst):
        return
    end = min(end, len(dst))
    if end - start <= 0:
        return
    with memoryview(dst) as view, view[start:end] as part:
        memclr(part)


@dataclass
class _Allocation:
    buf: bytearray
    tag: str
    size: int


_alloc_lock = threading.Lock()
_allocations: dict[int, _Allocation] = {}
_num_bytes = 0


def calloc(n: int, tag: str = "") -> bytearray:
    """Allocate a zeroed buffer of n bytes, tracked until it is passed to free."""
    if n == 0:
        return bytearray()
    buf = bytearray(n)
    global _num_bytes
    with _alloc_lock:
        _allocations[id(buf)] = _Allocation(buf, tag, n)
        _num_bytes += n
    return buf


def free(b: bytearray) -> None:
    """Stop tracking a buffer returned by calloc; unknown buffers are ignored."""
    global _num_bytes
    with _alloc_lock:
        alloc = _allocations.get(id(b))
        if alloc is None or alloc.buf is not b:
            return
        del _allocations[id(b)]
        _num_bytes -= alloc.size


def num_alloc_bytes() -> int:
    """Number of bytes currently allocated through calloc and not yet freed."""
    with _alloc_lock:
        return _num_bytes


_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def _ibytes(size: int) -> str:
    if size < 10:
        return f"{size} B"
    exp = 0
    while exp < len(_SUFFIXES) - 1 and size >= 1024 ** (exp + 1):
        exp += 1
    val = int(size / 1024**exp * 10 + 0.5) / 10
    return f"{val:.1f} {_SUFFIXES[exp]}" if val < 10 else f"{val:.0f} {_SUFFIXES[exp]}"


def leaks() -> str:
    """Describe the allocations that have not been freed, grouped by tag."""
    with _alloc_lock:
        if not _allocations:
            return "NO leaks found."
        by_tag: dict[str, int] = {}
        for alloc in _allocations.values():
            by_tag[alloc.tag] = by_tag.get(alloc.tag, 0) + alloc.size
    lines = ["Allocations:\n"]
    lines.extend(f"{_ibytes(size)} at file: {tag}\n" for tag, size in sorted(by_tag.items()))
    return "".join(lines)


class Closer:
    """Tells workers to shut down and waits until they have all finished."""

    def __init__(self, initial: int = 0) -> None:
        self._cond = threading.Condition()
        self._count = 0
        self._closed = threading.Event()
        self.add_running(initial)

    def add_running(self, delta: int) -> None:
        """Add delta to the number of running workers."""
        with self._cond:
            count = self._count + delta
            if count < 0:
                raise ValueError("negative running count")
            self._count = count
            if count == 0:
                self._cond.notify_all()

    def has_been_closed(self) -> threading.Event:
        """Event that becomes set once signal has been called."""
        return self._closed

    def signal(self) -> None:
        """Ask the workers to shut down."""
        self._closed.set()

    def done(self) -> None:
        """Mark one worker as finished."""
        self.add_running(-1)

    def wait(self, timeout: float | None = None) -> bool:
        """Wait until every worker is done; False if the timeout ran out first."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)

    def signal_and_wait(self) -> bool:
        """Signal, then wait for every worker to finish."""
        self.signal()
        return self.wait()