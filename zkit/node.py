"""Fixed-size B+ tree pages holding sorted 64-bit key/value pairs.

A page is a sequence of 64-bit words. Entry i occupies words 2*i (key) and
2*i + 1 (value). The last two words hold the page id and the metadata word:
the top byte carries flag bits and the low 32 bits the number of keys.
"""

from __future__ import annotations

from array import array
from collections.abc import Iterator, MutableSequence

from zkit.search import search as _search_words

BIT_LEAF = 1 << 63

_BITS_MASK = 0xFF00000000000000
_NUM_KEYS_MASK = 0xFFFFFFFF
_HIGH_MASK = 0xFFFFFFFF00000000


def _as_words(words):
    if isinstance(words, (bytearray, memoryview)):
        view = memoryview(words)
        if view.format != "Q":
            view = view.cast("B").cast("Q")
        return view
    return words


class Node:
    """A view of one page of a B+ tree; changes write through to the words."""

    __slots__ = ("words", "max_keys")

    def __init__(self, words: MutableSequence[int] | bytearray | memoryview) -> None:
        words = _as_words(words)
        if len(words) < 4 or len(words) % 2:
            raise ValueError(f"a page needs an even number of at least 4 words, got {len(words)}")
        self.words = words
        self.max_keys = len(words) // 2 - 1

    # Raw word access, shared with the tree that owns the pages.

    def _word(self, idx: int) -> int:
        return self.words[idx]

    def _set_word(self, idx: int, value: int) -> None:
        self.words[idx] = value

    def _read_words(self, start: int, end: int) -> array:
        return array("Q", self.words[start:end])

    def _write_words(self, start: int, values: array) -> None:
        self.words[start : start + len(values)] = values

    def _zero_words(self, start: int, end: int) -> None:
        if end > start:
            self.words[start:end] = array("Q", [0]) * (end - start)

    def _set_key(self, i: int, k: int) -> None:
        self.words[2 * i] = k

    def _set_val(self, i: int, v: int) -> None:
        self.words[2 * i + 1] = v

    def _set_page_id(self, pid: int) -> None:
        self.words[2 * self.max_keys] = pid

    @property
    def _meta_index(self) -> int:
        return 2 * self.max_keys + 1

    # Page layout.

    def key(self, i: int) -> int:
        """Key of entry i."""
        return self.words[2 * i]

    def val(self, i: int) -> int:
        """Value of entry i."""
        return self.words[2 * i + 1]

    def num_keys(self) -> int:
        """Number of keys stored in the page."""
        return self.words[self._meta_index] & _NUM_KEYS_MASK

    def page_id(self) -> int:
        """Id of the page; 0 if it was never assigned."""
        return self.words[2 * self.max_keys]

    def set_num_keys(self, num: int) -> None:
        """Store the key count, keeping the flag bits."""
        idx = self._meta_index
        self.words[idx] = (self.words[idx] & _HIGH_MASK) | num

    def set_bit(self, b: int) -> None:
        """Replace the flag bits with b, keeping the key count."""
        idx = self._meta_index
        self.words[idx] = (self.words[idx] & _NUM_KEYS_MASK) | b

    def bits(self) -> int:
        """Flag bits of the page."""
        return self.words[self._meta_index] & _BITS_MASK

    def is_leaf(self) -> bool:
        return self.bits() & BIT_LEAF > 0

    def is_full(self) -> bool:
        return self.num_keys() == self.max_keys

    # Entry operations.

    def search(self, k: int) -> int:
        """Index of the smallest key >= k, or the number of keys if there is none."""
        n = self.num_keys()
        if n < 4:
            return next((i for i in range(n) if self.key(i) >= k), n)
        return _search_words(self.words[: 2 * n], k)

    def max_key(self) -> int:
        """Largest key in the page (key 0 for an empty page)."""
        idx = self.num_keys()
        if idx > 0:
            idx -= 1
        return self.key(idx)

    def compact(self, lo: int) -> int:
        """Drop entries whose value is below lo, except the max key.

        Returns the number of keys left, or 0 when only the max key is left and
        its value is below lo, meaning the page can be dropped.
        """
        n = self.num_keys()
        mk = self.max_key()
        left = 0
        for right in range(n):
            if self.val(right) < lo and self.key(right) < mk:
                continue
            if left != right:
                self._write_words(2 * left, self._read_words(2 * right, 2 * right + 2))
            left += 1
        self._zero_words(2 * left, 2 * n)
        self.set_num_keys(left)
        if left == 1 and self.key(0) == mk and self.val(0) < lo:
            return 0
        return left

    def get(self, k: int) -> int:
        """Value stored for k, or 0 if k is not in the page."""
        idx = self.search(k)
        if idx == self.num_keys():
            return 0
        if self.key(idx) == k:
            return self.val(idx)
        return 0

    def set(self, k: int, v: int) -> int:
        """Insert or update k; return 1 if a new key was added, else 0."""
        idx = self.search(k)
        ki = self.key(idx)
        if self.num_keys() == self.max_keys and ki != k:
            raise RuntimeError(f"page is full and key {k} is not present")
        if ki > k:
            self.move_right(idx)
        added = 0
        if ki != k:
            self.set_num_keys(self.num_keys() + 1)
            added = 1
        if ki == 0 or ki >= k:
            self._set_key(idx, k)
            self._set_val(idx, v)
            return added
        raise RuntimeError("page entries are out of order")

    def move_right(self, lo: int) -> None:
        """Shift entries lo..num_keys-1 one slot to the right."""
        hi = self.num_keys()
        if hi == self.max_keys:
            raise RuntimeError("cannot move entries right in a full page")
        self._write_words(2 * lo + 2, self._read_words(2 * lo, 2 * hi))

    def iterate(self) -> Iterator[tuple[int, int, int]]:
        """Yield (index, key, value) for entries up to the first zero key."""
        for i in range(self.max_keys):
            k = self.key(i)
            if k == 0:
                return
            yield i, k, self.val(i)

    def describe(self, parent_id: int) -> str:
        """One-line summary of the page, with at most eight keys shown."""
        keys = [str(k) for _, k, _ in self.iterate()]
        if len(keys) > 8:
            keys = keys[:3] + ["..."] + keys[-4:]
        return (
            f"{self.page_id()} Child of: {parent_id} "
            f"num keys: {self.num_keys()} keys: {' '.join(keys)}"
        )