import random
import struct

import pytest

from zkit.node import BIT_LEAF, Node

PAGE_SIZE = 4096


def new_node(page_size=PAGE_SIZE):
    return Node([0] * (page_size // 8))


def test_max_keys_follows_page_size():
    assert new_node().max_keys == 255
    assert new_node(16 * 5).max_keys == 4


def test_node_set_get_and_bits():
    n = new_node()
    i = 1
    while i < 16:
        n.set(i, i)
        i *= 2
    assert n.get(5) == 0
    n.set(5, 5)
    assert n.get(5) == 5
    assert [k for _, k, _ in n.iterate()] == [1, 2, 4, 5, 8]

    n.set_bit(0)
    assert not n.is_leaf()
    n.set_bit(BIT_LEAF)
    assert n.is_leaf()
    assert n.num_keys() == 5


def test_node_basic_random():
    rng = random.Random(7)
    n = new_node()
    expected = {}
    for _ in range(1, 256):
        key = rng.randrange(1 << 60) + 1
        n.set(key, key)
        expected[key] = key
    for k, v in expected.items():
        assert n.get(k) == v
    assert n.num_keys() == len(expected)


def test_node_move_right():
    n = new_node()
    for i in range(1, 10):
        n.set(i, i)
    n.move_right(5)
    seen = list(n.iterate())
    assert len(seen) == 10
    for i, k, v in seen:
        if i < 5:
            assert (k, v) == (i + 1, i + 1)
        elif i > 5:
            assert (k, v) == (i, i)


def test_node_compact():
    n = new_node()
    n.set_bit(BIT_LEAF)
    expected = {}
    for key in range(1, 128):
        val = 10
        if key % 2 == 0:
            val = 20
            expected[key] = 20
        n.set(key, val)

    assert n.compact(11) == 64
    for k, v in expected.items():
        assert n.get(k) == v
    assert n.max_key() == 127
    assert n.is_leaf()


def test_compact_only_max_key_below_lo_returns_zero():
    n = new_node()
    n.set(5, 1)
    n.set(9, 1)
    assert n.compact(2) == 0
    assert n.num_keys() == 1
    assert n.key(0) == 9


def test_update_existing_key_does_not_add():
    n = new_node()
    assert n.set(3, 30) == 1
    assert n.set(3, 31) == 0
    assert n.get(3) == 31
    assert n.num_keys() == 1


def test_search_linear_and_unrolled():
    n = new_node()
    for k in (10, 20, 30, 40, 50):
        n.set(k, k)
    assert n.search(10) == 0
    assert n.search(25) == 2
    assert n.search(60) == 5
    small = new_node()
    small.set(10, 1)
    small.set(20, 2)
    assert small.search(15) == 1
    assert small.search(30) == 2


def test_num_keys_and_bits_are_independent():
    n = new_node()
    n.set_bit(BIT_LEAF)
    n.set_num_keys(7)
    assert n.num_keys() == 7
    assert n.bits() == BIT_LEAF
    n.set_bit(0)
    assert n.num_keys() == 7
    assert n.bits() == 0


def test_full_node():
    n = new_node(16 * 5)
    for k in range(1, 5):
        n.set(k, k * 10)
    assert n.is_full()
    assert n.set(2, 99) == 0
    assert n.get(2) == 99
    with pytest.raises(RuntimeError):
        n.set(5, 5)
    with pytest.raises(RuntimeError):
        n.move_right(0)


def test_describe_truncates_keys():
    n = new_node()
    for k in range(1, 11):
        n.set(k, k)
    assert n.describe(7) == "0 Child of: 7 num keys: 10 keys: 1 2 3 ... 7 8 9 10"


def test_describe_short():
    n = new_node()
    n.set(4, 1)
    n.set(2, 1)
    assert n.describe(0) == "0 Child of: 0 num keys: 2 keys: 2 4"


def test_bytearray_backed_node_writes_through():
    raw = bytearray(PAGE_SIZE)
    n = Node(raw)
    assert n.max_keys == 255
    n.set(42, 7)
    assert struct.unpack_from("=QQ", raw, 0) == (42, 7)
    assert n.get(42) == 7


def test_invalid_word_count():
    with pytest.raises(ValueError):
        Node([0] * 5)
    with pytest.raises(ValueError):
        Node([0] * 2)