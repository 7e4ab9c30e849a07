import threading

import pytest

from zkit.core import (
    Closer,
    calloc,
    fast_rand,
    free,
    key_to_hash,
    leaks,
    mem_hash,
    mem_hash_string,
    memclr,
    nano_time,
    num_alloc_bytes,
    set_tmp_dir,
    tmp_dir,
    xxhash64,
    zero_out,
)

MAX_UINT64 = (1 << 64) - 1


@pytest.mark.parametrize(
    "key, expected",
    [
        (1, (1, 0)),
        (2, (2, 0)),
        (-2, (MAX_UINT64 - 1, 0)),
        (3, (3, 0)),
        (MAX_UINT64, (MAX_UINT64, 0)),
    ],
)
def test_key_to_hash_integers(key, expected):
    assert key_to_hash(key) == expected


def test_key_to_hash_string():
    key, conflict = key_to_hash("abc")
    assert conflict == 0x44BC2CF5AD770999
    assert key == mem_hash(b"abc")


def test_key_to_hash_bytes_matches_string():
    assert key_to_hash(b"hello") == key_to_hash("hello")
    assert key_to_hash(bytearray(b"hello")) == key_to_hash("hello")


def test_key_to_hash_unsupported_type():
    with pytest.raises(TypeError):
        key_to_hash(1.5)


def test_key_to_hash_out_of_range():
    with pytest.raises(OverflowError):
        key_to_hash(1 << 64)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"", 0xEF46DB3751D8E999),
        (b"a", 0xD24EC4F1A98C6E5B),
        (b"abc", 0x44BC2CF5AD770999),
    ],
)
def test_xxhash64_vectors(data, expected):
    assert xxhash64(data) == expected


def test_xxhash64_seed_and_input_types():
    data = bytes(range(100))
    assert xxhash64(data, 1) != xxhash64(data, 0)
    assert xxhash64(bytearray(data)) == xxhash64(data)
    assert xxhash64(memoryview(data)) == xxhash64(data)
    assert xxhash64(data[:99]) != xxhash64(data)
    assert 0 <= xxhash64(data) <= MAX_UINT64


def test_mem_hash_consistency():
    assert mem_hash(b"lorem ipsum") == mem_hash(b"lorem ipsum")
    assert mem_hash_string("lorem ipsum") == mem_hash(b"lorem ipsum")
    assert mem_hash(b"lorem ipsum") != mem_hash(b"lorem ipsun")


def test_nano_time_monotonic():
    first = nano_time()
    second = nano_time()
    assert second >= first


def test_fast_rand_range():
    values = [fast_rand() for _ in range(100)]
    assert all(0 <= v < 1 << 32 for v in values)


def test_tmp_dir_roundtrip():
    previous = tmp_dir()
    try:
        set_tmp_dir("/some/dir")
        assert tmp_dir() == "/some/dir"
        set_tmp_dir("")
        assert tmp_dir() is None
    finally:
        set_tmp_dir(previous)


def test_zero_out():
    dst = bytearray(b"\xff" * 4096)

    zero_out(dst, 0, 1)
    assert dst[:1] == b"\x00"
    assert dst[1:] == b"\xff" * 4095

    zero_out(dst, 0, 1024)
    assert dst[:1024] == bytes(1024)
    assert dst[1024:] == b"\xff" * 3072

    zero_out(dst, 0, len(dst))
    assert dst == bytes(4096)


def test_zero_out_ignores_bad_ranges():
    dst = bytearray(b"\xff" * 8)
    zero_out(dst, -1, 4)
    zero_out(dst, 8, 10)
    zero_out(dst, 5, 3)
    assert dst == b"\xff" * 8
    zero_out(dst, 6, 100)
    assert dst == b"\xff" * 6 + b"\x00\x00"


def test_memclr():
    buf = bytearray(b"abcdef")
    memclr(memoryview(buf)[2:4])
    assert buf == b"ab\x00\x00ef"
    memclr(buf)
    assert buf == bytes(6)


def test_calloc_tracking():
    before = num_alloc_bytes()
    buf1 = calloc(128, "test")
    assert buf1 == bytes(128)
    assert num_alloc_bytes() == before + 128
    buf2 = calloc(128, "test")
    assert num_alloc_bytes() == before + 256
    free(buf1)
    assert num_alloc_bytes() == before + 128
    free(buf2)
    assert num_alloc_bytes() == before
    free(buf2)
    assert num_alloc_bytes() == before


def test_calloc_zero_and_untracked_free():
    before = num_alloc_bytes()
    assert calloc(0, "test") == bytearray()
    free(bytearray(10))
    assert num_alloc_bytes() == before


def test_leaks_reports_tag():
    buf = calloc(2048, "leaktest-tag")
    try:
        assert "2.0 KiB at file: leaktest-tag" in leaks()
    finally:
        free(buf)
    assert "leaktest-tag" not in leaks()


def test_multiple_signals():
    closer = Closer(0)
    closer.signal()
    closer.signal()
    assert closer.signal_and_wait() is True
    assert closer.has_been_closed().is_set()

    closer = Closer(1)
    closer.done()
    assert closer.signal_and_wait() is True
    assert closer.signal_and_wait() is True
    closer.signal()
    assert closer.has_been_closed().is_set()


def test_closer_with_worker():
    closer = Closer(1)
    seen = []

    def worker():
        try:
            closer.has_been_closed().wait()
            seen.append(True)
        finally:
            closer.done()

    thread = threading.Thread(target=worker)
    thread.start()
    assert closer.signal_and_wait() is True
    thread.join()
    assert seen == [True]


def test_closer_wait_timeout_and_add_running():
    closer = Closer(0)
    closer.add_running(2)
    assert closer.wait(0.01) is False
    closer.done()
    closer.done()
    assert closer.wait(0.01) is True


def test_closer_negative_count():
    closer = Closer(0)
    with pytest.raises(ValueError):
        closer.done()