# zkit

Small, dependency-free building blocks for systems-style Python code.

## Contents

- `zkit.core`
  - `Closer` tells workers to shut down and waits for them to finish.
  - `key_to_hash` turns an int, str or bytes key into a
    `(hash, conflict hash)` pair.
  - `xxhash64` is a 64-bit XXH64 digest.
  - `mem_hash` and `mem_hash_string` are in-process hashes whose seed changes
    with every process.
  - `zero_out` and `memclr` zero bytes in a writable buffer.
  - `calloc`, `free`, `num_alloc_bytes` and `leaks` track allocations.
  - `nano_time` and `fast_rand` are small helpers, and `set_tmp_dir` and
    `tmp_dir` record a directory for temporary files.
- `zkit.search` searches interleaved key/value word lists, where keys sit at
  the even positions. It returns the index of the first key that is at least
  `k`, or the number of keys if there is none. It offers `search`, `naive`,
  `clever`, `binary` and `parallel`. `parallel` raises `RuntimeError` on
  machines with an odd CPU count.
- `zkit.node` provides `Node`, one fixed-size page of sorted 64-bit
  key/value pairs laid out over 64-bit words. It can search, get, set and
  compact the page and shift its entries right. It also holds a page id and
  flag bits such as `BIT_LEAF`.
- `zkit.mmapfile` provides `MmapFile`, a memory-mapped file. It can return
  views of its bytes, store length-prefixed slices, sync, truncate and remap,
  close, and delete. The module also has `open_mmap_file`,
  `open_mmap_file_using` and `sync_dir`. When opening creates the file, the
  open functions raise `NewFile`, and the mapped file is attached as
  `exc.mmap_file`.
- `zkit.histogram` provides `HistogramData`, which counts samples into
  buckets and reports the mean and percentiles. The module also has
  `histogram_bounds`, `fibonacci` and `ibytes`.
- `zkit.flags` handles option strings of the form `key=value; key=value`.
  - `SuperFlag` reads typed values from them and merges in defaults.
  - `SuperFlagHelp` builds help text.
  - `parse_flag` and `expand_path` are also available.
  - Parse errors raise `SuperFlagError`, a `ValueError`.

## Installing

```
pip install .
```

## Examples

```python
from zkit.node import BIT_LEAF, Node

page = Node(bytearray(4096))   # 512 words, up to 255 keys
page.set_bit(BIT_LEAF)
page.set(5, 50)
page.set(3, 30)
assert page.get(5) == 50
assert page.get(4) == 0
assert [k for _, k, _ in page.iterate()] == [3, 5]
```

```python
from zkit.search import search

assert search([1, 0, 5, 0, 9, 0], 4) == 1
```

```python
from datetime import timedelta
from zkit.flags import SuperFlag

sf = SuperFlag("cache_mb=64; ttl=12h;")
sf.merge_and_check_default("cache-mb=0; ttl=; enabled=true;")
assert sf.get_int64("cache-mb") == 64
assert sf.get_bool("enabled") is True
assert sf.get_duration("ttl") == timedelta(hours=12)
```

```python
import threading
from zkit.core import Closer

closer = Closer(1)

def worker():
    closer.has_been_closed().wait()
    closer.done()

threading.Thread(target=worker).start()
assert closer.signal_and_wait()
```

## What it does not do

`Node` manages a single page only. The package has no multi-page tree that
allocates, splits and links pages, and it has no tree stored on disk.

There is also no growable byte buffer that allocates, iterates or sorts
length-prefixed slices. `MmapFile.allocate_slice` grows a mapped file, but it
keeps no offsets of its own.

## Running the tests

```
pip install .[test]
pytest
```