"""Memory-mapped files with length-prefixed slice allocation."""

from __future__ import annotations

import io
import mmap
import os
import struct
from typing import BinaryIO

_ONE_GB = 1 << 30
_LEN_PREFIX = struct.Struct(">I")


class NewFile(Exception):
    """Raised when opening created a new file; the mapped file is attached."""

    def __init__(self, mmap_file: MmapFile) -> None:
        super().__init__("Create a new file")
        self.mmap_file = mmap_file


def _mmap(fd: BinaryIO, writable: bool, size: int) -> mmap.mmap:
    access = mmap.ACCESS_WRITE if writable else mmap.ACCESS_READ
    try:
        return mmap.mmap(fd.fileno(), size, access=access)
    except ValueError as exc:
        raise OSError(f"while mmapping {fd.name} with size: {size}: {exc}") from exc


class _MmapReader(io.RawIOBase):
    """Sequential reader over mapped data starting at an offset."""

    def __init__(self, data: mmap.mmap | bytearray, offset: int) -> None:
        super().__init__()
        self._data = data
        self._offset = offset

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self._offset > len(self._data):
            return 0
        n = min(len(b), len(self._data) - self._offset)
        b[:n] = self._data[self._offset : self._offset + n]
        self._offset += n
        return n


class MmapFile:
    """A memory-mapped file: the mapped data and the file it comes from."""

    def __init__(self, data: mmap.mmap | bytearray, fd: BinaryIO | None = None) -> None:
        self.data = data
        self.fd = fd

    def __enter__(self) -> MmapFile:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close(-1)

    @property
    def _name(self) -> str:
        return str(getattr(self.fd, "name", ""))

    def _unmap(self) -> None:
        if isinstance(self.data, mmap.mmap):
            try:
                self.data.close()
            except BufferError as exc:
                raise OSError(f"while munmap file: {self._name}, error: {exc}") from exc

    def new_reader(self, offset: int) -> io.RawIOBase:
        """Return a reader over the data from offset to the end."""
        return _MmapReader(self.data, offset)

    def bytes(self, off: int, sz: int) -> memoryview:
        """Return a view of sz bytes at off; raise EOFError if there are not enough."""
        if len(self.data) - off < sz:
            raise EOFError(f"cannot read {sz} bytes at offset {off}")
        return memoryview(self.data)[off : off + sz]

    def slice(self, offset: int) -> memoryview:
        """Return the length-prefixed slice stored at offset, or an empty view."""
        (sz,) = _LEN_PREFIX.unpack_from(self.data, offset)
        start = offset + _LEN_PREFIX.size
        end = start + sz
        if end > len(self.data):
            return memoryview(b"")
        return memoryview(self.data)[start:end]

    def allocate_slice(self, sz: int, offset: int) -> tuple[memoryview, int]:
        """Write a length prefix at offset and return a view of sz bytes and the next offset."""
        start = offset + _LEN_PREFIX.size
        if start + sz > len(self.data):
            grow_by = min(len(self.data), _ONE_GB)
            grow_by = max(grow_by, sz + _LEN_PREFIX.size)
            self.truncate(len(self.data) + grow_by)
        self.data[offset:start] = _LEN_PREFIX.pack(sz & 0xFFFFFFFF)
        return memoryview(self.data)[start : start + sz], start + sz

    def sync(self) -> None:
        """Flush modified mapped data to the file."""
        if isinstance(self.data, mmap.mmap) and not self.data.closed:
            self.data.flush()

    def delete(self) -> None:
        """Unmap, empty, close and remove the file."""
        if self.fd is None:
            return
        name = self._name
        self._unmap()
        self.data = bytearray()
        try:
            os.ftruncate(self.fd.fileno(), 0)
        except OSError as exc:
            raise OSError(f"while truncate file: {name}, error: {exc}") from exc
        self.fd.close()
        os.remove(name)

    def close(self, max_sz: int = -1) -> None:
        """Sync, unmap and close the file, truncating it to max_sz if max_sz >= 0."""
        if self.fd is None:
            return
        name = self._name
        try:
            self.sync()
        except OSError as exc:
            raise OSError(f"while sync file: {name}, error: {exc}") from exc
        self._unmap()
        if max_sz >= 0:
            try:
                os.ftruncate(self.fd.fileno(), max_sz)
            except OSError as exc:
                raise OSError(f"while truncate file: {name}, error: {exc}") from exc
        self.fd.close()

    def truncate(self, max_sz: int) -> None:
        """Resize the file to max_sz and map it again at the new size."""
        name = self._name
        try:
            self.sync()
        except OSError as exc:
            raise OSError(f"while sync file: {name}, error: {exc}") from exc
        self._unmap()
        try:
            os.ftruncate(self.fd.fileno(), max_sz)
        except OSError as exc:
            raise OSError(f"while truncate file: {name}, error: {exc}") from exc
        self.data = _mmap(self.fd, True, max_sz)


def open_mmap_file_using(fd: BinaryIO, sz: int, writable: bool) -> MmapFile:
    """Map an open file; an empty file is first grown to sz and NewFile is raised."""
    filename = fd.name
    try:
        file_size = os.fstat(fd.fileno()).st_size
    except OSError as exc:
        raise OSError(f"cannot stat file: {filename}: {exc}") from exc

    created = False
    if sz > 0 and file_size == 0:
        try:
            os.ftruncate(fd.fileno(), sz)
        except OSError as exc:
            raise OSError(f"error while truncation: {exc}") from exc
        file_size = sz
        created = True

    data = _mmap(fd, writable, file_size)
    mmap_file = MmapFile(data, fd)
    if created:
        raise NewFile(mmap_file)
    return mmap_file


def open_mmap_file(filename: str | os.PathLike, flag: int, max_sz: int) -> MmapFile:
    """Open or create a file with os.O_* flags and map it; see open_mmap_file_using."""
    try:
        raw = os.open(filename, flag, 0o666)
    except OSError as exc:
        raise OSError(exc.errno, f"unable to open: {filename}: {exc.strerror}") from exc
    writable = flag != os.O_RDONLY
    fd = os.fdopen(raw, "r+b" if writable else "rb")
    return open_mmap_file_using(fd, max_sz, writable)


def sync_dir(dir: str | os.PathLike) -> None:
    """Flush a directory's entries to disk."""
    path = dir or "."
    try:
        dfd = os.open(path, os.O_RDONLY)
    except OSError as exc:
        raise OSError(f"while opening {path}: {exc}") from exc
    try:
        os.fsync(dfd)
    except OSError as exc:
        raise OSError(f"while syncing {path}: {exc}") from exc
    finally:
        os.close(dfd)