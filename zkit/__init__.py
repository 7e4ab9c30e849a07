"""Key hashing, a shutdown closer, key search, B+ tree pages, mmap files, histograms and option flags."""

__version__ = "0.1.0"
__all__ = ["core", "search", "node", "mmapfile", "histogram", "flags"]