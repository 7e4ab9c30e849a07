"""Bucketed histograms of integer samples."""

from __future__ import annotations

from dataclasses import dataclass, field

MAX_INT64 = (1 << 63) - 1

_IEC_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def ibytes(size: int) -> str:
    """Human-readable size using powers of 1024, e.g. 82854982 -> '79 MiB'."""
    if size < 10:
        return f"{size} B"
    exp = 0
    while exp < len(_IEC_SUFFIXES) - 1 and size >= 1024 ** (exp + 1):
        exp += 1
    val = int(size / 1024**exp * 10 + 0.5) / 10
    if val < 10:
        return f"{val:.1f} {_IEC_SUFFIXES[exp]}"
    return f"{val:.0f} {_IEC_SUFFIXES[exp]}"


def histogram_bounds(min_exponent: int, max_exponent: int) -> list[float]:
    """Bounds that are the powers of two from 2**min_exponent to 2**max_exponent."""
    return [float(1 << i) for i in range(min_exponent, max_exponent + 1)]


def fibonacci(num: int) -> list[float]:
    """The first num bounds of the sequence 1, 2, 3, 5, 8, ...; num must exceed 4."""
    if num <= 4:
        raise ValueError(f"fibonacci needs more than 4 bounds, got {num}")
    bounds = [1.0, 2.0]
    while len(bounds) < num:
        bounds.append(bounds[-1] + bounds[-2])
    return bounds


@dataclass
class HistogramData:
    """Counts of samples per bucket, plus their count, sum, minimum and maximum.

    Bucket i holds samples below bounds[i] (and at or above bounds[i-1]); the
    last bucket holds everything at or above the last bound.
    """

    bounds: list[float]
    count: int = 0
    count_per_bucket: list[int] = field(default_factory=list)
    min: int = MAX_INT64
    max: int = 0
    sum: int = 0

    def __init__(self, bounds: list[float]) -> None:
        self.bounds = list(bounds)
        self.count = 0
        self.count_per_bucket = [0] * (len(self.bounds) + 1)
        self.min = MAX_INT64
        self.max = 0
        self.sum = 0

    def copy(self) -> HistogramData:
        """An independent copy of the histogram."""
        other = HistogramData(self.bounds)
        other.count_per_bucket = list(self.count_per_bucket)
        other.count = self.count
        other.min = self.min
        other.max = self.max
        other.sum = self.sum
        return other

    def update(self, value: int) -> None:
        """Record one sample."""
        self.max = max(self.max, value)
        self.min = min(self.min, value)
        self.sum += value
        self.count += 1
        bucket = next(
            (i for i, bound in enumerate(self.bounds) if value < int(bound)),
            len(self.bounds),
        )
        self.count_per_bucket[bucket] += 1

    def mean(self) -> float:
        """Mean of the recorded samples, 0 if there are none."""
        if self.count == 0:
            return 0.0
        return self.sum / self.count

    def percentile(self, p: float) -> float:
        """Upper bound of the bucket holding the p-th fraction (0.0 to 1.0) of samples."""
        if self.count == 0:
            return self.bounds[0]
        pval = int(self.count * p)
        for i, n in enumerate(self.count_per_bucket):
            pval -= n
            if pval <= 0:
                if i == len(self.bounds):
                    break
                return self.bounds[i]
        return self.bounds[-1]

    def clear(self) -> None:
        """Forget every recorded sample."""
        self.count = 0
        self.count_per_bucket = [0] * (len(self.bounds) + 1)
        self.sum = 0
        self.max = 0
        self.min = MAX_INT64

    def __str__(self) -> str:
        parts = [
            "\n -- Histogram: \n",
            f"Min value: {self.min} \n",
            f"Max value: {self.max} \n",
            f"Count: {self.count} \n",
            f"50p: {self.percentile(0.5):.2f} \n",
            f"75p: {self.percentile(0.75):.2f} \n",
            f"90p: {self.percentile(0.90):.2f} \n",
        ]
        last = len(self.count_per_bucket) - 1
        cum = 0.0
        for index, n in enumerate(self.count_per_bucket):
            if n == 0:
                continue
            page = n * 100 / self.count
            cum += page
            if index == last:
                lower = ibytes(int(self.bounds[-1]))
                parts.append(f"[{lower}, infinity) {n} {page:.2f}% {cum:.2f}%\n")
                continue
            upper = int(self.bounds[index])
            lower_bound = int(self.bounds[index - 1]) if index > 0 else 0
            parts.append(f"[{lower_bound}, {upper}) {n} {page:.2f}% {cum:.2f}%\n")
        parts.append(" --\n")
        return "".join(parts)