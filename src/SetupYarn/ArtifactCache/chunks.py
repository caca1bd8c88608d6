"""Byte-range partitioning for chunked cache transfers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List


@dataclass(slots=True, frozen=True)
class ByteRange:
    """Half-open byte range ``[start, end)`` of a file."""

    start: int
    end: int

    @property
    def last(self) -> int:
        """Inclusive index of the final byte, as HTTP range headers expect."""

        return self.end - 1

    @property
    def length(self) -> int:
        return self.end - self.start

    def content_range(self) -> str:
        """``Content-Range`` value for uploading this range of an unknown-length body."""

        return f"bytes {self.start}-{self.last}/*"

    def range_header(self) -> str:
        """``Range`` value requesting exactly this range."""

        return f"bytes={self.start}-{self.last}"


def iter_byte_ranges(size: int, max_chunk_size: int) -> Iterator[ByteRange]:
    """Yield contiguous ranges of at most ``max_chunk_size`` bytes covering ``[0, size)``.

    Args:
        size: Total number of bytes to cover.
        max_chunk_size: Largest permitted range length.

    Raises:
        ValueError: If ``size`` is negative or ``max_chunk_size`` is below one.

    Examples:
        >>> [(r.start, r.end) for r in iter_byte_ranges(10, 4)]
        [(0, 4), (4, 8), (8, 10)]
    """

    if size < 0:
        raise ValueError(f"size must be non-negative, got {size}")
    if max_chunk_size < 1:
        raise ValueError(f"max_chunk_size must be at least 1, got {max_chunk_size}")
    for start in range(0, size, max_chunk_size):
        yield ByteRange(start, min(start + max_chunk_size, size))


def split_byte_ranges(size: int, max_chunk_size: int) -> List[ByteRange]:
    return list(iter_byte_ranges(size, max_chunk_size))


__all__ = ["ByteRange", "iter_byte_ranges", "split_byte_ranges"]
