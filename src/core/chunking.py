"""
Chunk addressing for multipart uploads.

A file of ``size`` bytes split into parts of ``part_size`` bytes has
``ceil(size / part_size)`` parts. Part ``i`` (zero-based) covers the
half-open byte range ``[i * part_size, min((i + 1) * part_size, size))``,
so every part but the last is exactly ``part_size`` long.
"""

from typing import Iterator, Tuple


def _check_sizes(size: int, part_size: int) -> None:
    if size <= 0:
        raise ValueError(f"size must be positive, got {size}")
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")


def part_count(size: int, part_size: int) -> int:
    """Number of parts needed to cover ``size`` bytes."""
    _check_sizes(size, part_size)
    return -(-size // part_size)


def part_range(index: int, size: int, part_size: int) -> Tuple[int, int]:
    """Return ``(start, end)`` byte offsets of part ``index``; ``end`` is exclusive."""
    count = part_count(size, part_size)
    if not 0 <= index < count:
        raise IndexError(f"part index {index} out of range [0, {count})")
    start = index * part_size
    return start, min(start + part_size, size)


def part_length(index: int, size: int, part_size: int) -> int:
    """Length in bytes of part ``index``."""
    start, end = part_range(index, size, part_size)
    return end - start


def last_part_length(size: int, part_size: int) -> int:
    """Length of the final, possibly short, part."""
    return size - (part_count(size, part_size) - 1) * part_size


def iter_part_ranges(size: int, part_size: int) -> Iterator[Tuple[int, int, int]]:
    """Yield ``(index, start, end)`` for every part in order."""
    for index in range(part_count(size, part_size)):
        start = index * part_size
        yield index, start, min(start + part_size, size)
