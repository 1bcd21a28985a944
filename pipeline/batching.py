"""Batch scheduler shared by the scoring and grouping passes."""
from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")

SCORING_BATCH_SIZE = 10
GROUPING_BATCH_SIZE = 20


def batches(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive, non-overlapping slices of `items` in input order.

    Every slice has `size` items except possibly the last, which is shorter.
    """
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def batch_count(item_count: int, size: int) -> int:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return -(-item_count // size)
