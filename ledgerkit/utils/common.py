"""Small sequence helpers shared by the query builders."""

from __future__ import annotations

from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")

__all__ = ["chunk", "zip_map"]


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split `items` into consecutive lists of at most `size` elements.

    Concatenating the chunks gives back `items` in its original order.
    """
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def zip_map(
    left: Sequence[T],
    right: Sequence[U],
    fn: Callable[[T, U], R],
) -> List[R]:
    """Pairwise map over two sequences of equal length."""
    if len(left) != len(right):
        raise ValueError(f"length mismatch: {len(left)} != {len(right)}")
    return [fn(a, b) for a, b in zip(left, right)]
