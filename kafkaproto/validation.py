"""Checks for the validity of data."""

from __future__ import annotations

from typing import Iterable, TypeVar

T = TypeVar("T")


class NotExactlyOneError(ValueError):
    """A collection expected to hold one item held ``count`` items."""

    def __init__(self, count: int) -> None:
        super().__init__(f"expected exactly one item, got {count}")
        self.count = count


def exactly_one(items: Iterable[T]) -> T:
    """Return the only item of ``items``; raise NotExactlyOneError otherwise."""
    collected = list(items)
    if len(collected) != 1:
        raise NotExactlyOneError(len(collected))
    return collected[0]