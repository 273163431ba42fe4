"""Bounded list keeping the largest items, ordered by size descending."""

from __future__ import annotations

from bisect import bisect_left
from typing import Any, Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


def _default_size(item: Any) -> int:
    return item.size


class TopList(Generic[T]):
    """Keeps at most ``capacity`` items with the largest sizes.

    Items of equal size are ordered newest first.
    """

    def __init__(self, capacity: int, key: Callable[[T], int] | None = None) -> None:
        self.capacity = capacity
        self._key = key or _default_size
        self._items: list[T] = []
        self._neg_sizes: list[int] = []

    def add(self, item: T) -> None:
        """Insert ``item`` in place and drop anything beyond the capacity."""
        neg = -self._key(item)
        index = bisect_left(self._neg_sizes, neg)
        self._neg_sizes.insert(index, neg)
        self._items.insert(index, item)
        if len(self._items) > self.capacity:
            del self._items[self.capacity:]
            del self._neg_sizes[self.capacity:]

    @property
    def items(self) -> list[T]:
        """The retained items, largest first."""
        return list(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)