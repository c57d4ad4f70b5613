"""Producers and consumers that pass values between pipeline stages."""

from __future__ import annotations

import queue
from collections import deque
from typing import Any, Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")

_DONE = object()


class ListConsumer(Generic[T]):
    """Collects consumed values in a list."""

    def __init__(self) -> None:
        self._items: list[T] = []

    def consume(self, value: T) -> None:
        self._items.append(value)

    def collect(self) -> list[T]:
        return self._items


class QueueConsumer(Generic[T]):
    """Puts consumed values on a queue; ``close`` marks the end of the stream."""

    def __init__(self, q: "queue.Queue[Any]") -> None:
        self._queue = q

    def consume(self, value: T) -> None:
        self._queue.put(value)

    def close(self) -> None:
        self._queue.put(_DONE)


class ListProducer(Generic[T]):
    """Hands out the items of a sequence one at a time, front first."""

    def __init__(self, items: Iterable[T]) -> None:
        self._items = deque(items)

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if not self._items:
            raise StopIteration
        return self._items.popleft()


class QueueProducer(Generic[T]):
    """Yields values from a queue until a :class:`QueueConsumer` closes it.

    A producer built with no queue yields nothing.
    """

    def __init__(self, q: "queue.Queue[Any] | None") -> None:
        self._queue = q
        self._finished = q is None

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if self._finished:
            raise StopIteration
        value = self._queue.get()
        if value is _DONE:
            self._finished = True
            raise StopIteration
        return value