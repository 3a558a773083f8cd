"""
Thread-safe data structures for the concurrent crawl pipeline.
"""

import queue
import threading
from typing import Iterator, List, Generic, TypeVar

from ironman_ranking.utils.errors import StreamClosedError


T = TypeVar("T")

_CLOSED = object()


class ClosableQueue(Generic[T]):
    """
    Multi-producer, single-consumer stream that is closed exactly once.

    Producers call ``put``; the owner calls ``close`` once every producer
    has finished. Iterating the queue yields items until it is closed and
    drained.
    """

    def __init__(self):
        # Unbounded, so put never blocks while holding the lock
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._put_count = 0
        self._get_count = 0

    def put(self, item: T) -> None:
        """
        Publish an item onto the stream.

        Raises:
            StreamClosedError: If the stream was already closed
        """
        with self._lock:
            if self._closed:
                raise StreamClosedError(
                    "Cannot put onto a closed stream",
                    {"put_count": self._put_count}
                )
            self._put_count += 1
            self._queue.put(item)

    def close(self) -> None:
        """
        Close the stream so consumers stop after draining.

        Raises:
            StreamClosedError: If the stream was already closed
        """
        with self._lock:
            if self._closed:
                raise StreamClosedError("Stream already closed")
            self._closed = True
            self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                # Leave the marker for any other iterator
                self._queue.put(_CLOSED)
                return
            with self._lock:
                self._get_count += 1
            yield item

    def get_stats(self) -> dict:
        """Get stream statistics."""
        with self._lock:
            return {
                "closed": self._closed,
                "put_count": self._put_count,
                "get_count": self._get_count,
                "pending_items": self._put_count - self._get_count
            }


class ThreadSafeList(Generic[T]):
    """Append-only list shared by concurrent writers."""

    def __init__(self):
        self._items: List[T] = []
        self._lock = threading.Lock()

    def append(self, item: T) -> None:
        """Append item while holding the lock."""
        with self._lock:
            self._items.append(item)

    def snapshot(self) -> List[T]:
        """Return a copy of the current items in insertion order."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())
