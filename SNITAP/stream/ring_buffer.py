"""
Ring Buffer Module - Bounded in-memory window of recent events

Handles:
- Fixed-capacity FIFO retention (oldest evicted first)
- Ordered snapshots for the filter/sort/render passes
- Version counter so downstream stages can memoize on buffer content
"""
import threading
from collections import deque
from typing import Deque, Generic, Iterable, Tuple, TypeVar


T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Thread-safe fixed-size buffer retaining the most recent items"""

    def __init__(self, capacity: int = 1000):
        """
        Initialize the buffer

        Args:
            capacity: Maximum number of retained items
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")

        self._capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

        self._version = 0
        self._total_pushed = 0
        self._evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def version(self) -> int:
        """Incremented on every push and clear"""
        return self._version

    @property
    def total_pushed(self) -> int:
        return self._total_pushed

    @property
    def evicted(self) -> int:
        return self._evicted

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: T) -> None:
        """Append an item, evicting the oldest one when full"""
        with self._lock:
            if len(self._items) == self._capacity:
                self._evicted += 1
            self._items.append(item)
            self._total_pushed += 1
            self._version += 1

    def extend(self, items: Iterable[T]) -> None:
        """Append several items preserving their order"""
        for item in items:
            self.push(item)

    def clear(self) -> None:
        """Drop every retained item"""
        with self._lock:
            self._items.clear()
            self._version += 1

    def snapshot(self) -> Tuple[T, ...]:
        """Return the retained items, oldest first"""
        with self._lock:
            return tuple(self._items)
