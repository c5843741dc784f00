from __future__ import annotations

from abc import ABC, abstractmethod


class StateStoreInterface(ABC):
    """Durable integer counters with an atomic increment-and-read.

    When *delivery_id* is passed to incr(), the store remembers that the
    delivery was applied to *key* in the same atomic step as the increment.
    A second incr() with the same (key, delivery_id) leaves the counter
    untouched and returns its current value.
    """

    @abstractmethod
    def incr(self, key: str, by: int = 1, delivery_id: str | None = None) -> int:
        """Atomically add *by* to the counter at *key* and return the new value."""
        ...

    @abstractmethod
    def get(self, key: str) -> int:
        """Current counter value; 0 for a key never incremented."""
        ...

    @abstractmethod
    def health_check(self) -> bool: ...
