from __future__ import annotations

import threading

from scoreboard.services.state.interface import StateStoreInterface


class MemoryStateStore(StateStoreInterface):
    """In-memory counter store for unit testing."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        # key -> delivery ids already applied to it
        self._applied: dict[str, set[str]] = {}

    def incr(self, key: str, by: int = 1, delivery_id: str | None = None) -> int:
        with self._lock:
            if delivery_id is not None:
                applied = self._applied.setdefault(key, set())
                if delivery_id in applied:
                    return self._counters.get(key, 0)
                applied.add(delivery_id)
            value = self._counters.get(key, 0) + by
            self._counters[key] = value
            return value

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def applied(self, key: str) -> set[str]:
        """Delivery ids recorded against *key*."""
        with self._lock:
            return set(self._applied.get(key, ()))

    def health_check(self) -> bool:
        return True
