from __future__ import annotations

import re
import threading
from collections import deque
from typing import Any

from scoreboard.services.message_queue.interface import (
    MessageQueueInterface,
    PublishError,
    QueueRecord,
)


class MemoryQueue(MessageQueueInterface):
    """In-memory message queue for unit testing.

    Every topic is a single partition with its own offsets. Pattern
    subscriptions read through a shared cursor (like one consumer group),
    while consume_one() gives tests an independent reader per topic.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._log: dict[str, list[QueueRecord]] = {}
        self._readers: dict[str, deque[QueueRecord]] = {}
        self._patterns: list[re.Pattern[str]] = []
        self._pending: deque[QueueRecord] = deque()
        self.committed: dict[tuple[str, int], int] = {}
        self.fail_publishes = False

    def publish(self, topic: str, message: Any, key: str | None = None) -> None:
        with self._lock:
            if self.fail_publishes:
                raise PublishError(f"publish to '{topic}' rejected")
            log = self._log.setdefault(topic, [])
            record = QueueRecord(topic=topic, value=message, key=key, offset=len(log))
            log.append(record)
            self._readers.setdefault(topic, deque()).append(record)
            if self._matches(topic):
                self._pending.append(record)

    def subscribe_pattern(self, pattern: str) -> None:
        compiled = re.compile(pattern)
        with self._lock:
            self._patterns.append(compiled)
            # Offset reset "earliest": replay what was published before subscribing
            for topic, records in self._log.items():
                if compiled.fullmatch(topic) and not any(
                    p.fullmatch(topic) for p in self._patterns[:-1]
                ):
                    self._pending.extend(records)

    def consume_record(self) -> QueueRecord | None:
        with self._lock:
            if self._pending:
                return self._pending.popleft()
        return None

    def commit(self, record: QueueRecord) -> None:
        self.committed[(record.topic, record.partition)] = record.offset + 1

    def redeliver(self, record: QueueRecord) -> None:
        with self._lock:
            self._pending.appendleft(record)

    def consume_one(self, topic: str) -> Any | None:
        """Pop the next value published to *topic*, independent of subscriptions."""
        with self._lock:
            q = self._readers.get(topic)
            if q:
                return q.popleft().value
        return None

    def published(self, topic: str) -> list[QueueRecord]:
        """Every record ever published to *topic*, in offset order."""
        return list(self._log.get(topic, []))

    def health_check(self) -> bool:
        return True

    def _matches(self, topic: str) -> bool:
        return any(p.fullmatch(topic) for p in self._patterns)
