from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class PublishError(Exception):
    """Raised when a message could not be handed to the broker."""


@dataclass(frozen=True)
class QueueRecord:
    """A consumed message together with where it came from."""

    topic: str
    value: Any
    key: str | None = None
    partition: int = 0
    offset: int = 0
    # Broker append time in ms, when the broker reports one
    timestamp: int | None = None

    @property
    def delivery_id(self) -> str:
        """Stable identity of this input message across redeliveries.

        The timestamp keeps ids apart when a deleted topic is recreated under
        the same name and its offsets start again from zero.
        """
        position = f"{self.topic}:{self.partition}:{self.offset}"
        if self.timestamp is None:
            return position
        return f"{position}@{self.timestamp}"


class MessageQueueInterface(ABC):
    """Pattern-subscribed consumption with explicit commits, plus keyed publishing."""

    @abstractmethod
    def publish(self, topic: str, message: Any, key: str | None = None) -> None:
        """Send *message* to *topic*. ``str`` values are sent as plain text.

        Raises PublishError when the broker does not accept the message.
        """
        ...

    @abstractmethod
    def subscribe_pattern(self, pattern: str) -> None:
        """Subscribe to every topic whose full name matches the regex *pattern*."""
        ...

    @abstractmethod
    def consume_record(self) -> QueueRecord | None:
        """Non-blocking: return the next record from subscribed topics or None."""
        ...

    @abstractmethod
    def commit(self, record: QueueRecord) -> None:
        """Acknowledge *record*; it will not be delivered again."""
        ...

    @abstractmethod
    def redeliver(self, record: QueueRecord) -> None:
        """Make *record* the next record returned by consume_record()."""
        ...

    @abstractmethod
    def health_check(self) -> bool: ...
