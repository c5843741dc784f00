"""Per-invocation runtime context handed to the scoreboard processor.

The context is the processor's only window onto the outside world: which
topic the current record came from, the counter store, and the producer.
It also enforces the configured processing guarantee: under
``effectively_once`` every counter update is tagged with the record's
delivery id, so a redelivered record cannot increment twice.
"""

from __future__ import annotations

from typing import Any

from scoreboard.services.message_queue.interface import MessageQueueInterface, QueueRecord
from scoreboard.services.state.interface import StateStoreInterface

EFFECTIVELY_ONCE = "effectively_once"
AT_LEAST_ONCE = "at_least_once"
PROCESSING_GUARANTEES = (EFFECTIVELY_ONCE, AT_LEAST_ONCE)


class ProcessingContext:
    def __init__(
        self,
        record: QueueRecord | None,
        mq: MessageQueueInterface,
        state: StateStoreInterface,
        guarantee: str = EFFECTIVELY_ONCE,
    ) -> None:
        if guarantee not in PROCESSING_GUARANTEES:
            raise ValueError(
                f"Unknown processing guarantee: '{guarantee}' "
                f"(choices: {', '.join(PROCESSING_GUARANTEES)})"
            )
        self._record = record
        self._mq = mq
        self._state = state
        self._guarantee = guarantee

    @property
    def topic_name(self) -> str | None:
        """Topic the current record arrived on, if known."""
        if self._record is None or not self._record.topic:
            return None
        return self._record.topic

    @property
    def delivery_id(self) -> str | None:
        return self._record.delivery_id if self._record is not None else None

    def incr_counter(self, key: str, by: int = 1) -> int:
        """Atomically increment the counter at *key* and return the new value."""
        delivery_id = self.delivery_id if self._guarantee == EFFECTIVELY_ONCE else None
        return self._state.incr(key, by, delivery_id=delivery_id)

    def get_counter(self, key: str) -> int:
        return self._state.get(key)

    def publish(self, topic: str, value: Any, key: str | None = None) -> None:
        self._mq.publish(topic, value, key=key)
