"""Kafka-backed message queue implementation using confluent-kafka."""

from __future__ import annotations

import json
from typing import Any

from scoreboard.services.message_queue.interface import (
    MessageQueueInterface,
    PublishError,
    QueueRecord,
)
from scoreboard.services.secrets.interface import SecretsInterface


class KafkaQueue(MessageQueueInterface):
    """Consumer group member with manual offset commits.

    Auto-commit is disabled: an offset is only committed through commit(),
    after the record has been fully processed.
    """

    def __init__(self, secrets: SecretsInterface) -> None:
        self._bootstrap = secrets.get_or_default(
            "MQ_KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"
        )
        self._group_id = secrets.get_or_default(
            "MQ_KAFKA_GROUP_ID", "score-board-function"
        )
        self._poll_timeout = float(
            secrets.get_or_default("MQ_KAFKA_POLL_TIMEOUT", "1.0")
        )
        self._offset_reset = secrets.get_or_default(
            "MQ_KAFKA_AUTO_OFFSET_RESET", "earliest"
        )
        # New room topics are only discovered on metadata refresh
        self._metadata_refresh_ms = secrets.get_or_default(
            "MQ_KAFKA_METADATA_REFRESH_MS", "5000"
        )
        self._flush_timeout = float(
            secrets.get_or_default("MQ_KAFKA_FLUSH_TIMEOUT", "10.0")
        )
        self._producer: Any = None
        self._consumer: Any = None
        self._subscriptions: set[str] = set()

    def connect(self) -> None:
        from confluent_kafka import Consumer, Producer

        self._producer = Producer({"bootstrap.servers": self._bootstrap})
        self._consumer = Consumer({
            "bootstrap.servers": self._bootstrap,
            "group.id": self._group_id,
            "auto.offset.reset": self._offset_reset,
            "enable.auto.commit": False,
            "topic.metadata.refresh.interval.ms": int(self._metadata_refresh_ms),
        })
        if self._subscriptions:
            self._consumer.subscribe(sorted(self._subscriptions))

    def disconnect(self) -> None:
        if self._producer:
            self._producer.flush(timeout=self._flush_timeout)
            self._producer = None
        if self._consumer:
            self._consumer.close()
            self._consumer = None

    def publish(self, topic: str, message: Any, key: str | None = None) -> None:
        from confluent_kafka import KafkaException

        if self._producer is None:
            self.connect()
        if isinstance(message, str):
            payload = message.encode("utf-8")
        else:
            payload = json.dumps(message).encode("utf-8")
        key_bytes = key.encode("utf-8") if key else None

        failures: list[Any] = []

        def _on_delivery(err: Any, _msg: Any) -> None:
            if err is not None:
                failures.append(err)

        try:
            self._producer.produce(
                topic, value=payload, key=key_bytes, on_delivery=_on_delivery
            )
            remaining = self._producer.flush(timeout=self._flush_timeout)
        except (BufferError, KafkaException) as exc:
            raise PublishError(f"publish to '{topic}' failed: {exc}") from exc

        if failures:
            raise PublishError(f"delivery to '{topic}' failed: {failures[0]}")
        if remaining:
            raise PublishError(f"delivery to '{topic}' timed out")

    def subscribe_pattern(self, pattern: str) -> None:
        # librdkafka treats subscriptions starting with '^' as regular expressions
        anchored = pattern if pattern.startswith("^") else f"^{pattern}$"
        self._subscriptions.add(anchored)
        if self._consumer is None:
            self.connect()
        else:
            self._consumer.subscribe(sorted(self._subscriptions))

    def consume_record(self) -> QueueRecord | None:
        from confluent_kafka import TIMESTAMP_NOT_AVAILABLE

        if self._consumer is None:
            self.connect()
        msg = self._consumer.poll(timeout=self._poll_timeout)
        if msg is None or msg.error():
            return None
        raw_key = msg.key()
        ts_type, ts = msg.timestamp()
        return QueueRecord(
            topic=msg.topic(),
            value=_decode_value(msg.value()),
            key=raw_key.decode("utf-8", errors="replace") if raw_key else None,
            partition=msg.partition(),
            offset=msg.offset(),
            timestamp=None if ts_type == TIMESTAMP_NOT_AVAILABLE else ts,
        )

    def commit(self, record: QueueRecord) -> None:
        from confluent_kafka import TopicPartition

        self._consumer.commit(
            offsets=[TopicPartition(record.topic, record.partition, record.offset + 1)],
            asynchronous=False,
        )

    def redeliver(self, record: QueueRecord) -> None:
        from confluent_kafka import TopicPartition

        self._consumer.seek(
            TopicPartition(record.topic, record.partition, record.offset)
        )

    def health_check(self) -> bool:
        if self._producer is None:
            return False
        try:
            metadata = self._producer.list_topics(timeout=5)
            return metadata is not None
        except Exception:
            return False


def _decode_value(raw: bytes | None) -> Any:
    """JSON when possible, else text, else the raw bytes.

    Tombstones (None) and undecodable bytes are handed on unchanged; the
    consumer decides what a payload it cannot read means.
    """
    if raw is None:
        return None
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
