"""Scoreboard worker.

Hosts ScoreboardProcessor the way a managed function runtime would: it owns
the subscription, hands each record to the processor with a context bound to
that record, commits the record once processing returns, and redelivers it
when processing raises.

Topics consumed:
    <room>-event-topic  : any topic matching --input-pattern

Topics produced:
    <room>-score-topic  : key = killer, value = kill count as text

Publish failures follow --publish-failure-policy:
    suppress  : log, count, commit; the score notification is lost
    propagate : raise ScorePublishError so the record is redelivered. Under
                effectively_once the counter is not bumped again on retry.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from scoreboard.config.context import ModuleConfig
from scoreboard.modules.base import Module
from scoreboard.pipeline.context import (
    EFFECTIVELY_ONCE,
    PROCESSING_GUARANTEES,
    ProcessingContext,
)
from scoreboard.pipeline.events import EventMessage
from scoreboard.pipeline.processor import (
    IGNORED,
    PUBLISH_FAILED,
    ProcessOutcome,
    ScoreboardProcessor,
)
from scoreboard.pipeline.topics import EVENT_TOPIC_PATTERN
from scoreboard.services.lifecycle.lifecycle_manager import LifecycleManager
from scoreboard.services.logger.factory import LoggerFactory
from scoreboard.services.logger.interface import LoggingInterface
from scoreboard.services.message_queue.interface import MessageQueueInterface, QueueRecord
from scoreboard.services.metrics.interface import MetricsInterface
from scoreboard.services.state.interface import StateStoreInterface

DEFAULT_FUNCTION_NAME = "score-board-function"

SUPPRESS = "suppress"
PROPAGATE = "propagate"
PUBLISH_FAILURE_POLICIES = (SUPPRESS, PROPAGATE)


class ScorePublishError(Exception):
    """A kill was counted but its score could not be published."""

    def __init__(self, outcome: ProcessOutcome) -> None:
        super().__init__(
            f"score {outcome.score} for '{outcome.killer}' not published "
            f"to '{outcome.output_topic}': {outcome.error}"
        )
        self.outcome = outcome


def decode_event(value: Any) -> EventMessage:
    if not isinstance(value, dict):
        raise ValueError(f"event payload must be a JSON object, got {type(value).__name__}")
    return EventMessage.from_dict(value)


class ScoreboardModule(Module):
    log: LoggingInterface

    def __init__(
        self,
        config: ModuleConfig,
        logger: LoggerFactory,
        mq: MessageQueueInterface,
        state: StateStoreInterface,
        lifecycle: LifecycleManager,
        metrics: MetricsInterface,
    ) -> None:
        self.config = config
        self.logger = logger
        self.mq = mq
        self.state = state
        self.lifecycle = lifecycle
        self.metrics = metrics
        # delivery id -> failed attempts so far
        self._attempts: dict[str, int] = {}

    async def initialize(self) -> None:
        self.log = self.logger.create()
        self.function_name: str = self.config.get("function-name", DEFAULT_FUNCTION_NAME)
        self.input_pattern: str = self.config.get("input-pattern", EVENT_TOPIC_PATTERN)
        self.processor = ScoreboardProcessor()
        self.mq.subscribe_pattern(self.input_pattern)

        for service in (self.mq, self.state):
            disconnect = getattr(service, "disconnect", None)
            if disconnect is not None:
                self.lifecycle.on_shutdown(disconnect)

    async def validate(self) -> None:
        self.guarantee = self.config.get_choice(
            "processing-guarantee", PROCESSING_GUARANTEES, EFFECTIVELY_ONCE
        )
        self.failure_policy = self.config.get_choice(
            "publish-failure-policy", PUBLISH_FAILURE_POLICIES, SUPPRESS
        )
        self.max_retries = self.config.get_int("max-retries", 3, minimum=0)

        self.log.info(
            "Scoreboard configured",
            function=self.function_name,
            pattern=self.input_pattern,
            guarantee=self.guarantee,
            publish_failure_policy=self.failure_policy,
            max_retries=self.max_retries,
        )

    async def execute(self) -> int:
        self.log.info("Scoreboard running", function=self.function_name, pattern=self.input_pattern)
        while not self.lifecycle.is_shutting_down:
            try:
                record = self.mq.consume_record()
            except Exception as exc:
                self.log.error("Poll failed", function=self.function_name, error=str(exc))
                await asyncio.sleep(0.01)
                continue
            if record is None:
                await asyncio.sleep(0.01)
                continue
            self._dispatch(record)
            await asyncio.sleep(0)
        self.log.info(
            "Scoreboard stopped",
            function=self.function_name,
            reason=self.lifecycle.shutdown_reason,
        )
        return 0

    def _dispatch(self, record: QueueRecord) -> None:
        """Process one record; on failure either redeliver it or give up on it."""
        try:
            self._handle_record(record)
        except Exception as exc:
            self._on_failure(record, exc)
        else:
            self._attempts.pop(record.delivery_id, None)

    def _handle_record(self, record: QueueRecord) -> ProcessOutcome:
        tags = {"service": self.function_name, "topic": record.topic}
        self.metrics.counter("events_received_total", tags=tags)
        started = time.monotonic()

        event = decode_event(record.value)
        context = ProcessingContext(record, self.mq, self.state, self.guarantee)
        outcome = self.processor.process(event, context)

        self.metrics.histogram("process_duration_seconds", time.monotonic() - started, tags=tags)

        if outcome.status == IGNORED:
            self.metrics.counter("events_ignored_total", tags={**tags, "reason": outcome.reason or ""})
            self.log.debug(
                "Event ignored",
                topic=record.topic,
                delivery_id=record.delivery_id,
                event_type=event.type,
                reason=outcome.reason,
            )
        else:
            self.metrics.counter("kills_recorded_total", tags=tags)
            if outcome.status == PUBLISH_FAILED:
                self.metrics.counter(
                    "score_publish_failures_total",
                    tags={**tags, "policy": self.failure_policy},
                )
                if self.failure_policy == PROPAGATE:
                    raise ScorePublishError(outcome) from outcome.error
                self.log.error(
                    "Score publish failed, notification dropped",
                    room=outcome.room,
                    killer=outcome.killer,
                    score=outcome.score,
                    output_topic=outcome.output_topic,
                    delivery_id=record.delivery_id,
                    error=str(outcome.error),
                )
            else:
                self.metrics.counter(
                    "scores_published_total",
                    tags={"service": self.function_name, "topic": outcome.output_topic or ""},
                )
                self.log.info(
                    "Score updated",
                    room=outcome.room,
                    killer=outcome.killer,
                    victim=event.name,
                    score=outcome.score,
                    output_topic=outcome.output_topic,
                )

        self.mq.commit(record)
        return outcome

    def _on_failure(self, record: QueueRecord, exc: Exception) -> None:
        attempts = self._attempts.get(record.delivery_id, 0) + 1
        self.metrics.counter(
            "events_failed_total",
            tags={"service": self.function_name, "topic": record.topic, "error": type(exc).__name__},
        )
        if attempts > self.max_retries:
            self._attempts.pop(record.delivery_id, None)
            self.log.error(
                "Dropping record after retries",
                topic=record.topic,
                delivery_id=record.delivery_id,
                attempts=attempts,
                error=str(exc),
            )
            self.mq.commit(record)
            return

        self._attempts[record.delivery_id] = attempts
        self.log.warn(
            "Processing failed, redelivering",
            topic=record.topic,
            delivery_id=record.delivery_id,
            attempt=attempts,
            error=str(exc),
        )
        self.mq.redeliver(record)


module_class = ScoreboardModule
