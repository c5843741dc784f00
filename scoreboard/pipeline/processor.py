"""Kill-count scoreboard.

For every ``UserDeadEvent`` on ``<room>-event-topic`` the killer's counter
``<room>-<killer>`` is incremented and the new total is published to
``<room>-score-topic`` (key = killer, value = count as text).

Every other record is dropped without touching state:
    unhandled_type   : not a UserDeadEvent
    self_elimination : player killed themselves, no credit
    missing_topic    : the runtime could not say where the record came from
    unroutable_topic : source topic does not follow the room naming scheme

A failed publish does not raise. It comes back as a ``publish_failed``
outcome and the caller decides whether to drop the notification or retry.
The counter has already advanced at that point.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from scoreboard.pipeline.context import ProcessingContext
from scoreboard.pipeline.events import USER_DEAD_EVENT, EventMessage
from scoreboard.pipeline.topics import counter_key, parse_room_name, score_topic_for
from scoreboard.services.message_queue.interface import PublishError

PUBLISHED = "published"
IGNORED = "ignored"
PUBLISH_FAILED = "publish_failed"

UNHANDLED_TYPE = "unhandled_type"
SELF_ELIMINATION = "self_elimination"
MISSING_TOPIC = "missing_topic"
UNROUTABLE_TOPIC = "unroutable_topic"


@dataclass(frozen=True)
class ProcessOutcome:
    status: str
    reason: str | None = None
    room: str | None = None
    killer: str | None = None
    counter_key: str | None = None
    output_topic: str | None = None
    score: int | None = None
    error: Exception | None = None

    @classmethod
    def ignored(cls, reason: str) -> "ProcessOutcome":
        return cls(status=IGNORED, reason=reason)

    @property
    def counted(self) -> bool:
        """True when the kill was recorded, whether or not the score went out."""
        return self.status in (PUBLISHED, PUBLISH_FAILED)


def is_elimination(event: EventMessage) -> bool:
    return event.type == USER_DEAD_EVENT


def is_self_elimination(event: EventMessage) -> bool:
    return event.name == event.killer


def source_topic(context: ProcessingContext) -> str | None:
    return context.topic_name or None


class ScoreboardProcessor:
    """Stateless: all counts live in the context's state store."""

    def process(self, event: EventMessage, context: ProcessingContext) -> ProcessOutcome:
        if not is_elimination(event):
            return ProcessOutcome.ignored(UNHANDLED_TYPE)
        if is_self_elimination(event):
            return ProcessOutcome.ignored(SELF_ELIMINATION)

        input_topic = source_topic(context)
        if input_topic is None:
            return ProcessOutcome.ignored(MISSING_TOPIC)
        room = parse_room_name(input_topic)
        if room is None:
            return ProcessOutcome.ignored(UNROUTABLE_TOPIC)
        output_topic = score_topic_for(input_topic)
        if output_topic is None:
            return ProcessOutcome.ignored(UNROUTABLE_TOPIC)

        killer = event.killer
        key = counter_key(room, killer)
        score = context.incr_counter(key, 1)

        outcome = ProcessOutcome(
            status=PUBLISHED,
            room=room,
            killer=killer,
            counter_key=key,
            output_topic=output_topic,
            score=score,
        )
        try:
            context.publish(output_topic, str(score), key=killer)
        except PublishError as exc:
            return replace(outcome, status=PUBLISH_FAILED, error=exc)
        return outcome
