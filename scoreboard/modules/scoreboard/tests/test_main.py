"""Tests for the Scoreboard worker module.

All tests use MemoryQueue + MemoryStateStore (no external services).
"""

from __future__ import annotations

import asyncio

import pytest

from scoreboard.config.context import ModuleConfig
from scoreboard.modules.scoreboard.main import ScoreboardModule, ScorePublishError
from scoreboard.pipeline.events import USER_MOVE_EVENT, user_dead_event
from scoreboard.services.lifecycle.lifecycle_manager import LifecycleManager
from scoreboard.services.logger.factory import LoggerFactory
from scoreboard.services.logger.memory_logger import MemoryLogger
from scoreboard.services.message_queue.memory_queue import MemoryQueue
from scoreboard.services.metrics.memory_metrics import MemoryMetrics
from scoreboard.services.state.memory_state import MemoryStateStore


# ── Helpers ───────────────────────────────────────────────────────────────────


def _kill(player: str, killer: str) -> dict:
    return user_dead_event(player, killer).to_dict()


async def _setup(
    config: dict | None = None,
) -> tuple[ScoreboardModule, MemoryQueue, MemoryStateStore, MemoryMetrics]:
    mq = MemoryQueue()
    state = MemoryStateStore()
    metrics = MemoryMetrics()
    module = ScoreboardModule(
        config=ModuleConfig(config or {}),
        logger=LoggerFactory(default_impl="memory"),
        mq=mq,
        state=state,
        lifecycle=LifecycleManager(),
        metrics=metrics,
    )
    await module.initialize()
    await module.validate()
    return module, mq, state, metrics


def _drain(module: ScoreboardModule, mq: MemoryQueue) -> None:
    while (record := mq.consume_record()) is not None:
        module._dispatch(record)


def _scores(mq: MemoryQueue, topic: str) -> list[tuple[str | None, str]]:
    return [(r.key, r.value) for r in mq.published(topic)]


# ── End-to-end scenarios ──────────────────────────────────────────────────────


async def test_kill_published_to_room_score_topic() -> None:
    module, mq, state, metrics = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    _drain(module, mq)

    assert state.get("arena-alice") == 1
    assert _scores(mq, "arena-score-topic") == [("alice", "1")]
    assert mq.committed[("arena-event-topic", 0)] == 1
    assert metrics.counters["scores_published_total"] == 1


async def test_self_kill_after_kill_changes_nothing() -> None:
    module, mq, state, _ = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    mq.publish("arena-event-topic", _kill("alice", "alice"))
    _drain(module, mq)

    assert state.get("arena-alice") == 1
    assert _scores(mq, "arena-score-topic") == [("alice", "1")]
    # Ignored records are still acknowledged
    assert mq.committed[("arena-event-topic", 0)] == 2


async def test_unsubscribed_topic_never_processed() -> None:
    module, mq, state, metrics = await _setup()
    mq.publish("arena-chat-topic", _kill("bob", "alice"))
    _drain(module, mq)

    assert state.get("arena-alice") == 0
    assert metrics.counters.get("events_received_total", 0) == 0


async def test_unroutable_topic_ignored_with_wide_pattern() -> None:
    module, mq, state, metrics = await _setup({"input-pattern": "arena-.*"})
    mq.publish("arena-chat-topic", _kill("bob", "alice"))
    _drain(module, mq)

    assert state.get("arena-alice") == 0
    assert mq.published("arena-score-topic") == []
    assert metrics.counter_value("events_ignored_total", reason="unroutable_topic") == 1


async def test_rooms_scored_independently() -> None:
    module, mq, state, _ = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    mq.publish("lobby7-event-topic", _kill("carol", "alice"))
    mq.publish("arena-event-topic", _kill("carol", "alice"))
    _drain(module, mq)

    assert _scores(mq, "arena-score-topic") == [("alice", "1"), ("alice", "2")]
    assert _scores(mq, "lobby7-score-topic") == [("alice", "1")]


async def test_other_event_types_ignored_and_counted() -> None:
    module, mq, state, metrics = await _setup()
    mq.publish("arena-event-topic", {"type": USER_MOVE_EVENT, "name": "bob", "comment": "", "x": 1, "y": 2})
    _drain(module, mq)

    assert mq.published("arena-score-topic") == []
    assert metrics.counter_value("events_ignored_total", reason="unhandled_type") == 1
    assert mq.committed[("arena-event-topic", 0)] == 1


# ── Delivery guarantees ───────────────────────────────────────────────────────


async def test_duplicate_delivery_counted_once() -> None:
    module, mq, state, _ = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    record = mq.consume_record()
    module._dispatch(record)
    module._dispatch(record)

    assert state.get("arena-alice") == 1
    assert [v for _, v in _scores(mq, "arena-score-topic")] == ["1", "1"]


async def test_duplicate_delivery_double_counted_at_least_once() -> None:
    module, mq, state, _ = await _setup({"processing-guarantee": "at_least_once"})
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    record = mq.consume_record()
    module._dispatch(record)
    module._dispatch(record)

    assert state.get("arena-alice") == 2


# ── Publish failure policy ────────────────────────────────────────────────────


async def test_publish_failure_suppressed_by_default() -> None:
    module, mq, state, metrics = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    mq.fail_publishes = True
    _drain(module, mq)

    assert state.get("arena-alice") == 1
    assert mq.committed[("arena-event-topic", 0)] == 1
    assert metrics.counters["score_publish_failures_total"] == 1
    log = module.log
    assert isinstance(log, MemoryLogger)
    assert "Score publish failed, notification dropped" in [e.msg for e in log.at_level("ERROR")]


async def test_publish_failure_propagated_redelivers_without_double_count() -> None:
    module, mq, state, metrics = await _setup({"publish-failure-policy": "propagate"})
    mq.publish("arena-event-topic", _kill("bob", "alice"))

    mq.fail_publishes = True
    record = mq.consume_record()
    module._dispatch(record)
    assert ("arena-event-topic", 0) not in mq.committed
    assert metrics.counters["events_failed_total"] == 1

    # Broker recovers; the redelivered record republishes the same score
    mq.fail_publishes = False
    _drain(module, mq)

    assert state.get("arena-alice") == 1
    assert _scores(mq, "arena-score-topic") == [("alice", "1")]
    assert mq.committed[("arena-event-topic", 0)] == 1


async def test_handle_record_raises_score_publish_error_when_propagating() -> None:
    module, mq, _, _ = await _setup({"publish-failure-policy": "propagate"})
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    mq.fail_publishes = True
    with pytest.raises(ScorePublishError, match="arena-score-topic"):
        module._handle_record(mq.consume_record())


# ── Malformed input ───────────────────────────────────────────────────────────


async def test_malformed_record_retried_then_dropped() -> None:
    module, mq, state, metrics = await _setup({"max-retries": 2})
    mq.publish("arena-event-topic", {"type": "UserDeadEvent", "name": "bob"})
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    _drain(module, mq)

    # 1 attempt + 2 redeliveries, then the poison record is skipped
    assert metrics.counters["events_failed_total"] == 3
    assert state.get("arena-alice") == 1
    assert mq.committed[("arena-event-topic", 0)] == 2
    log = module.log
    assert isinstance(log, MemoryLogger)
    dropped = log.find("Dropping record after retries")
    assert dropped is not None
    assert dropped.ctx["attempts"] == 3
    assert dropped.ctx["delivery_id"] == "arena-event-topic:0:0"


@pytest.mark.parametrize("payload", [b"\xff\xfe", None], ids=["undecodable", "tombstone"])
async def test_unreadable_payload_dropped_and_next_kill_counted(payload: bytes | None) -> None:
    module, mq, state, metrics = await _setup({"max-retries": 1})
    mq.publish("arena-event-topic", payload)
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    _drain(module, mq)

    assert metrics.counter_value("events_failed_total", error="ValueError") == 2
    assert state.get("arena-alice") == 1
    assert _scores(mq, "arena-score-topic") == [("alice", "1")]
    assert mq.committed[("arena-event-topic", 0)] == 2


async def test_kill_with_null_coordinate_still_counted() -> None:
    module, mq, state, metrics = await _setup()
    mq.publish("arena-event-topic", {"type": "UserDeadEvent", "name": "bob", "comment": "alice", "x": None})
    _drain(module, mq)

    assert state.get("arena-alice") == 1
    assert _scores(mq, "arena-score-topic") == [("alice", "1")]
    assert metrics.counters.get("events_failed_total", 0) == 0


async def test_move_with_malformed_list_ignored_not_failed() -> None:
    module, mq, _, metrics = await _setup()
    mq.publish("arena-event-topic", {"type": USER_MOVE_EVENT, "name": "bob", "comment": "", "list": 5})
    _drain(module, mq)

    assert metrics.counter_value("events_ignored_total", reason="unhandled_type") == 1
    assert metrics.counters.get("events_failed_total", 0) == 0
    assert mq.committed[("arena-event-topic", 0)] == 1


async def test_non_object_payload_rejected() -> None:
    module, mq, _, _ = await _setup({"max-retries": 0})
    mq.publish("arena-event-topic", "not an event")
    with pytest.raises(ValueError, match="JSON object"):
        module._handle_record(mq.consume_record())


# ── Lifecycle ─────────────────────────────────────────────────────────────────


async def test_execute_processes_records_until_shutdown() -> None:
    module, mq, state, _ = await _setup()
    for victim in ("bob", "carol", "dave"):
        mq.publish("arena-event-topic", _kill(victim, "alice"))

    task = asyncio.create_task(module.execute())
    for _ in range(500):
        if len(mq.published("arena-score-topic")) == 3:
            break
        await asyncio.sleep(0.01)
    module.lifecycle.request_shutdown()

    assert await asyncio.wait_for(task, timeout=5) == 0
    assert state.get("arena-alice") == 3
    assert [v for _, v in _scores(mq, "arena-score-topic")] == ["1", "2", "3"]
    log = module.log
    assert isinstance(log, MemoryLogger)
    stopped = log.find("Scoreboard stopped")
    assert stopped is not None
    assert stopped.ctx["reason"] == "requested"

async def test_execute_survives_failing_poll() -> None:
    class FlakyQueue(MemoryQueue):
        def __init__(self) -> None:
            super().__init__()
            self.polls_to_fail = 1

        def consume_record(self):
            if self.polls_to_fail:
                self.polls_to_fail -= 1
                raise RuntimeError("Local: Broker transport failure")
            return super().consume_record()

    mq = FlakyQueue()
    state = MemoryStateStore()
    module = ScoreboardModule(
        config=ModuleConfig({}),
        logger=LoggerFactory(default_impl="memory"),
        mq=mq,
        state=state,
        lifecycle=LifecycleManager(),
        metrics=MemoryMetrics(),
    )
    await module.initialize()
    await module.validate()
    mq.publish("arena-event-topic", _kill("bob", "alice"))

    task = asyncio.create_task(module.execute())
    for _ in range(500):
        if mq.published("arena-score-topic"):
            break
        await asyncio.sleep(0.01)
    module.lifecycle.request_shutdown()

    assert await asyncio.wait_for(task, timeout=5) == 0
    assert state.get("arena-alice") == 1
    log = module.log
    assert isinstance(log, MemoryLogger)
    failed = log.find("Poll failed")
    assert failed is not None
    assert "transport failure" in failed.ctx["error"]


async def test_service_disconnect_runs_on_shutdown() -> None:
    class ClosingStateStore(MemoryStateStore):
        def __init__(self) -> None:
            super().__init__()
            self.closed = False

        def disconnect(self) -> None:
            self.closed = True

    state = ClosingStateStore()
    lifecycle = LifecycleManager()
    module = ScoreboardModule(
        config=ModuleConfig({}),
        logger=LoggerFactory(default_impl="memory"),
        mq=MemoryQueue(),
        state=state,
        lifecycle=lifecycle,
        metrics=MemoryMetrics(),
    )
    await module.initialize()
    await lifecycle.shutdown()

    assert state.closed is True
    assert lifecycle.hook_errors == []


@pytest.mark.parametrize(
    "config, match",
    [
        ({"processing-guarantee": "exactly_once"}, "processing-guarantee"),
        ({"publish-failure-policy": "retry"}, "publish-failure-policy"),
        ({"max-retries": -1}, "max-retries"),
    ],
)
async def test_validate_rejects_bad_config(config: dict, match: str) -> None:
    module = ScoreboardModule(
        config=ModuleConfig(config),
        logger=LoggerFactory(default_impl="memory"),
        mq=MemoryQueue(),
        state=MemoryStateStore(),
        lifecycle=LifecycleManager(),
        metrics=MemoryMetrics(),
    )
    await module.initialize()
    with pytest.raises(ValueError, match=match):
        await module.validate()


async def test_execute_returns_immediately_when_already_shutting_down() -> None:
    module, mq, state, _ = await _setup()
    mq.publish("arena-event-topic", _kill("bob", "alice"))
    module.lifecycle.request_shutdown("SIGTERM")

    assert await module.execute() == 0
    # Left for the next consumer in the group
    assert state.get("arena-alice") == 0
    assert ("arena-event-topic", 0) not in mq.committed
