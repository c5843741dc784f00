"""Per-room topic naming.

Each game room owns a pair of topics:
    <room>-event-topic : player events published by game clients
    <room>-score-topic : kill counts published by the scoreboard

Suffix matching is literal and case-sensitive, on the last occurrence.
"""

from __future__ import annotations

EVENT_TOPIC_SUFFIX = "-event-topic"
SCORE_TOPIC_SUFFIX = "-score-topic"

# Regex subscription covering every room's event topic
EVENT_TOPIC_PATTERN = ".*-event-topic"


def event_topic(room: str) -> str:
    return room + EVENT_TOPIC_SUFFIX


def score_topic(room: str) -> str:
    return room + SCORE_TOPIC_SUFFIX


def parse_room_name(event_topic_name: str) -> str | None:
    """Room name is everything before the last ``-event-topic``; None if absent."""
    i = event_topic_name.rfind(EVENT_TOPIC_SUFFIX)
    if i < 0:
        return None
    return event_topic_name[:i]


def score_topic_for(event_topic_name: str) -> str | None:
    room = parse_room_name(event_topic_name)
    if room is None:
        return None
    return score_topic(room)


def counter_key(room: str, killer: str) -> str:
    return f"{room}-{killer}"
