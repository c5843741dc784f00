"""Game event wire format.

Game clients publish one JSON record per event on their room's event topic.
The same record shape carries every event type; ``type`` says which.
For ``UserDeadEvent`` the ``comment`` field holds the killer's name.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

USER_MOVE_EVENT = "UserMoveEvent"
USER_JOIN_EVENT = "UserJoinEvent"
USER_DEAD_EVENT = "UserDeadEvent"
USER_REVIVE_EVENT = "UserReviveEvent"
SET_BOMB_EVENT = "SetBombEvent"
BOMB_MOVE_EVENT = "BombMoveEvent"
EXPLODE_EVENT = "ExplodeEvent"
UNDO_EXPLODE_EVENT = "UndoExplodeEvent"
UPDATE_MAP_EVENT = "UpdateMapEvent"


@dataclass
class EventMessage:
    """One game event as it appears on an event topic."""

    type: str
    name: str               # player (or bomb) the event is about
    comment: str            # free-form; killer name on UserDeadEvent
    avatar: str = ""
    x: int = 0
    y: int = 0
    alive: bool = False
    obstacles: list[int] = field(default_factory=list)  # wire field "list"

    @property
    def killer(self) -> str:
        return self.comment

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "avatar": self.avatar,
            "comment": self.comment,
            "x": self.x,
            "y": self.y,
            "alive": self.alive,
            "list": list(self.obstacles),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EventMessage":
        """Only type, name and comment are required. Optional fields that are
        null or of the wrong type fall back to their defaults.
        """
        raw_list = data.get("list")
        return cls(
            type=data["type"],
            name=data["name"],
            comment=data["comment"],
            avatar=_as_str(data.get("avatar")),
            x=_as_int(data.get("x")),
            y=_as_int(data.get("y")),
            alive=data.get("alive") is True,
            obstacles=[_as_int(v) for v in raw_list] if isinstance(raw_list, list) else [],
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def user_dead_event(player: str, killer: str, **extra: Any) -> EventMessage:
    """Build the event a client publishes when *player* is killed by *killer*."""
    return EventMessage(type=USER_DEAD_EVENT, name=player, comment=killer, **extra)
