from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from scoreboard.services.logger.interface import LoggingInterface


@dataclass
class LogEntry:
    level: str
    msg: str
    ctx: dict[str, Any] = field(default_factory=dict)


class MemoryLogger(LoggingInterface):
    """Keeps every entry in ``entries`` so tests can assert on what was logged."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def debug(self, msg: str, **ctx: Any) -> None:
        self.entries.append(LogEntry("DEBUG", msg, ctx))

    def info(self, msg: str, **ctx: Any) -> None:
        self.entries.append(LogEntry("INFO", msg, ctx))

    def warn(self, msg: str, **ctx: Any) -> None:
        self.entries.append(LogEntry("WARN", msg, ctx))

    def error(self, msg: str, **ctx: Any) -> None:
        self.entries.append(LogEntry("ERROR", msg, ctx))

    @property
    def messages(self) -> list[str]:
        return [e.msg for e in self.entries]

    def at_level(self, level: str) -> list[LogEntry]:
        return [e for e in self.entries if e.level == level]

    def find(self, msg: str) -> LogEntry | None:
        """Most recent entry with exactly *msg*."""
        for entry in reversed(self.entries):
            if entry.msg == msg:
                return entry
        return None
