from __future__ import annotations

from scoreboard.services.metrics.interface import MetricsInterface

TagKey = tuple[tuple[str, str], ...]


def _tag_key(tags: dict[str, str] | None) -> TagKey:
    return tuple(sorted(tags.items())) if tags else ()


class MemoryMetrics(MetricsInterface):
    """In-memory metrics for test assertions.

    ``counters`` aggregates across tags; ``tagged_counters`` keeps one
    series per (name, tags) pair.
    """

    def __init__(self) -> None:
        self.counters: dict[str, float] = {}
        self.tagged_counters: dict[tuple[str, TagKey], float] = {}
        self.gauges: dict[str, float] = {}
        self.histograms: dict[str, list[float]] = {}

    def counter(self, name: str, value: float = 1, tags: dict[str, str] | None = None) -> None:
        self.counters[name] = self.counters.get(name, 0) + value
        series = (name, _tag_key(tags))
        self.tagged_counters[series] = self.tagged_counters.get(series, 0) + value

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges[name] = value

    def histogram(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.histograms.setdefault(name, []).append(value)

    def counter_value(self, name: str, **tags: str) -> float:
        """Sum of *name* over every series whose tags include *tags*."""
        wanted = set(tags.items())
        return sum(
            v for (n, key), v in self.tagged_counters.items()
            if n == name and wanted <= set(key)
        )
