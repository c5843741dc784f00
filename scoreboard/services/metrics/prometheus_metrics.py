"""Prometheus metrics implementation using prometheus_client."""

from __future__ import annotations

from typing import Any

from scoreboard.services.metrics.interface import MetricsInterface
from scoreboard.services.secrets.interface import SecretsInterface


class PrometheusMetrics(MetricsInterface):
    """Metrics backend exposed on a Prometheus /metrics endpoint.

    Config (via secrets):
        METRICS_PROMETHEUS_PORT - Port to expose /metrics on (default: 9091).
                                  0 or empty disables the HTTP server.

    Dashes and dots in metric names are replaced with underscores.
    """

    def __init__(self, secrets: SecretsInterface) -> None:
        import prometheus_client as prom

        self._prom = prom
        self._registry = prom.CollectorRegistry()
        self._collectors: dict[tuple[str, str, tuple[str, ...]], Any] = {}

        port_str = secrets.get_or_default("METRICS_PROMETHEUS_PORT", "9091")
        port = int(port_str) if port_str else 0
        if port:
            prom.start_http_server(port, registry=self._registry)

    @staticmethod
    def _sanitize(name: str) -> str:
        return name.replace("-", "_").replace(".", "_")

    def _series(self, kind: type, name: str, tags: dict[str, str] | None) -> Any:
        safe = self._sanitize(name)
        label_names = tuple(sorted(tags)) if tags else ()
        key = (kind.__name__, safe, label_names)
        collector = self._collectors.get(key)
        if collector is None:
            collector = kind(safe, safe, label_names, registry=self._registry)
            self._collectors[key] = collector
        if label_names:
            return collector.labels(*(tags[n] for n in label_names))  # type: ignore[index]
        return collector

    def counter(self, name: str, value: float = 1, tags: dict[str, str] | None = None) -> None:
        self._series(self._prom.Counter, name, tags).inc(value)

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self._series(self._prom.Gauge, name, tags).set(value)

    def histogram(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self._series(self._prom.Histogram, name, tags).observe(value)

    def sample(self, name: str, tags: dict[str, str] | None = None) -> float | None:
        """Read back a sample from this instance's registry."""
        return self._registry.get_sample_value(self._sanitize(name), tags or {})
