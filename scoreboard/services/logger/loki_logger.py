"""Loki logger: pushes structured JSON log lines to Grafana Loki's HTTP API.

Entries are buffered and flushed by a background thread, or immediately once
the buffer reaches ``_FLUSH_THRESHOLD`` entries.
"""

from __future__ import annotations

import atexit
import json
import os
import sys
import threading
import time
from typing import Any

import requests

from scoreboard.services.logger.interface import LoggingInterface

_DEFAULT_LOKI_URL = "http://localhost:3100"
_FLUSH_INTERVAL = 1.0  # seconds
_FLUSH_THRESHOLD = 100  # entries


class LokiLogger(LoggingInterface):
    """Structured logger that pushes to Grafana Loki via HTTP."""

    def __init__(self, start_thread: bool = True) -> None:
        self._push_url = f"{os.environ.get('LOKI_URL', _DEFAULT_LOKI_URL)}/loki/api/v1/push"
        self._labels = {
            "service": os.environ.get("LOKI_SERVICE", "scoreboard"),
            "environment": os.environ.get("LOKI_ENVIRONMENT", "development"),
        }
        # (level, unix ns, line)
        self._buffer: list[tuple[str, int, str]] = []
        self._lock = threading.Lock()
        self._closed = False
        self.dropped_batches = 0

        if start_thread:
            self._thread = threading.Thread(target=self._flush_loop, daemon=True)
            self._thread.start()
            atexit.register(self.close)

    def info(self, msg: str, **ctx: Any) -> None:
        self._append("INFO", msg, ctx)

    def warn(self, msg: str, **ctx: Any) -> None:
        self._append("WARN", msg, ctx)

    def error(self, msg: str, **ctx: Any) -> None:
        self._append("ERROR", msg, ctx)

    def debug(self, msg: str, **ctx: Any) -> None:
        self._append("DEBUG", msg, ctx)

    def close(self) -> None:
        """Flush remaining entries and stop the background thread."""
        self._closed = True
        self.flush()

    def flush(self) -> None:
        with self._lock:
            entries = self._buffer[:]
            self._buffer.clear()
        if entries:
            self._push(entries)

    # ── Internal ──────────────────────────────────────────────────────────

    def _append(self, level: str, msg: str, ctx: dict[str, Any]) -> None:
        line = json.dumps({"msg": msg, **ctx}, default=str)
        with self._lock:
            self._buffer.append((level, time.time_ns(), line))
            full = len(self._buffer) >= _FLUSH_THRESHOLD
        if full:
            self.flush()

    def _flush_loop(self) -> None:
        while not self._closed:
            time.sleep(_FLUSH_INTERVAL)
            self.flush()

    def _push(self, entries: list[tuple[str, int, str]]) -> None:
        # One Loki stream per level
        streams: dict[str, list[list[str]]] = {}
        for level, ts_ns, line in entries:
            streams.setdefault(level, []).append([str(ts_ns), line])

        payload = {
            "streams": [
                {"stream": {**self._labels, "level": level}, "values": values}
                for level, values in streams.items()
            ]
        }
        try:
            response = requests.post(self._push_url, json=payload, timeout=5)
            response.raise_for_status()
        except requests.RequestException as exc:
            # A logging backend outage must not take the worker down
            self.dropped_batches += 1
            print(f"loki push failed, {len(entries)} entries dropped: {exc}", file=sys.stderr)
