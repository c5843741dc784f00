"""Probe endpoints for the scoreboard worker, served over raw asyncio streams.

    GET /health/live     200 while the process is up
    GET /health/startup  503 until the module has been started
    GET /health/ready    200 when every registered check passes and the
                         worker is not shutting down

Responses are small JSON bodies; each connection serves one request.
"""

from __future__ import annotations

import asyncio
import json
from http import HTTPStatus
from typing import Callable

Response = tuple[int, dict]

_READ_TIMEOUT = 5.0


class HealthCheckServer:
    def __init__(self, port: int = 8080, host: str = "0.0.0.0") -> None:
        self._host = host
        self._port = port
        # name -> callable returning True when the dependency is usable
        self._checks: dict[str, Callable[[], bool]] = {}
        self._started = False
        self._draining = False
        self._server: asyncio.Server | None = None
        self._routes: dict[str, Callable[[], Response]] = {
            "/health/live": lambda: (200, {"status": "ok"}),
            "/health/startup": self._startup,
            "/health/ready": self._readiness,
        }

    @property
    def bound_port(self) -> int | None:
        """Actual listening port; useful when constructed with port 0."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    def register_check(self, name: str, check: Callable[[], bool]) -> None:
        self._checks[name] = check

    def mark_started(self) -> None:
        self._started = True

    def mark_not_ready(self) -> None:
        """Fail readiness from now on so traffic drains before shutdown."""
        self._draining = True

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._serve, self._host, self._port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    # ── Request handling ──────────────────────────────────────────────────

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request = await self._read_request(reader)
            if request is not None:
                self._write(writer, *self._route(*request))
        except (asyncio.TimeoutError, ConnectionError):
            pass
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    @staticmethod
    async def _read_request(reader: asyncio.StreamReader) -> tuple[str, str] | None:
        """(method, path) of the request line; headers are read and discarded."""
        first = await asyncio.wait_for(reader.readline(), timeout=_READ_TIMEOUT)
        if not first:
            return None
        while (await asyncio.wait_for(reader.readline(), timeout=_READ_TIMEOUT)).strip():
            pass
        parts = first.decode("utf-8", errors="replace").split()
        if len(parts) < 2:
            return "", ""
        return parts[0], parts[1]

    def _route(self, method: str, path: str) -> Response:
        if not method:
            return 400, {"error": "bad request"}
        if method != "GET":
            return 405, {"error": "method not allowed"}
        handler = self._routes.get(path)
        if handler is None:
            return 404, {"error": "not found"}
        return handler()

    def _startup(self) -> Response:
        if self._started:
            return 200, {"status": "ok"}
        return 503, {"status": "not started"}

    def _readiness(self) -> Response:
        if self._draining:
            return 503, {"status": "not ready", "reason": "shutting down"}

        results: dict[str, str] = {}
        for name, check in self._checks.items():
            try:
                results[name] = "ok" if check() else "fail"
            except Exception as exc:
                # A raising check is a failed check, reported with its message
                results[name] = f"error: {exc}"

        status = 200 if all(r == "ok" for r in results.values()) else 503
        return status, {"status": "ok" if status == 200 else "not ready", "checks": results}

    @staticmethod
    def _write(writer: asyncio.StreamWriter, status: int, body: dict) -> None:
        payload = json.dumps(body).encode("utf-8")
        head = (
            f"HTTP/1.1 {status} {HTTPStatus(status).phrase}\r\n"
            "Content-Type: application/json\r\n"
            f"Content-Length: {len(payload)}\r\n"
            "Connection: close\r\n\r\n"
        )
        writer.write(head.encode("ascii") + payload)
