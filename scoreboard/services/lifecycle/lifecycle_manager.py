"""Graceful stop for long-running modules.

A SIGTERM/SIGINT (or ``request_shutdown``) only raises a flag: the worker's
poll loop sees ``is_shutting_down``, finishes the record in hand and returns.
The runner then calls ``shutdown()``, which fails readiness, runs the cleanup
hooks newest-first and stops the health server.
"""

from __future__ import annotations

import asyncio
import inspect
import signal
from types import FrameType
from typing import Awaitable, Callable, Union

from scoreboard.services.health.health_server import HealthCheckServer

ShutdownHook = Union[Callable[[], None], Callable[[], Awaitable[None]]]

_STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class LifecycleManager:
    def __init__(self) -> None:
        self._hooks: list[ShutdownHook] = []
        self._health_server: HealthCheckServer | None = None
        self._finished = False
        self.shutdown_reason: str | None = None
        self.hook_errors: list[Exception] = []

    @property
    def is_shutting_down(self) -> bool:
        return self.shutdown_reason is not None

    def request_shutdown(self, reason: str = "requested") -> None:
        # First reason wins
        if self.shutdown_reason is None:
            self.shutdown_reason = reason

    def on_shutdown(self, hook: ShutdownHook) -> None:
        self._hooks.append(hook)

    def set_health_server(self, server: HealthCheckServer) -> None:
        self._health_server = server

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        for sig in _STOP_SIGNALS:
            if loop is not None:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            else:
                signal.signal(sig, self._on_signal)

    async def shutdown(self) -> None:
        """Run cleanup once. A failing hook is recorded and the rest still run."""
        if self._finished:
            return
        self._finished = True
        self.request_shutdown()

        if self._health_server is not None:
            self._health_server.mark_not_ready()

        while self._hooks:
            hook = self._hooks.pop()
            try:
                result = hook()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                self.hook_errors.append(exc)

        if self._health_server is not None:
            await self._health_server.stop()

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        self.request_shutdown(signal.Signals(signum).name)
