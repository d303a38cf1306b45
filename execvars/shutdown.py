"""Shutdown handler — turns SIGINT/SIGTERM into a shutdown request.

The handler is registered with ``loop.add_signal_handler`` so it runs on the
event loop, not inside the interrupted frame.  All it does is record the
signal number and set an event; the daemon waiting on ``wait()`` performs
the actual cleanup (cancel dispatch, reap the running command, release the
variable server) and exits.
"""

from __future__ import annotations

import asyncio
import signal

from execvars.logging import get_logger

log = get_logger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


class ShutdownHandler:
    def __init__(self, signals: tuple[signal.Signals, ...] = SHUTDOWN_SIGNALS) -> None:
        self._signals = signals
        self._event = asyncio.Event()
        self._installed: list[signal.Signals] = []
        self.signum: int | None = None

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            loop.add_signal_handler(sig, self.request, sig)
            self._installed.append(sig)

    def uninstall(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        loop = loop or asyncio.get_running_loop()
        while self._installed:
            loop.remove_signal_handler(self._installed.pop())

    def request(self, signum: int) -> None:
        """Record a shutdown request.  Only the first request is kept."""
        if self.signum is None:
            self.signum = signum
        self._event.set()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> int:
        """Block until shutdown is requested; return the signal number."""
        await self._event.wait()
        assert self.signum is not None
        return self.signum
