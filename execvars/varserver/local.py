"""In-process variable server.

LocalVarServer keeps the variable namespace, the notification queue and the
pending read requests in memory.  It lets execvars be embedded in another
asyncio program and is the backend used by the test-suite.

Usage::

    server = LocalVarServer(["/sys/info/uptime"])
    daemon = ExecVarsDaemon(server, entries, executor)
    task = asyncio.create_task(daemon.serve())

    output = await server.request_read("/sys/info/uptime")
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Iterable

from execvars.channels import BufferOutputChannel, OutputChannel
from execvars.exceptions import (
    UnknownRequestError,
    VarServerError,
    VariableResolutionError,
)
from execvars.logging import get_logger
from execvars.models import VAR_INVALID, NotifyKind, TriggerEvent, TriggerKind
from execvars.varserver.base import VarServerClient

log = get_logger(__name__)


@dataclass
class _PendingRead:
    variable_id: int
    channel: BufferOutputChannel
    done: asyncio.Future[bytes]
    opened: bool = False


class LocalVarServer(VarServerClient):
    """In-memory VarServerClient implementation."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._handles: dict[str, int] = {}
        self._interest: dict[int, set[NotifyKind]] = {}
        self._queue: asyncio.Queue[TriggerEvent] = asyncio.Queue()
        self._pending: dict[int, _PendingRead] = {}
        self._request_ids = itertools.count(1)
        self._is_open = False
        self.channels_opened = 0
        self.channels_closed = 0
        for name in names:
            self.declare(name)

    # ------------------------------------------------------------------
    # Namespace
    # ------------------------------------------------------------------

    def declare(self, name: str) -> int:
        """Create variable *name* (idempotent) and return its handle."""
        if name not in self._handles:
            self._handles[name] = len(self._handles) + 1
        return self._handles[name]

    def interest(self, variable_id: int) -> set[NotifyKind]:
        return set(self._interest.get(variable_id, ()))

    @property
    def is_open(self) -> bool:
        return self._is_open

    # ------------------------------------------------------------------
    # VarServerClient
    # ------------------------------------------------------------------

    async def open(self) -> None:
        self._is_open = True

    async def close(self) -> None:
        if not self._is_open:
            return
        self._is_open = False
        for request_id, pending in list(self._pending.items()):
            if not pending.done.done():
                pending.done.set_result(pending.channel.getvalue())
            self._pending.pop(request_id, None)

    async def find_by_name(self, name: str) -> int:
        handle = self._handles.get(name)
        if handle is None:
            raise VariableResolutionError(name)
        return handle

    async def register_interest(self, variable_id: int, kind: NotifyKind = NotifyKind.PRINT) -> None:
        if variable_id not in self._handles.values():
            raise VarServerError(
                f"Unknown variable handle {variable_id}",
                context={"variable_id": variable_id},
            )
        self._interest.setdefault(variable_id, set()).add(kind)

    async def wait_for_trigger(self) -> TriggerEvent:
        return await self._queue.get()

    async def open_output_channel(self, request_id: int) -> tuple[int, OutputChannel]:
        pending = self._pending.get(request_id)
        if pending is None or pending.opened:
            raise UnknownRequestError(request_id)
        pending.opened = True
        self.channels_opened += 1
        return pending.variable_id, pending.channel

    async def close_output_channel(self, request_id: int, channel: OutputChannel) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            raise UnknownRequestError(request_id)
        await channel.close()
        self.channels_closed += 1
        if not pending.done.done():
            pending.done.set_result(pending.channel.getvalue())

    # ------------------------------------------------------------------
    # Caller side
    # ------------------------------------------------------------------

    def post_read(self, variable_id: int) -> asyncio.Future[bytes]:
        """Queue a read notification for *variable_id* regardless of interest.

        The returned future resolves to the bytes written to the request's
        output channel once the channel is closed.
        """
        request_id = next(self._request_ids)
        done: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRead(
            variable_id=variable_id,
            channel=BufferOutputChannel(),
            done=done,
        )
        self._queue.put_nowait(TriggerEvent(TriggerKind.READ_REQUESTED, request_id))
        return done

    async def request_read(self, name: str) -> bytes:
        """Read variable *name* the way an external caller would.

        Variables nobody registered print interest for have no value here:
        the read returns empty output without notifying anyone.
        """
        variable_id = self._handles.get(name, VAR_INVALID)
        if NotifyKind.PRINT not in self._interest.get(variable_id, ()):
            log.debug("read_without_handler", name=name)
            return b""
        return await self.post_read(variable_id)

    def send_trigger(self, kind: TriggerKind) -> int:
        """Queue a bare notification of *kind*; returns its request id."""
        request_id = next(self._request_ids)
        self._queue.put_nowait(TriggerEvent(kind, request_id))
        return request_id
