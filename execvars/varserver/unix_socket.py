"""Unix socket variable server.

Each client connection is one read request::

    $ printf '/sys/info/uptime\\n' | socat - UNIX-CONNECT:/tmp/execvars.sock
     14:02:11 up 3 days,  2:41,  1 user,  load average: 0.08, 0.04, 0.01

The client sends the variable name terminated by a newline and receives the
variable's value until the server closes the connection.  Names are resolved
to handles on first use.  A name nobody registered print interest for is
answered with empty output without a read notification, as is a name longer
than ``MAX_NAME_LENGTH`` bytes.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from dataclasses import dataclass, field
from pathlib import Path

from execvars.channels import OutputChannel, StreamOutputChannel
from execvars.exceptions import UnknownRequestError, VarServerUnavailableError
from execvars.logging import get_logger
from execvars.models import VAR_INVALID, NotifyKind, TriggerEvent, TriggerKind
from execvars.varserver.base import VarServerClient

log = get_logger(__name__)

MAX_NAME_LENGTH = 1024
NAME_READ_TIMEOUT = 5.0


@dataclass
class _Connection:
    variable_id: int
    writer: asyncio.StreamWriter
    done: asyncio.Event = field(default_factory=asyncio.Event)
    opened: bool = False


class UnixSocketVarServer(VarServerClient):
    def __init__(self, socket_path: Path | str, backlog: int = 16) -> None:
        self._path = Path(socket_path)
        self._backlog = backlog
        self._server: asyncio.AbstractServer | None = None
        self._handles: dict[str, int] = {}
        self._interest: dict[int, set[NotifyKind]] = {}
        self._queue: asyncio.Queue[TriggerEvent] = asyncio.Queue()
        self._pending: dict[int, _Connection] = {}
        self._request_ids = itertools.count(1)

    @property
    def socket_path(self) -> Path:
        return self._path

    async def open(self) -> None:
        if self._server is not None:
            return
        if self._path.is_socket():
            self._path.unlink()
        try:
            self._server = await asyncio.start_unix_server(
                self._handle_client, path=str(self._path), backlog=self._backlog
            )
        except OSError as exc:
            raise VarServerUnavailableError(f"{self._path}: {exc.strerror or exc}") from exc
        log.info("varserver_listening", socket_path=str(self._path))

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for conn in self._pending.values():
            conn.done.set()
        self._pending.clear()
        await self._server.wait_closed()
        self._server = None
        try:
            os.unlink(self._path)
        except FileNotFoundError:
            pass
        log.info("varserver_closed", socket_path=str(self._path))

    async def find_by_name(self, name: str) -> int:
        return self._resolve(name)

    async def register_interest(self, variable_id: int, kind: NotifyKind = NotifyKind.PRINT) -> None:
        self._interest.setdefault(variable_id, set()).add(kind)

    async def wait_for_trigger(self) -> TriggerEvent:
        return await self._queue.get()

    async def open_output_channel(self, request_id: int) -> tuple[int, OutputChannel]:
        conn = self._pending.get(request_id)
        if conn is None or conn.opened:
            raise UnknownRequestError(request_id)
        conn.opened = True
        return conn.variable_id, StreamOutputChannel(conn.writer)

    async def close_output_channel(self, request_id: int, channel: OutputChannel) -> None:
        conn = self._pending.pop(request_id, None)
        if conn is None:
            raise UnknownRequestError(request_id)
        await channel.close()
        conn.done.set()

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _resolve(self, name: str) -> int:
        if name not in self._handles:
            self._handles[name] = len(self._handles) + 1
        return self._handles[name]

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            line = await asyncio.wait_for(reader.readline(), timeout=NAME_READ_TIMEOUT)
        except (asyncio.TimeoutError, ConnectionError, ValueError) as exc:
            # ValueError: the line overran the stream reader's buffer limit.
            log.debug("client_dropped", error=type(exc).__name__)
            writer.close()
            return

        raw = line.strip()
        if not raw or len(raw) > MAX_NAME_LENGTH:
            log.debug("client_bad_request", length=len(raw))
            writer.close()
            return

        name = raw.decode("utf-8", errors="replace")
        variable_id = self._handles.get(name, VAR_INVALID)
        if NotifyKind.PRINT not in self._interest.get(variable_id, ()):
            log.debug("read_without_handler", name=name)
            writer.close()
            return

        request_id = next(self._request_ids)
        conn = _Connection(variable_id=variable_id, writer=writer)
        self._pending[request_id] = conn
        self._queue.put_nowait(TriggerEvent(TriggerKind.READ_REQUESTED, request_id))
        log.debug("read_requested", name=name, request_id=request_id)

        await conn.done.wait()
        if not writer.is_closing():
            writer.close()
