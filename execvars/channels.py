"""Output channels — where command output for one read request goes.

The variable server hands the dispatch loop one OutputChannel per read
request.  The executor only ever calls ``write``; the variable server owns
``close``.

  - FdOutputChannel      → raw file descriptor (``os.write``)
  - StreamOutputChannel  → asyncio StreamWriter (socket clients)
  - BufferOutputChannel  → in-memory buffer (embedding, tests)
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod


class OutputChannel(ABC):
    """Per-request conduit for command output."""

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write all of *data*.  Raises ``OSError`` when the reader is gone."""

    async def close(self) -> None:
        pass


class FdOutputChannel(OutputChannel):
    """Writes to a raw file descriptor.  A negative descriptor discards output.

    The descriptor is not owned: ``close`` leaves it open.
    """

    def __init__(self, fd: int) -> None:
        self.fd = fd

    async def write(self, data: bytes) -> None:
        if self.fd < 0:
            return
        view = memoryview(data)
        while view:
            written = os.write(self.fd, view)
            view = view[written:]


class StreamOutputChannel(OutputChannel):
    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def write(self, data: bytes) -> None:
        if self._writer.is_closing():
            raise BrokenPipeError("output stream is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def close(self) -> None:
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError):
            pass


class BufferOutputChannel(OutputChannel):
    """Collects output in memory."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self.writes = 0
        self.closed = False

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise BrokenPipeError("output buffer is closed")
        self._buffer.extend(data)
        self.writes += 1

    async def close(self) -> None:
        self.closed = True

    def getvalue(self) -> bytes:
        return bytes(self._buffer)
