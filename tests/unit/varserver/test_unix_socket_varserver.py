"""Unit tests — varserver/unix_socket.py (UnixSocketVarServer)."""

from __future__ import annotations

import asyncio
import socket
from pathlib import Path

import pytest

from execvars.exceptions import UnknownRequestError, VarServerUnavailableError
from execvars.models import NotifyKind, TriggerKind
from execvars.varserver.unix_socket import MAX_NAME_LENGTH, UnixSocketVarServer


async def _request(path: Path, name: bytes) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    reader, writer = await asyncio.open_unix_connection(str(path))
    writer.write(name)
    await writer.drain()
    return reader, writer


@pytest.mark.unit
class TestUnixSocketVarServer:
    async def test_open_creates_socket_and_close_removes_it(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        await server.open()
        assert path.is_socket()
        await server.close()
        assert not path.exists()

    async def test_stale_socket_is_replaced(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        stale.bind(str(path))
        stale.close()
        assert path.is_socket()

        second = UnixSocketVarServer(path)
        await second.open()
        assert path.is_socket()
        await second.close()

    async def test_open_failure_is_unavailable(self, short_tmp: Path) -> None:
        server = UnixSocketVarServer(short_tmp / "missing-dir" / "ev.sock")
        with pytest.raises(VarServerUnavailableError):
            await server.open()

    async def test_names_resolve_to_stable_handles(self, short_tmp: Path) -> None:
        server = UnixSocketVarServer(short_tmp / "ev.sock")
        a = await server.find_by_name("/a")
        b = await server.find_by_name("/b")
        assert a != b
        assert await server.find_by_name("/a") == a

    async def test_connection_becomes_read_request(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        variable_id = await server.find_by_name("/sys/test/echo")
        await server.register_interest(variable_id, NotifyKind.PRINT)
        await server.open()
        try:
            reader, writer = await _request(path, b"/sys/test/echo\n")
            trigger = await asyncio.wait_for(server.wait_for_trigger(), timeout=2)
            assert trigger.kind is TriggerKind.READ_REQUESTED

            opened_id, channel = await server.open_output_channel(trigger.request_id)
            assert opened_id == variable_id
            await channel.write(b"hello\n")
            await server.close_output_channel(trigger.request_id, channel)

            assert await asyncio.wait_for(reader.read(), timeout=2) == b"hello\n"
            writer.close()
        finally:
            await server.close()

    @pytest.mark.parametrize("name", [b"/never/bound\n", b"/resolved/only\n"])
    async def test_name_without_interest_is_answered_empty(
        self, short_tmp: Path, name: bytes
    ) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        await server.find_by_name("/resolved/only")
        await server.open()
        try:
            reader, writer = await _request(path, name)
            assert await asyncio.wait_for(reader.read(), timeout=2) == b""
            writer.close()
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(server.wait_for_trigger(), timeout=0.2)
        finally:
            await server.close()

    async def test_name_length_is_counted_in_bytes(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        name = "/" + "é" * (MAX_NAME_LENGTH // 2)
        await server.register_interest(await server.find_by_name(name), NotifyKind.PRINT)
        await server.open()
        try:
            reader, writer = await _request(path, name.encode() + b"\n")
            assert await asyncio.wait_for(reader.read(), timeout=2) == b""
            writer.close()
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(server.wait_for_trigger(), timeout=0.2)
        finally:
            await server.close()

    async def test_name_over_stream_limit_closes_connection(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        await server.open()
        try:
            reader, writer = await _request(path, b"/" + b"x" * 70_000 + b"\n")
            try:
                output = await asyncio.wait_for(reader.read(), timeout=2)
            except ConnectionResetError:
                output = b""
            assert output == b""
            writer.close()
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(server.wait_for_trigger(), timeout=0.2)
        finally:
            await server.close()

    async def test_empty_name_is_dropped(self, short_tmp: Path) -> None:
        path = short_tmp / "ev.sock"
        server = UnixSocketVarServer(path)
        await server.open()
        try:
            reader, writer = await _request(path, b"\n")
            assert await asyncio.wait_for(reader.read(), timeout=2) == b""
            writer.close()
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(server.wait_for_trigger(), timeout=0.2)
        finally:
            await server.close()

    async def test_unknown_request_id(self, short_tmp: Path) -> None:
        server = UnixSocketVarServer(short_tmp / "ev.sock")
        with pytest.raises(UnknownRequestError):
            await server.open_output_channel(12345)
