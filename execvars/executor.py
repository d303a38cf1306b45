"""Command executor — one subprocess lifecycle per read request.

The command string is run as ``<shell> -c <command>`` with its standard
output piped back.  Output is read in fixed-size chunks and every non-empty
chunk is forwarded to the request's output channel as soon as it arrives.

Two modes:
  - unbounded (``timeout <= 0``): stream until end-of-output and wait for
    the child to exit, however long that takes.
  - bounded (``timeout > 0``): streaming has one deadline.  When it passes
    before end-of-output, the child's process group and every descendant
    are killed and the outcome is ``TIMED_OUT``.  After end-of-output the
    child gets whatever is left of the budget to exit; one that overstays
    is killed, but the read already completed and the outcome is
    ``SUCCESS``.

Each child runs in its own session so that a timeout also reaches
background processes the command detached from the shell.

Whatever happens, the output pipe is closed and the child is reaped before
``run`` returns: a child still alive at that point (timeout, read error,
task cancellation at shutdown) is killed first.  Output already forwarded is
never retracted.
"""

from __future__ import annotations

import asyncio
import os
import signal
import time

import psutil

from execvars.channels import OutputChannel
from execvars.logging import get_logger
from execvars.models import ExecutionOutcome, ExecutorState

log = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 8192
REAP_TIMEOUT = 5.0


class _Forwarder:
    """Forwards chunks to the output channel and counts them.

    When the channel fails (caller went away) the failure is logged once and
    later chunks are dropped, so the child can still run to completion.
    """

    def __init__(self, channel: OutputChannel, command: str) -> None:
        self._channel = channel
        self._command = command
        self.broken = False
        self.bytes_forwarded = 0

    async def forward(self, chunk: bytes) -> None:
        if self.broken:
            return
        try:
            await self._channel.write(chunk)
        except OSError as exc:
            self.broken = True
            log.warning(
                "output_channel_write_failed",
                command=self._command,
                error=str(exc),
                bytes_forwarded=self.bytes_forwarded,
            )
            return
        self.bytes_forwarded += len(chunk)


def _kill_tree(pid: int) -> int:
    """SIGKILL *pid*, every descendant and the process group *pid* leads.

    Descendants are found by walking the process tree; processes that were
    reparented away from it are still reached through the process group.
    Returns the number of processes killed by the tree walk.
    """
    try:
        parent = psutil.Process(pid)
        victims = [parent, *parent.children(recursive=True)]
    except psutil.NoSuchProcess:
        victims = []

    killed = 0
    for proc in victims:
        try:
            proc.kill()
            killed += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning("command_kill_denied", pid=proc.pid)

    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        log.warning("command_group_kill_denied", pgid=pid)
    return killed


class CommandExecutor:
    """Runs command strings and streams their output.

    Only one command runs at a time; ``state`` reflects the most recent
    execution.

    Usage::

        executor = CommandExecutor()
        outcome = await executor.run("uptime", channel, timeout=5)
    """

    def __init__(self, shell: str = "/bin/sh", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._shell = shell
        self._chunk_size = chunk_size
        self.state = ExecutorState.IDLE

    async def run(
        self,
        command: str,
        channel: OutputChannel,
        timeout: float = 0,
    ) -> ExecutionOutcome:
        """Run *command*, forwarding its stdout to *channel*.

        Returns:
            SUCCESS           the output was streamed to end-of-output
            NOT_FOUND         the child could not be spawned
            TIMED_OUT         the deadline passed; the child was killed
            INVALID_ARGUMENT  reading the child's output failed (bounded mode)
        """
        self.state = ExecutorState.IDLE
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                self._shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            self.state = ExecutorState.FAILED
            log.error("command_spawn_failed", command=command, error=str(exc))
            return ExecutionOutcome.NOT_FOUND

        self.state = ExecutorState.SPAWNED
        log.debug("command_started", command=command, pid=proc.pid, timeout=timeout)

        forwarder = _Forwarder(channel, command)
        try:
            if timeout > 0:
                outcome = await self._run_bounded(proc, forwarder, command, timeout)
            else:
                outcome = await self._run_unbounded(proc, forwarder, command)
        finally:
            await self._reap(proc)

        log.debug(
            "command_finished",
            command=command,
            outcome=outcome.value,
            returncode=proc.returncode,
            bytes=forwarder.bytes_forwarded,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return outcome

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def _run_unbounded(
        self,
        proc: asyncio.subprocess.Process,
        forwarder: _Forwarder,
        command: str,
    ) -> ExecutionOutcome:
        try:
            await self._pump(proc, forwarder)
        except (OSError, ValueError) as exc:
            # Without a deadline the outcome only reflects whether the child
            # was spawned; the read error ends the stream early.
            log.warning("command_read_failed", command=command, error=str(exc))
            _close_stdout(proc)
        await proc.wait()
        self.state = ExecutorState.COMPLETED
        return ExecutionOutcome.SUCCESS

    async def _run_bounded(
        self,
        proc: asyncio.subprocess.Process,
        forwarder: _Forwarder,
        command: str,
        timeout: float,
    ) -> ExecutionOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            await asyncio.wait_for(self._pump(proc, forwarder), timeout=timeout)
        except asyncio.TimeoutError:
            self.state = ExecutorState.TIMED_OUT
            killed = _kill_tree(proc.pid)
            log.error(
                "command_timeout",
                command=command,
                timeout_seconds=timeout,
                killed=killed,
                bytes_forwarded=forwarder.bytes_forwarded,
            )
            return ExecutionOutcome.TIMED_OUT
        except (OSError, ValueError) as exc:
            self.state = ExecutorState.FAILED
            log.error("command_read_failed", command=command, error=str(exc))
            return ExecutionOutcome.INVALID_ARGUMENT

        self.state = ExecutorState.COMPLETED
        try:
            await asyncio.wait_for(proc.wait(), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            killed = _kill_tree(proc.pid)
            log.warning(
                "command_exit_overdue",
                command=command,
                timeout_seconds=timeout,
                killed=killed,
            )
        return ExecutionOutcome.SUCCESS

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _pump(self, proc: asyncio.subprocess.Process, forwarder: _Forwarder) -> None:
        """Forward chunks until end-of-output."""
        assert proc.stdout is not None
        self.state = ExecutorState.STREAMING
        while True:
            chunk = await proc.stdout.read(self._chunk_size)
            if not chunk:
                return
            await forwarder.forward(chunk)

    async def _reap(self, proc: asyncio.subprocess.Process) -> None:
        """Kill the child if it is still running, close its output pipe and
        collect its exit status.

        A process that escaped both the tree walk and the process group can
        keep the pipe's write end open; closing our end lets the wait finish
        when the child itself has exited.
        """
        if proc.returncode is None:
            killed = _kill_tree(proc.pid)
            if killed:
                log.debug("command_killed", pid=proc.pid, killed=killed)
        _close_stdout(proc)
        try:
            await asyncio.wait_for(proc.wait(), timeout=REAP_TIMEOUT)
        except asyncio.TimeoutError:
            log.error("command_reap_timeout", pid=proc.pid, timeout_seconds=REAP_TIMEOUT)


def _close_stdout(proc: asyncio.subprocess.Process) -> None:
    # asyncio.subprocess.Process has no public accessor for its pipe transports.
    transport = proc._transport.get_pipe_transport(1)
    if transport is not None and not transport.is_closing():
        transport.close()
