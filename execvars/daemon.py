"""ExecVarsDaemon — wires the variable server, registry, executor and dispatch loop.

Lifecycle::

    open variable server        (fatal on failure)
        ↓
    build_registry(entries)     (bad entries skipped, registry frozen)
        ↓
    install SIGINT/SIGTERM handlers
        ↓
    DispatchLoop.run()  ──────────────┐
        ↓ shutdown requested          │ (never returns on its own)
    cancel dispatch, reap command  ◄──┘
        ↓
    close variable server, exit status 1

Startup from the CLI::

    daemon = ExecVarsDaemon(
        varserver=UnixSocketVarServer(settings.varserver.socket_path),
        entries=load_command_entries(command_file),
        executor=CommandExecutor(shell=settings.exec.shell),
        timeout=settings.exec.timeout_seconds,
    )
    exit_code = asyncio.run(daemon.serve())
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any, Iterable

from execvars.dispatch import DispatchLoop
from execvars.executor import CommandExecutor
from execvars.logging import get_logger
from execvars.registry import CommandRegistry, build_registry
from execvars.shutdown import ShutdownHandler
from execvars.varserver.base import VarServerClient

log = get_logger(__name__)

EXIT_ABNORMAL = 1


class ExecVarsDaemon:
    def __init__(
        self,
        varserver: VarServerClient,
        entries: Iterable[dict[str, Any]],
        executor: CommandExecutor | None = None,
        timeout: float = 0,
        shutdown: ShutdownHandler | None = None,
    ) -> None:
        self._varserver = varserver
        self._entries = list(entries)
        self._executor = executor or CommandExecutor()
        self._timeout = timeout
        self._shutdown = shutdown or ShutdownHandler()
        self._registry: CommandRegistry | None = None
        self._dispatch: DispatchLoop | None = None
        self._started = False

    @property
    def registry(self) -> CommandRegistry | None:
        return self._registry

    @property
    def dispatch(self) -> DispatchLoop | None:
        return self._dispatch

    @property
    def shutdown(self) -> ShutdownHandler:
        return self._shutdown

    async def start(self) -> None:
        """Open the variable server and build the registry.

        Raises ``VarServerUnavailableError`` when the server cannot be opened.
        """
        if self._started:
            return
        await self._varserver.open()
        self._started = True
        self._registry = await build_registry(self._entries, self._varserver)
        self._dispatch = DispatchLoop(
            self._varserver,
            self._registry,
            self._executor,
            timeout=self._timeout,
        )

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        await self._varserver.close()
        log.info("execvars_stopped")

    async def serve(self, install_signals: bool = True) -> int:
        """Run until shutdown is requested and return the process exit status."""
        await self.start()
        assert self._dispatch is not None

        if install_signals:
            self._shutdown.install()

        dispatch_task = asyncio.create_task(self._dispatch.run(), name="execvars_dispatch")
        shutdown_task = asyncio.create_task(self._shutdown.wait(), name="execvars_shutdown")
        try:
            done, _ = await asyncio.wait(
                {dispatch_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if shutdown_task in done:
                signum = shutdown_task.result()
                log.error("abnormal_termination", signal=signal.Signals(signum).name)
            else:
                exc = dispatch_task.exception()
                log.error("dispatch_loop_failed", error=repr(exc), exc_info=exc)
        finally:
            for task in (dispatch_task, shutdown_task):
                task.cancel()
            await asyncio.gather(dispatch_task, shutdown_task, return_exceptions=True)
            if install_signals:
                self._shutdown.uninstall()
            await self.stop()

        return EXIT_ABNORMAL
