"""Dispatch loop — serves read notifications one at a time.

Serve flow::

    wait_for_trigger()
        ↓
    kind == READ_REQUESTED ?  ── no ──►  UNSUPPORTED (no channel opened)
        ↓ yes
    open_output_channel(request_id)  →  (variable_id, channel)
        ↓
    registry.lookup(variable_id)     ── miss ──►  NOT_FOUND
        ↓ hit
    executor.run(command, channel, timeout)
        ↓
    close_output_channel()            (always, whatever happened above)

Triggers are handled strictly in arrival order.  Nothing a trigger does
ends the loop; only cancellation of the task running ``run()`` does.  An
unexpected error while serving one trigger is logged and counted as
``INTERNAL``.
"""

from __future__ import annotations

from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator

from execvars.channels import OutputChannel
from execvars.exceptions import VarServerError
from execvars.executor import CommandExecutor
from execvars.logging import bind_request_context, clear_request_context, get_logger
from execvars.models import ExecutionOutcome, TriggerEvent, TriggerKind
from execvars.registry import CommandRegistry
from execvars.varserver.base import VarServerClient

log = get_logger(__name__)


class DispatchLoop:
    def __init__(
        self,
        varserver: VarServerClient,
        registry: CommandRegistry,
        executor: CommandExecutor,
        timeout: float = 0,
    ) -> None:
        self._varserver = varserver
        self._registry = registry
        self._executor = executor
        self._timeout = timeout if timeout > 0 else 0
        self.stats: Counter[ExecutionOutcome] = Counter()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def run(self) -> None:
        """Wait for and handle triggers until cancelled."""
        log.info(
            "dispatch_loop_started",
            bindings=len(self._registry),
            timeout_seconds=self._timeout or None,
        )
        while True:
            trigger = await self._varserver.wait_for_trigger()
            try:
                await self.handle(trigger)
            except Exception as exc:
                log.error(
                    "trigger_failed",
                    request_id=trigger.request_id,
                    kind=trigger.kind.value,
                    error=repr(exc),
                    exc_info=exc,
                )
                self.stats[ExecutionOutcome.INTERNAL] += 1

    async def handle(self, trigger: TriggerEvent) -> ExecutionOutcome:
        """Serve one trigger and return its outcome."""
        bind_request_context(request_id=trigger.request_id)
        try:
            outcome = await self._handle(trigger)
        finally:
            clear_request_context()
        self.stats[outcome] += 1
        return outcome

    async def _handle(self, trigger: TriggerEvent) -> ExecutionOutcome:
        if trigger.kind is not TriggerKind.READ_REQUESTED:
            log.debug("trigger_unsupported", kind=trigger.kind.value)
            return ExecutionOutcome.UNSUPPORTED

        try:
            async with self._output_channel(trigger.request_id) as (variable_id, channel):
                bind_request_context(variable_id=variable_id)
                command = self._registry.lookup(variable_id)
                if command is None:
                    log.warning("variable_not_registered")
                    return ExecutionOutcome.NOT_FOUND
                outcome = await self._executor.run(command, channel, self._timeout)
        except VarServerError as exc:
            log.error("output_channel_failed", error=exc.message)
            return ExecutionOutcome.INVALID_ARGUMENT

        if outcome.ok:
            log.debug("read_served", command=command)
        else:
            log.warning("read_failed", command=command, outcome=outcome.value)
        return outcome

    @asynccontextmanager
    async def _output_channel(
        self, request_id: int
    ) -> AsyncIterator[tuple[int, OutputChannel]]:
        variable_id, channel = await self._varserver.open_output_channel(request_id)
        try:
            yield variable_id, channel
        finally:
            await self._varserver.close_output_channel(request_id, channel)
