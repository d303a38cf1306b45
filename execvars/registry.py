"""Command registry — variable handle → command string.

The registry is built once at startup from the command file and frozen
before the dispatch loop starts; from then on it is only read.

Binding the same variable twice keeps the binding registered last.  With the
command file processed top to bottom, that is the entry that appears last in
the file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Iterator

from execvars.exceptions import RegistryFrozenError, VarServerError
from execvars.loader import parse_entry
from execvars.logging import get_logger
from execvars.models import CommandBinding, NotifyKind

if TYPE_CHECKING:
    from execvars.varserver.base import VarServerClient

log = get_logger(__name__)


class CommandRegistry:
    """Maps variable handles to the command that produces their value.

    Usage::

        registry = CommandRegistry()
        registry.register(17, "uptime")
        registry.freeze()

        registry.lookup(17)   # "uptime"
        registry.lookup(99)   # None
    """

    def __init__(self) -> None:
        self._bindings: dict[int, CommandBinding] = {}
        self._frozen = False

    def register(self, variable_id: int, command: str) -> None:
        """Bind *command* to *variable_id*, replacing any earlier binding."""
        if self._frozen:
            raise RegistryFrozenError(variable_id)
        previous = self._bindings.get(variable_id)
        if previous is not None:
            log.info(
                "command_binding_replaced",
                variable_id=variable_id,
                previous=previous.command,
                command=command,
            )
        self._bindings[variable_id] = CommandBinding(variable_id=variable_id, command=command)

    def lookup(self, variable_id: int) -> str | None:
        binding = self._bindings.get(variable_id)
        return binding.command if binding is not None else None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def bindings(self) -> Iterator[CommandBinding]:
        return iter(list(self._bindings.values()))

    def __contains__(self, variable_id: object) -> bool:
        return variable_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)


async def build_registry(
    entries: Iterable[dict[str, Any]],
    varserver: "VarServerClient",
) -> CommandRegistry:
    """Build and freeze a registry from raw command file entries.

    For every usable entry the variable name is resolved through the
    variable server, and the server is told that this client serves print
    requests for the handle.  Entries that cannot be set up are logged and
    skipped; they never abort the remaining ones.
    """
    registry = CommandRegistry()
    skipped = 0

    for raw in entries:
        entry = parse_entry(raw)
        if entry is None:
            skipped += 1
            continue

        try:
            variable_id = await varserver.find_by_name(entry.var)
        except VarServerError as exc:
            log.warning("variable_resolution_failed", var=entry.var, error=exc.message)
            skipped += 1
            continue

        try:
            await varserver.register_interest(variable_id, NotifyKind.PRINT)
        except VarServerError as exc:
            log.warning("variable_interest_failed", var=entry.var, error=exc.message)
            skipped += 1
            continue

        registry.register(variable_id, entry.command)
        log.debug("command_bound", var=entry.var, variable_id=variable_id, command=entry.command)

    registry.freeze()
    log.info("registry_built", bindings=len(registry), skipped=skipped)
    return registry
