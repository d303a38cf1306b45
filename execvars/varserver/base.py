"""Variable server client — abstract interface.

execvars never owns the variables it serves.  A variable server resolves
names to handles, delivers read notifications for the handles a client
registered interest in, and opens a per-request output channel into which
the client writes the variable's value.

Swap the backend by injecting a different VarServerClient implementation:
  - LocalVarServer       → in-process, callers read through ``request_read``
  - UnixSocketVarServer  → each Unix socket connection is one read request

The dispatch loop and the registry never change when the backend changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from execvars.channels import OutputChannel
from execvars.models import NotifyKind, TriggerEvent


class VarServerClient(ABC):
    """Connection to a variable server.

    All methods are coroutines and are only called from the event loop that
    runs the dispatch loop.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the connection.  Raises ``VarServerUnavailableError`` on failure."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection.  Safe to call more than once."""

    @abstractmethod
    async def find_by_name(self, name: str) -> int:
        """Resolve *name* to a variable handle.  Raises ``VariableResolutionError``."""

    @abstractmethod
    async def register_interest(self, variable_id: int, kind: NotifyKind = NotifyKind.PRINT) -> None:
        """Ask to be notified of *kind* events for *variable_id*."""

    @abstractmethod
    async def wait_for_trigger(self) -> TriggerEvent:
        """Block until the next notification arrives."""

    @abstractmethod
    async def open_output_channel(self, request_id: int) -> tuple[int, OutputChannel]:
        """Open the output channel of a read request.

        Returns the requested variable handle and the channel.  Raises
        ``UnknownRequestError`` when *request_id* is not pending.
        """

    @abstractmethod
    async def close_output_channel(self, request_id: int, channel: OutputChannel) -> None:
        """Close the channel and complete the read request."""
