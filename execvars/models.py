"""execvars data models.

Key classes
-----------
TriggerKind       — kind of notification delivered by the variable server
NotifyKind        — kind of notification a client subscribes to
TriggerEvent      — transient notification consumed once by the dispatch loop
ExecutionOutcome  — result of serving one trigger
ExecutorState     — lifecycle of one command execution
CommandBinding    — variable handle → command string (registry unit)
CommandEntry      — one validated entry of the command definition file
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Handle returned for names the variable server does not know.
VAR_INVALID = 0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TriggerKind(str, Enum):
    """Kind of notification received from the variable server."""

    READ_REQUESTED = "read_requested"
    MODIFIED = "modified"
    VALIDATE = "validate"


class NotifyKind(str, Enum):
    """Kind of notification a client registers interest in."""

    PRINT = "print"
    MODIFIED = "modified"


class ExecutionOutcome(str, Enum):
    """Result of serving one trigger.

    ``errno`` gives the POSIX error number a C variable-server client would
    have reported for the same result.
    """

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    UNSUPPORTED = "unsupported"
    INVALID_ARGUMENT = "invalid_argument"
    TIMED_OUT = "timed_out"
    INTERNAL = "internal"

    @property
    def errno(self) -> int:
        return _OUTCOME_ERRNO[self]

    @property
    def ok(self) -> bool:
        return self is ExecutionOutcome.SUCCESS


_OUTCOME_ERRNO: dict[ExecutionOutcome, int] = {
    ExecutionOutcome.SUCCESS: 0,
    ExecutionOutcome.NOT_FOUND: errno.ENOENT,
    ExecutionOutcome.UNSUPPORTED: errno.ENOTSUP,
    ExecutionOutcome.INVALID_ARGUMENT: errno.EINVAL,
    ExecutionOutcome.TIMED_OUT: errno.ETIMEDOUT,
    ExecutionOutcome.INTERNAL: errno.ENOMEM,
}


class ExecutorState(str, Enum):
    """Lifecycle of one command execution.

    State machine::

        IDLE → SPAWNED → STREAMING → COMPLETED
                                   → TIMED_OUT  (deadline hit, child killed)
                                   → FAILED     (spawn or read error)
    """

    IDLE = "idle"
    SPAWNED = "spawned"
    STREAMING = "streaming"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TriggerEvent:
    """A notification received from the variable server.

    The variable handle and the output channel are obtained by opening the
    output channel for ``request_id``.
    """

    kind: TriggerKind
    request_id: int


@dataclass(frozen=True)
class CommandBinding:
    variable_id: int
    command: str


class CommandEntry(BaseModel):
    """One ``{"var": ..., "exec": ...}`` object from the command file."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    var: str = Field(min_length=1, description="Variable name, e.g. '/sys/info/uptime'.")
    command: str = Field(alias="exec", min_length=1, description="Shell command string.")
