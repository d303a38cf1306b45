"""execvars — Exception hierarchy.

All exceptions raised by the daemon inherit from ExecVarsError so that
callers can catch the full family with a single except clause when needed.

Per-trigger problems never surface as exceptions from the dispatch loop;
they are reported as an ``ExecutionOutcome``.  The exceptions below cover
setup, the variable server boundary and registry misuse.

Hierarchy:
    ExecVarsError
    ├── ConfigError
    │   └── ConfigFileError
    ├── VarServerError
    │   ├── VarServerUnavailableError
    │   ├── VariableResolutionError
    │   └── UnknownRequestError
    └── RegistryError
        └── RegistryFrozenError
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ExecVarsError(Exception):
    """Base exception for all execvars errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(ExecVarsError):
    """Base for configuration errors."""


class ConfigFileError(ConfigError):
    """The command definition file is missing, unreadable or malformed."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(
            f"Cannot load command file '{path}': {reason}",
            context={"path": str(path), "reason": reason},
        )
        self.path = str(path)
        self.reason = reason


# ---------------------------------------------------------------------------
# Variable server boundary
# ---------------------------------------------------------------------------


class VarServerError(ExecVarsError):
    """Base for errors reported by the variable server client."""


class VarServerUnavailableError(VarServerError):
    """The connection to the variable server could not be opened."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Variable server unavailable: {reason}", context={"reason": reason})
        self.reason = reason


class VariableResolutionError(VarServerError):
    """A variable name could not be resolved to a handle."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Variable not found: '{name}'", context={"name": name})
        self.name = name


class UnknownRequestError(VarServerError):
    """A request id does not refer to a pending read request."""

    def __init__(self, request_id: int) -> None:
        super().__init__(
            f"No pending request with id {request_id}",
            context={"request_id": request_id},
        )
        self.request_id = request_id


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RegistryError(ExecVarsError):
    """Base for command registry errors."""


class RegistryFrozenError(RegistryError):
    """A binding was registered after startup completed."""

    def __init__(self, variable_id: int) -> None:
        super().__init__(
            f"Registry is read-only; cannot bind variable {variable_id}",
            context={"variable_id": variable_id},
        )
        self.variable_id = variable_id
