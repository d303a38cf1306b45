"""execvars — serve variable reads with the live output of shell commands.

A caller reads a variable managed by the variable server; execvars receives
the read notification, runs the command bound to that variable and streams
its standard output back through the per-request output channel.

Architecture (bottom to top):
    1. Registry   — variable handle → command string, frozen after startup
    2. Executor   — one subprocess lifecycle per read, optional deadline
    3. Dispatch   — trigger loop with scoped output channels
    4. Daemon     — wiring, signal-driven shutdown, CLI entry point
"""

__version__ = "0.1.0"
__license__ = "MIT"

from execvars.models import CommandBinding, ExecutionOutcome, TriggerEvent, TriggerKind

__all__ = [
    "__version__",
    "CommandBinding",
    "ExecutionOutcome",
    "TriggerEvent",
    "TriggerKind",
]
