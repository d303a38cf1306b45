"""Variable server clients."""

from execvars.varserver.base import VarServerClient
from execvars.varserver.local import LocalVarServer
from execvars.varserver.unix_socket import UnixSocketVarServer

__all__ = ["VarServerClient", "LocalVarServer", "UnixSocketVarServer"]
