"""execvars CLI — Entry point.

Usage:
    execvars -f /etc/execvars/commands.json
    execvars -f commands.json -t 5 -v
    execvars -f commands.json -s /run/execvars.sock -c /etc/execvars/config.yaml
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from execvars.config import Settings
from execvars.daemon import ExecVarsDaemon
from execvars.exceptions import ConfigFileError, VarServerUnavailableError
from execvars.executor import CommandExecutor
from execvars.loader import load_command_entries
from execvars.logging import configure_logging, get_logger
from execvars.varserver.unix_socket import UnixSocketVarServer

app = typer.Typer(
    name="execvars",
    help="Serve variable reads with the output of predefined shell commands.",
    add_completion=False,
    pretty_exceptions_enable=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

err_console = Console(stderr=True)
log = get_logger(__name__)

USAGE = (
    "usage: execvars [-v] [-h] [-t <timeout>] -f <filename>\n"
    " [-h] : display this help\n"
    " [-v] : verbose output\n"
    " [-t] : timeout in seconds (kills commands that run longer)\n"
    " -f <filename> : configuration file"
)


@app.command()
def main(
    file: Annotated[
        Path | None, typer.Option("--file", "-f", help="JSON file mapping variables to commands.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output.")] = False,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", "-t", help="Kill commands running longer than this many seconds."),
    ] = None,
    socket_path: Annotated[
        Path | None, typer.Option("--socket", "-s", help="Unix socket to accept read requests on.")
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Start the execvars daemon."""
    if file is None:
        err_console.print(USAGE, markup=False, highlight=False)
        raise typer.Exit(1)

    settings = Settings.load(config_file=config)
    if timeout is not None:
        settings.exec.timeout_seconds = max(timeout, 0)
    if socket_path is not None:
        settings.varserver.socket_path = socket_path

    configure_logging(
        level="debug" if verbose else settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    try:
        entries = load_command_entries(file)
    except ConfigFileError as exc:
        log.error("command_file_invalid", path=exc.path, reason=exc.reason)
        err_console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(1)

    daemon = ExecVarsDaemon(
        varserver=UnixSocketVarServer(
            settings.varserver.socket_path, backlog=settings.varserver.backlog
        ),
        entries=entries,
        executor=CommandExecutor(shell=settings.exec.shell, chunk_size=settings.exec.chunk_size),
        timeout=settings.exec.timeout_seconds,
    )

    try:
        exit_code = asyncio.run(daemon.serve())
    except VarServerUnavailableError as exc:
        log.error("varserver_unavailable", reason=exc.reason)
        err_console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(1)

    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
