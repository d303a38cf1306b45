"""Command definition file loader.

The command file maps variable names to shell command sequences::

    {
        "commands" : [
            { "var" : "/sys/network/mac",
              "exec" : "ifconfig eth0 | grep ether | awk {'print $2'}" },
            { "var" : "/sys/info/uptime",
              "exec" : "uptime" }
        ]
    }

``load_command_entries`` only checks the outer shape.  Individual entries
are validated by ``parse_entry`` while the registry is built, so that one
bad entry never prevents the others from being served.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from execvars.exceptions import ConfigFileError
from execvars.logging import get_logger
from execvars.models import CommandEntry

log = get_logger(__name__)


def load_command_entries(path: Path | str) -> list[dict[str, Any]]:
    """Read *path* and return the raw objects of its ``commands`` array."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigFileError(path, exc.strerror or str(exc)) from exc

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigFileError(path, f"invalid JSON: {exc.msg} (line {exc.lineno})") from exc

    if not isinstance(document, dict):
        raise ConfigFileError(path, "top-level value must be an object")

    commands = document.get("commands")
    if not isinstance(commands, list):
        raise ConfigFileError(path, "'commands' must be an array")

    entries: list[dict[str, Any]] = []
    for index, item in enumerate(commands):
        if not isinstance(item, dict):
            log.warning("command_entry_not_object", path=str(path), index=index)
            continue
        entries.append(item)

    log.debug("command_file_loaded", path=str(path), entries=len(entries))
    return entries


def parse_entry(raw: dict[str, Any]) -> CommandEntry | None:
    """Validate one raw entry.  Returns None when ``var`` or ``exec`` is unusable."""
    try:
        return CommandEntry.model_validate(raw)
    except ValidationError as exc:
        log.warning(
            "command_entry_skipped",
            var=raw.get("var"),
            errors=[".".join(str(p) for p in e["loc"]) for e in exc.errors()],
        )
        return None
