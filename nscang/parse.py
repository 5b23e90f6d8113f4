"""Turning input lines into monitoring commands."""

from __future__ import annotations

import logging
import time

log = logging.getLogger(__name__)

PROGRAM_NAME = "send_nsca"


class InputFormatError(ValueError):
    """Raised when a check result line has the wrong number of fields."""


def _timestamp(now: int | None) -> int:
    return int(time.time()) if now is None else int(now)


def escape(text: str) -> str:
    """Escape backslashes and newlines with a backslash."""
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def parse_command(line: str, now: int | None = None) -> str:
    """Return a raw command, prefixing a timestamp unless one is present."""
    log.debug("Parsing monitoring command")
    line = line.lstrip()
    if line.startswith("["):
        return line
    return f"[{_timestamp(now)}] {line}"


def parse_check_result(data: str, delimiter: str = "\t",
                       now: int | None = None) -> str:
    """Build a host or service check result command from delimited fields."""
    log.debug("Parsing check result")
    if "\\" in data or "\n" in data:
        data = escape(data)

    fields = data.split(delimiter, 3)
    stamp = _timestamp(now)
    match fields:
        case [host, status, output]:
            log.debug("Got host check result")
            return (
                f"[{stamp}] PROCESS_HOST_CHECK_RESULT;"
                f"{host};{status};{output}"
            )
        case [host, service, status, output]:
            log.debug("Got service check result")
            return (
                f"[{stamp}] PROCESS_SERVICE_CHECK_RESULT;"
                f"{host};{service};{status};{output}"
            )
        case _:
            raise InputFormatError(
                f"Input format incorrect, see the {PROGRAM_NAME}(8) man page"
            )