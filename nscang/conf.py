"""Client configuration file handling."""

from __future__ import annotations

import logging
import re
import socket
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Iterator

log = logging.getLogger(__name__)

DEFAULT_CONF_FILE = "/etc/send_nsca.cfg"
DEFAULT_PORT = "5668"
DEFAULT_SERVER = "localhost"
DEFAULT_TIMEOUT = 15
DEFAULT_TLS_CIPHERS = (
    "PSK-AES256-CBC-SHA:PSK-AES128-CBC-SHA:PSK-3DES-EDE-CBC-SHA:PSK-RC4-SHA"
)
MAX_VALUE_LENGTH = 2047

_CHANGE_ME = "change-me"

_INTEGER_KEYS = frozenset({"delay", "timeout"})
_KEY_CHARS = re.compile(r"[^ \t=]*")
_INTEGER = re.compile(
    r"[ \t\n\v\f\r]*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)"
)


class ConfigError(Exception):
    """Raised when the configuration cannot be read or parsed."""


@dataclass
class Config:
    """Settings of the check result submission client."""

    delay: int = 0
    encryption_method: str | None = None
    identity: str | None = None
    password: str = field(default=_CHANGE_ME, repr=False)
    port: str = DEFAULT_PORT
    server: str = DEFAULT_SERVER
    timeout: int = DEFAULT_TIMEOUT
    tls_ciphers: str = DEFAULT_TLS_CIPHERS


_KEYS = frozenset(f.name for f in fields(Config))


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (line number, line) pairs, joining backslash continuations."""
    number = 0
    pending = ""
    for match in re.finditer(r"[^\n]*\n|[^\n]+\Z", text):
        physical = match.group()
        number += 1
        if len(physical) >= 2:
            if physical[-2] == "\\":
                pending += physical[:-2]
                continue
            if physical[-2] == "\r":
                physical = physical[:-2] + "\n"
        line = pending + physical
        pending = ""
        yield number, line.removesuffix("\n")
    if pending:
        yield number, pending


def _to_integer(value: str) -> int | None:
    """Convert like strtol with base 0; None if trailing junk remains."""
    if value == "":
        return 0
    match = _INTEGER.fullmatch(value)
    if match is None:
        return None
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        number = int(digits, 16)
    elif digits.startswith("0"):
        number = int(digits, 8)
    else:
        number = int(digits, 10)
    return -number if sign == "-" else number


def _parse_value(rest: str, where: str, key: str) -> str:
    quote = None
    if rest[0] in "\"'":
        quote = rest[0]
        rest = rest[1:]
    chars: list[str] = []
    escaped = False
    consumed = len(rest)
    for index, char in enumerate(rest):
        if len(chars) >= MAX_VALUE_LENGTH:
            raise ConfigError(f"{where}: Value of `{key}' is too long")
        if escaped:
            chars.append(char)
            escaped = False
            continue
        if char == quote or (quote is None and char in "# \t"):
            consumed = index + 1
            break
        if char == "\\":
            escaped = True
        else:
            chars.append(char)
    value = "".join(chars)
    tail = rest[consumed:].lstrip()
    if tail and not tail.startswith("#"):
        raise ConfigError(f"{where}: Unexpected stuff after `{value}'")
    return value


def _parse_line(line: str, where: str) -> tuple[str, str | int] | None:
    token = line.lstrip()
    if not token or token.startswith("#"):
        return None

    name = _KEY_CHARS.match(token).group()
    if not name:
        raise ConfigError(f"{where}: Cannot parse line")
    if name not in _KEYS:
        raise ConfigError(f"{where}: Unknown variable name `{name}'")

    rest = token[len(name):].lstrip()
    if not rest.startswith("="):
        raise ConfigError(f"{where}: Expected `=' after `{name}'")

    rest = rest[1:].lstrip()
    if not rest or rest.startswith("#"):
        raise ConfigError(f"{where}: No value assigned to `{name}'")

    value = _parse_value(rest, where, name)
    log.debug("%s: setting %s", where, name)

    if name in _INTEGER_KEYS:
        number = _to_integer(value)
        if number is None:
            raise ConfigError(
                f"{where}: Nonnumeric value assigned to `{name}'"
            )
        return name, number
    return name, value


def parse_config(text: str, path: str = "<string>") -> Config:
    """Parse configuration text; ``path`` is used in error messages."""
    config = Config()
    for number, line in _logical_lines(text):
        entry = _parse_line(line, f"{path}:{number}")
        if entry is not None:
            key, value = entry
            setattr(config, key, value)
    return config


def load_config(path: str | Path = DEFAULT_CONF_FILE) -> Config:
    """Read a configuration file, defaulting the identity to the host name."""
    try:
        with open(path, encoding="utf-8", errors="surrogateescape",
                  newline="") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigError(f"Cannot open {path}: {exc.strerror}") from exc

    config = parse_config(text, str(path))
    if config.identity is None:
        try:
            config.identity = socket.gethostname()
        except OSError as exc:
            raise ConfigError(f"Cannot get host name: {exc}") from exc
    return config