"""Conversation with the server that submits results read from a stream."""

from __future__ import annotations

import base64
import enum
import logging
import re
import secrets
from typing import Iterator, Protocol, TextIO

from nscang.parse import parse_check_result, parse_command

log = logging.getLogger(__name__)

DEFAULT_DELIMITER = "\t"
DEFAULT_SEPARATOR = "\x17"
PROTOCOL_VERSION = 1

_SESSION_ID_BYTES = 6
_READ_SIZE = 128
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ClientMode(enum.Enum):
    """How input records are turned into monitoring commands."""

    COMMAND = 0
    CHECK_RESULT = 1


class ServerError(RuntimeError):
    """Raised when the server refuses a request or the dialogue breaks down."""


class _Connection(Protocol):
    def write(self, data: bytes) -> None: ...

    def read_line(self) -> str: ...

    def close(self) -> None: ...


def read_chunks(stream: TextIO, separator: str = DEFAULT_SEPARATOR
                ) -> Iterator[str]:
    """Yield the records of ``stream`` split at ``separator``.

    The separator itself is dropped; data left over at end of input is
    yielded as a final record if it is not empty.
    """
    buffer = ""
    while True:
        block = stream.read(_READ_SIZE)
        if not block:
            break
        buffer += block
        *complete, buffer = buffer.split(separator)
        yield from complete
    if buffer:
        yield buffer


def _session_id() -> str:
    return base64.b64encode(secrets.token_bytes(_SESSION_ID_BYTES)).decode()


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _chomp(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    return text.removesuffix("\n")


class Session:
    """Submits every record of an input stream over one connection."""

    def __init__(self, connection: _Connection,
                 mode: ClientMode = ClientMode.CHECK_RESULT,
                 delimiter: str = DEFAULT_DELIMITER,
                 separator: str = DEFAULT_SEPARATOR) -> None:
        self.connection = connection
        self.mode = mode
        self.delimiter = delimiter
        self.separator = "\n" if mode is ClientMode.COMMAND else separator

    def _send_line(self, line: str) -> None:
        log.info("C: %s", line)
        self.connection.write(line.encode("utf-8") + b"\n")

    def _receive(self) -> str:
        line = self.connection.read_line()
        log.info("S: %s", line)
        return line

    def _bail(self, message: str) -> ServerError:
        log.info("C: BAIL %s", message)
        self.connection.write(f"BAIL {message}\n".encode("utf-8"))
        log.critical("%s", message)
        return ServerError(message)

    def _check(self, line: str, complaint: str) -> None:
        """Raise unless ``line`` is an OKAY reply."""
        if line.lower() == "okay":
            return
        self._raise_for(line, complaint)

    def _raise_for(self, line: str, complaint: str) -> None:
        if line[:4].lower() in ("fail", "bail"):
            log.critical("Server said: %s", line)
            raise ServerError(f"Server said: {line}")
        raise self._bail(complaint)

    def _handshake(self) -> None:
        self._send_line(f"MOIN {PROTOCOL_VERSION} {_session_id()}")
        line = self._receive()
        if line[:4].lower() != "moin":
            self._raise_for(line, "Received unexpected MOIN response")
        args = line.split(maxsplit=1)
        if len(args) != 2:
            raise self._bail("Cannot parse MOIN response")
        version = _atoi(args[1])
        if version <= 0:
            raise self._bail("Expected protocol version")
        if version != PROTOCOL_VERSION:
            raise self._bail(f"Protocol version {version} not supported")
        log.debug("Protocol handshake successful")

    def _command_for(self, data: str) -> str:
        if self.mode is ClientMode.CHECK_RESULT:
            return parse_check_result(_chomp(data), self.delimiter)
        return parse_command(data)

    def _push(self, command: str) -> None:
        payload = (command + "\n").encode("utf-8")
        self._send_line(f"PUSH {len(payload)}")
        self._check(self._receive(), "Received unexpected PUSH response")
        log.info("Transmitting: %s", command)
        self.connection.write(payload)
        self._check(
            self._receive(),
            "Received unexpected response after sending command(s)",
        )

    def run(self, stream: TextIO) -> None:
        """Submit all records from ``stream``, then end the session."""
        try:
            self._handshake()
            for chunk in read_chunks(stream, self.separator):
                data = chunk.lstrip("\r\n")
                if not data:
                    continue
                self._push(self._command_for(data))
            self._send_line("QUIT")
            self._check(self._receive(), "Received unexpected QUIT response")
        finally:
            self.connection.close()