"""Command line client that submits check results read from standard input."""

from __future__ import annotations

import enum
import getopt
import logging
import logging.handlers
import os
import re
import secrets
import socket
import ssl
import sys
import time
from contextlib import suppress
from dataclasses import dataclass

from nscang.auth import make_psk_callback
from nscang.conf import DEFAULT_CONF_FILE, Config, ConfigError, load_config
from nscang.parse import PROGRAM_NAME, InputFormatError
from nscang.session import (
    DEFAULT_DELIMITER,
    DEFAULT_SEPARATOR,
    ClientMode,
    ServerError,
    Session,
)

log = logging.getLogger(__name__)

VERSION = "1.6"
NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")

_VERBOSITY = (NOTICE, logging.INFO, logging.DEBUG)
_CHAR_MAX = 127
_NUMERIC = re.compile(r"0[xX][0-9a-fA-F]+|0[0-7]*")
_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n",
    "r": "\r", "t": "\t", "v": "\v",
}
_ILLEGAL_DELIMITERS = frozenset({"\x17", "\n", "\0", "\\"})
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_SHORT_OPTIONS = "Cc:D:d:e:H:ho:p:SstVv"
_READ_SIZE = 4096

_USAGE = """\
Usage: {prog} [<options>]

Options:
 -C               Accept `raw' monitoring commands.
 -c <file>        Use the specified configuration <file>.
 -D <delay>       Sleep up to <delay> seconds on startup.
 -d <delimiter>   Expect <delimiter> to separate input fields.
 -e <separator>   Expect <separator> to separate check results.
 -H <server>      Connect and talk to the specified <server>.
 -h               Print this usage information and exit.
 -o <timeout>     Use the specified connection <timeout>.
 -p <port>        Connect to the specified <port> on the server.
 -S               Write messages to the standard error output.
 -s               Write messages to syslog.
 -t               Ignore this option for backward compatibility.
 -V               Print version information and exit.
 -v [-v [-v]]     Increase the verbosity level.
"""


class UsageError(Exception):
    """Raised when the command line cannot be accepted."""

    def __init__(self, message: str, show_usage: bool = False) -> None:
        super().__init__(message)
        self.show_usage = show_usage


class LogTarget(enum.Flag):
    """Where log messages are written."""

    STDERR = enum.auto()
    SYSLOG = enum.auto()


@dataclass
class Options:
    """Settings given on the command line."""

    conf_file: str | None = None
    port: str | None = None
    server: str | None = None
    delay: int | None = None
    log_level: int | None = None
    log_target: LogTarget | None = None
    timeout: int | None = None
    delimiter: str = DEFAULT_DELIMITER
    separator: str = DEFAULT_SEPARATOR
    raw_commands: bool = False
    show_help: bool = False
    show_version: bool = False


def _version() -> str:
    return f"{PROGRAM_NAME} (NSCA-ng {VERSION})"


def _usage() -> str:
    return _USAGE.format(prog=PROGRAM_NAME)


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_backslash_escape(sequence: str) -> int | None:
    """Return the character code a single character or escape denotes.

    Accepts a literal character, the usual backslash escapes, and octal
    or hexadecimal codes written as ``0101``, ``0x41``, ``\\101`` or
    ``\\x41``.  Returns None if the sequence is not understood.
    """
    length = len(sequence)
    if length == 1:
        return ord(sequence)
    if length == 2 and sequence[0] == "\\" and sequence[1] in _SIMPLE_ESCAPES:
        return ord(_SIMPLE_ESCAPES[sequence[1]])
    if 2 <= length <= 5 and sequence[0] in "0\\":
        numeric = "0" + sequence[1:]
        if _NUMERIC.fullmatch(numeric):
            value = int(numeric, 0) if numeric[:2].lower() == "0x" \
                else int(numeric, 8)
            if 0 <= value <= _CHAR_MAX:
                return value
    return None


def _next_verbosity(level: int | None) -> int:
    if level is None:
        return _VERBOSITY[0]
    index = _VERBOSITY.index(level)
    return _VERBOSITY[min(index + 1, len(_VERBOSITY) - 1)]


def parse_options(argv: list[str]) -> Options:
    """Parse command line arguments (without the program name)."""
    options = Options()
    if argv == ["--help"]:
        options.show_help = True
        return options
    if argv == ["--version"]:
        options.show_version = True
        return options

    try:
        pairs, rest = getopt.getopt(argv, _SHORT_OPTIONS)
    except getopt.GetoptError as exc:
        raise UsageError(str(exc), show_usage=True) from exc

    for flag, value in pairs:
        match flag:
            case "-C":
                options.raw_commands = True
            case "-c":
                options.conf_file = value
            case "-D":
                options.delay = _atoi(value)
                if options.delay < 0:
                    raise UsageError("-D argument must be a positive integer")
            case "-d":
                code = parse_backslash_escape(value)
                if code is None:
                    raise UsageError("-d argument must be a single character")
                if chr(code) in _ILLEGAL_DELIMITERS:
                    raise UsageError("Illegal delimiter specified with -d")
                options.delimiter = chr(code)
            case "-e":
                code = parse_backslash_escape(value)
                if code is None:
                    raise UsageError("-e argument must be a single character")
                options.separator = chr(code)
            case "-H":
                options.server = value
            case "-h":
                options.show_help = True
                return options
            case "-o":
                options.timeout = _atoi(value)
                if options.timeout < 0:
                    raise UsageError("-o argument must be a positive integer")
            case "-p":
                options.port = value
            case "-S":
                options.log_target = (options.log_target or LogTarget(0)) \
                    | LogTarget.STDERR
            case "-s":
                options.log_target = (options.log_target or LogTarget(0)) \
                    | LogTarget.SYSLOG
            case "-t":
                log.log(NOTICE, "Ignoring -t option for backward compatibility")
            case "-V":
                options.show_version = True
                return options
            case "-v":
                options.log_level = _next_verbosity(options.log_level)

    if options.delimiter == options.separator:
        raise UsageError(
            "Field delimiter must be different from record separator"
        )
    if rest:
        raise UsageError(f"Unexpected non-option argument: {rest[0]}")
    return options


def random_delay(max_delay: int) -> float:
    """Return a random number of seconds below ``max_delay``."""
    if max_delay <= 0:
        return 0.0
    seconds = secrets.randbelow(max_delay)
    nanoseconds = secrets.randbelow(1_000_000_000)
    return seconds + nanoseconds / 1_000_000_000


def _configure_logging(level: int, target: LogTarget) -> None:
    logger = logging.getLogger("nscang")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False
    formatter = logging.Formatter(f"{PROGRAM_NAME}: %(message)s")
    if LogTarget.STDERR in target:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    if LogTarget.SYSLOG in target:
        if os.path.exists("/dev/log"):
            syslog = logging.handlers.SysLogHandler(address="/dev/log")
        else:
            syslog = logging.handlers.SysLogHandler()
        syslog.setFormatter(formatter)
        logger.addHandler(syslog)


class _TlsConnection:
    """A TLS-PSK connection that exchanges newline-terminated lines."""

    def __init__(self, config: Config, timeout: float | None) -> None:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        context.set_ciphers(config.tls_ciphers)
        context.set_psk_client_callback(
            make_psk_callback(config.identity or "", config.password)
        )
        raw = socket.create_connection((config.server, config.port),
                                       timeout=timeout)
        try:
            self._sock = context.wrap_socket(
                raw, server_hostname=config.server
            )
        except BaseException:
            raw.close()
            raise
        self._pending = b""

    def write(self, data: bytes) -> None:
        self._sock.sendall(data)

    def read_line(self) -> str:
        while b"\n" not in self._pending:
            chunk = self._sock.recv(_READ_SIZE)
            if not chunk:
                raise ConnectionError("Connection closed by server")
            self._pending += chunk
        raw, _, self._pending = self._pending.partition(b"\n")
        return raw.removesuffix(b"\r").decode("utf-8", errors="replace")

    def close(self) -> None:
        with suppress(OSError, ValueError):
            self._sock.unwrap()
        with suppress(OSError):
            self._sock.close()


def _apply_overrides(config: Config, options: Options) -> None:
    if options.port is not None:
        config.port = options.port
    if options.server is not None:
        config.server = options.server
    if options.delay is not None:
        config.delay = options.delay
    if options.timeout is not None:
        config.timeout = options.timeout


def main(argv: list[str] | None = None) -> int:
    """Run the client; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    _configure_logging(logging.WARNING, LogTarget.STDERR)

    try:
        options = parse_options(args)
    except UsageError as exc:
        print(f"{PROGRAM_NAME}: {exc}", file=sys.stderr)
        if exc.show_usage:
            print(_usage(), file=sys.stderr, end="")
        return 1
    if options.show_help:
        print(_usage(), end="")
        return 0
    if options.show_version:
        print(_version())
        return 0

    try:
        config = load_config(options.conf_file or DEFAULT_CONF_FILE)
    except ConfigError as exc:
        log.critical("%s", exc)
        return 1
    _apply_overrides(config, options)

    _configure_logging(
        options.log_level if options.log_level is not None
        else logging.WARNING,
        options.log_target if options.log_target is not None
        else LogTarget.STDERR,
    )
    log.debug("%s starting up", _version())

    mode = ClientMode.COMMAND if options.raw_commands \
        else ClientMode.CHECK_RESULT
    try:
        if config.delay:
            delay = random_delay(config.delay)
            log.debug("Sleeping %.3f seconds", delay)
            time.sleep(delay)
        timeout = config.timeout if config.timeout > 0 else None
        connection = _TlsConnection(config, timeout)
        Session(connection, mode, options.delimiter,
                options.separator).run(sys.stdin)
    except ServerError:
        return 1
    except (InputFormatError, OSError) as exc:
        log.critical("%s", exc)
        return 1
    finally:
        config.password = ""
    return 0