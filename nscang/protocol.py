"""Blocking client for pushing check results over a TLS-PSK connection."""

from __future__ import annotations

import enum
import secrets
import socket
import ssl
import time
from contextlib import suppress

from nscang.auth import make_psk_callback

DEFAULT_PORT = 5668
DEFAULT_TIMEOUT = 5

_MAX_RESPONSE = 1024
_MAX_ERRSTR = 1023
_MAX_COMMAND = 1022
_POLL_INTERVAL = 0.1


class NscaError(RuntimeError):
    """Raised when talking to the server fails."""


class _ServerBail(NscaError):
    """The server gave up on the connection."""


class _UnknownResponse(NscaError):
    """The server sent something that is not part of the protocol."""


class Response(enum.Enum):
    """Positive server replies."""

    MOIN = 1
    OKAY = 2


class _State(enum.IntEnum):
    NONE = 0
    NEW = 1
    MOIN = 2


def _detail(text: str) -> str:
    return text[:_MAX_ERRSTR]


def classify_response(line: str) -> Response:
    """Classify one server reply line, raising NscaError for negative ones."""
    if line.startswith("MOIN"):
        if line == "MOIN 1":
            return Response.MOIN
        raise NscaError(
            f"Protocol mismatch - bad version '{_detail(line[5:])}'"
        )
    if line.startswith("OKAY"):
        return Response.OKAY
    if line.startswith("FAIL"):
        raise NscaError(f"FAIL: {_detail(line[5:])}")
    if line.startswith("BAIL"):
        raise _ServerBail(f"BAIL: {_detail(line[5:])}")
    raise _UnknownResponse("Protocol mismatch - unknown server response")


def format_push_command(host: str, service: str | None, status: int,
                        message: str = "", now: int | None = None) -> str:
    """Build a newline-terminated host or service check result command."""
    stamp = int(time.time()) if now is None else int(now)
    if service is None:
        body = f"[{stamp}] PROCESS_HOST_CHECK_RESULT;{host};{status};{message}"
    else:
        body = (
            f"[{stamp}] PROCESS_SERVICE_CHECK_RESULT;"
            f"{host};{service};{status};{message}"
        )
    return body + "\n"


def generate_session_id() -> str:
    """Return a random numeric session identifier for the MOIN request."""
    first = secrets.randbelow(2**31)
    second = secrets.randbelow(2**31)
    return f"{first:08d}{second:08d}"


class Client:
    """A connection to a monitoring server that accepts check results."""

    def __init__(self, host: str, port: int = DEFAULT_PORT,
                 identity: str = "", psk: str = "",
                 ciphers: str | None = None) -> None:
        self.host = host
        self.port = port
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        if ciphers is not None:
            try:
                context.set_ciphers(ciphers)
            except ssl.SSLError as exc:
                raise NscaError("Bad ciphers list") from exc
        context.set_psk_client_callback(make_psk_callback(identity, psk))
        self._context = context
        self._sock: socket.socket | None = None
        self._pending = b""
        self._state = _State.NEW

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _bad_state(self) -> NscaError:
        return NscaError(
            f"Operation not permitted in state {int(self._state)}"
        )

    def _ensure_connected(self, timeout: float) -> socket.socket:
        if self._sock is None:
            try:
                raw = socket.create_connection(
                    (self.host, self.port),
                    timeout=max(timeout, _POLL_INTERVAL),
                )
                self._sock = self._context.wrap_socket(
                    raw, server_hostname=self.host
                )
            except TimeoutError as exc:
                raise NscaError("Timeout was reached") from exc
            except OSError as exc:
                raise NscaError(f"SSL error - {exc}") from exc
            self._pending = b""
        return self._sock

    def _write(self, data: bytes, timeout: float) -> None:
        sock = self._ensure_connected(timeout)
        sock.settimeout(max(timeout, _POLL_INTERVAL))
        try:
            sock.sendall(data)
        except TimeoutError as exc:
            raise NscaError("Timeout was reached") from exc
        except OSError as exc:
            raise NscaError(f"SSL error - {exc}") from exc

    def _read_line(self, timeout: float) -> str:
        sock = self._ensure_connected(timeout)
        deadline = time.monotonic() + timeout
        while b"\n" not in self._pending:
            if len(self._pending) >= _MAX_RESPONSE:
                raise NscaError("Protocol mismatch - too long response")
            sock.settimeout(max(deadline - time.monotonic(), _POLL_INTERVAL))
            try:
                chunk = sock.recv(_MAX_RESPONSE - len(self._pending))
            except TimeoutError as exc:
                raise NscaError("Timeout was reached") from exc
            except OSError as exc:
                raise NscaError(f"SSL error - {exc}") from exc
            if not chunk:
                raise NscaError("SSL error - connection closed by server")
            self._pending += chunk
        raw, _, self._pending = self._pending.partition(b"\n")
        return raw.removesuffix(b"\r").decode("utf-8", errors="replace")

    def _response(self, timeout: float) -> Response:
        line = self._read_line(timeout)
        try:
            return classify_response(line)
        except _ServerBail:
            self.disconnect()
            raise
        except _UnknownResponse:
            with suppress(NscaError):
                self._write(b"BAIL Unknown response!\n", 0)
            self.disconnect()
            raise

    def _expect(self, expected: Response, timeout: float) -> None:
        if self._response(timeout) is not expected:
            raise NscaError(
                "Protocol mismatch - unexpected server response"
            )

    def send_moin(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Perform the protocol handshake unless it has already been done."""
        if self._state is _State.MOIN:
            return
        if self._state is not _State.NEW:
            raise self._bad_state()
        request = f"MOIN 1 {generate_session_id()}\r\n"
        self._write(request.encode("ascii"), timeout)
        self._expect(Response.MOIN, timeout)
        self._state = _State.MOIN

    def send_push(self, host: str, service: str | None, status: int,
                  message: str = "",
                  timeout: float = DEFAULT_TIMEOUT) -> None:
        """Submit one host (service None) or service check result."""
        self.send_moin(timeout)
        body = format_push_command(host, service, status, message)[:-1]
        command = body.encode("utf-8")[:_MAX_COMMAND] + b"\n"
        self._write(f"PUSH {len(command)}\n".encode("ascii"), timeout)
        self._expect(Response.OKAY, timeout)
        self._write(command, timeout)
        self._expect(Response.OKAY, timeout)

    def send_quit(self) -> None:
        """Tell the server the session is over without awaiting a reply."""
        if self._state is not _State.MOIN:
            raise self._bad_state()
        self._write(b"QUIT\n", 0)

    def disconnect(self) -> None:
        """Close the connection; the next request reconnects."""
        if self._state is _State.MOIN:
            with suppress(NscaError):
                self.send_quit()
        if self._sock is not None:
            sock, self._sock = self._sock, None
            with suppress(OSError, ValueError):
                sock.settimeout(_POLL_INTERVAL)
                sock.unwrap()
            with suppress(OSError):
                sock.close()
        self._pending = b""
        if self._state is not _State.NONE:
            self._state = _State.NEW

    def close(self) -> None:
        """Disconnect and make the client unusable."""
        if self._state is not _State.NONE:
            self.disconnect()
        self._state = _State.NONE