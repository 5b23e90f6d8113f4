"""High-level notifier that submits passive host and service results."""

from __future__ import annotations

from nscang.protocol import DEFAULT_TIMEOUT, Client, NscaError


class Notifier:
    """Sends passive check results to a configured monitoring host.

    A failed submission is retried once on a fresh connection before the
    error is reported.
    """

    def __init__(self, host: str, port: int, identity: str, psk: str,
                 ciphers: str | None = None) -> None:
        try:
            self._client = Client(host, port, identity, psk, ciphers)
        except NscaError as exc:
            raise NscaError(f"Cannot set up client: {exc}") from exc

    @property
    def host(self) -> str:
        """The monitoring host results are sent to."""
        return self._client.host

    @property
    def port(self) -> int:
        """The port of the monitoring host."""
        return self._client.port

    def __enter__(self) -> Notifier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._client.close()

    def _submit(self, operation: str, host: str, service: str | None,
                status: int, output: str, timeout: float) -> None:
        try:
            self._client.send_push(host, service, status, output, timeout)
            return
        except NscaError:
            self._client.disconnect()
        try:
            self._client.send_push(host, service, status, output, timeout)
        except NscaError as exc:
            raise NscaError(f"{operation}: {exc}") from exc

    def host_result(self, host_name: str, return_code: int,
                    plugin_output: str = "",
                    timeout: float = DEFAULT_TIMEOUT) -> None:
        """Send a passive host check result."""
        self._submit("host_result", host_name, None, return_code,
                     plugin_output, timeout)

    def svc_result(self, host_name: str, svc_description: str,
                   return_code: int, plugin_output: str = "",
                   timeout: float = DEFAULT_TIMEOUT) -> None:
        """Send a passive service check result."""
        self._submit("svc_result", host_name, svc_description, return_code,
                     plugin_output, timeout)