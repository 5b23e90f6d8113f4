"""Pre-shared key credentials for the TLS handshake."""

from __future__ import annotations

from typing import Callable

PSK_MAX_IDENTITY_LEN = 256
PSK_MAX_PSK_LEN = 512


def psk_credentials(identity: str, password: str, max_identity_len: int,
                    max_password_len: int) -> tuple[bytes, bytes]:
    """Return identity and key bytes cut to the limits the TLS layer allows.

    The identity leaves room for a terminating byte, the key does not.
    """
    identity_bytes = identity.encode("utf-8")[:max(max_identity_len - 1, 0)]
    key_bytes = password.encode("utf-8")[:max(max_password_len, 0)]
    return identity_bytes, key_bytes


def make_psk_callback(
    identity: str, password: str
) -> Callable[[str | None], tuple[str, bytes]]:
    """Build a client callback for ``SSLContext.set_psk_client_callback``."""

    def callback(hint: str | None) -> tuple[str, bytes]:
        identity_bytes, key = psk_credentials(
            identity, password, PSK_MAX_IDENTITY_LEN + 1, PSK_MAX_PSK_LEN
        )
        return identity_bytes.decode("utf-8", errors="ignore"), key

    return callback