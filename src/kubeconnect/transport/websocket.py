"""Connection-upgrade (WebSocket) settings derived from connection options.

WebSocket libraries need the ``Authorization`` header and the client
certificate before the handshake starts, so they cannot use a per-request
hook like :class:`httpx.Auth`. :class:`WebSocketOptions` captures both, plus
the SSL context and the server certificate predicate, from the same
strategy the HTTP client uses.
"""

from __future__ import annotations

import ssl
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

import httpx

from kubeconnect.certificates import ClientCertificate

if TYPE_CHECKING:
    from kubeconnect.options import ConnectionOptions

DEFAULT_BUFFER_SIZE = 2048


class WebSocketOptions:
    """Settings for opening an authenticated WebSocket to the API server.

    Attributes:
        request_headers: Headers to send with the upgrade request
            (case-insensitive).
        requested_subprotocols: ``Sec-WebSocket-Protocol`` values to offer.
        client_certificates: Certificates to present during the handshake.
        server_certificate_validator: Predicate deciding whether the server
            certificate is acceptable, or ``None`` for the platform default.
        ssl_context: Context with the cluster CA and client certificate
            loaded.
        send_buffer_size: Send buffer size in bytes.
        receive_buffer_size: Receive buffer size in bytes.
        keep_alive_interval: Seconds between keep-alive pings.
    """

    def __init__(self) -> None:
        self.request_headers = httpx.Headers()
        self.requested_subprotocols: list[str] = []
        self.client_certificates: list[ClientCertificate] = []
        self.server_certificate_validator: Optional[Callable[..., bool]] = None
        self.ssl_context: Optional[ssl.SSLContext] = None
        self.send_buffer_size = DEFAULT_BUFFER_SIZE
        self.receive_buffer_size = DEFAULT_BUFFER_SIZE
        self.keep_alive_interval = 5.0

    @classmethod
    def from_options(
        cls, options: ConnectionOptions, now: Optional[datetime] = None
    ) -> WebSocketOptions:
        """Build WebSocket settings from resolved connection options."""
        from kubeconnect.transport.binder import TransportBinder

        return TransportBinder(options).websocket_options(now)
