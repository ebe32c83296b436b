"""Transport binding: request mutation, SSL contexts and server certificate checks."""

from kubeconnect.transport.binder import StrategyAuth, TransportBinder
from kubeconnect.transport.tls import (
    TlsPolicyError,
    build_chain_with_ca,
    ensure_server_certificate,
    verify_server_certificate,
)
from kubeconnect.transport.websocket import WebSocketOptions

__all__ = [
    "StrategyAuth",
    "TlsPolicyError",
    "TransportBinder",
    "WebSocketOptions",
    "build_chain_with_ca",
    "ensure_server_certificate",
    "verify_server_certificate",
]
