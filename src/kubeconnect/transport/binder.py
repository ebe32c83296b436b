"""Bind a resolved credential strategy to concrete transports.

:class:`TransportBinder` turns :class:`~kubeconnect.options.ConnectionOptions`
into the pieces an HTTP or WebSocket client consumes:

- :meth:`~TransportBinder.auth` -- an :class:`httpx.Auth` that applies the
  strategy to every request and, on HTTP 401, drops a refreshable
  credential and retries once.
- :meth:`~TransportBinder.handshake_headers` and
  :meth:`~TransportBinder.websocket_options` -- the same credential fixed
  up front for a connection upgrade.
- :meth:`~TransportBinder.ssl_context` -- trust store plus cluster CA plus
  client certificate.
- :meth:`~TransportBinder.certificate_validator` -- the server certificate
  predicate from :mod:`kubeconnect.transport.tls`.
"""

from __future__ import annotations

import functools
import logging
import os
import ssl
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Generator, Optional

import httpx
from cryptography.hazmat.primitives import serialization

from kubeconnect.auth.base import AuthStrategy, RequestContext
from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import CertificateLoadError
from kubeconnect.options import ConnectionOptions
from kubeconnect.transport.tls import (
    ChainBuilder,
    build_chain_with_ca,
    verify_server_certificate,
)
from kubeconnect.transport.websocket import WebSocketOptions

logger = logging.getLogger(__name__)


class StrategyAuth(httpx.Auth):
    """httpx auth hook that applies a credential strategy per request."""

    def __init__(self, strategy: AuthStrategy) -> None:
        self._strategy = strategy

    def _authorize(self, request: httpx.Request) -> httpx.Request:
        context = RequestContext()
        self._strategy.apply(context)
        request.headers.update(context.headers)
        return request

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        response = yield self._authorize(request)
        if response.status_code == 401 and self._strategy.refreshable:
            logger.debug("Got 401; refreshing %s credential and retrying", self._strategy.auth_type)
            self._strategy.invalidate()
            yield self._authorize(request)


class TransportBinder:
    """Apply one :class:`ConnectionOptions` to HTTP and WebSocket transports.

    Args:
        options: Validated connection options.
        chain_builder: Rebuilds a server chain with the cluster CA as root.

    Example::

        binder = TransportBinder(options)
        client = httpx.Client(base_url=options.endpoint,
                              verify=binder.ssl_context(), auth=binder.auth())
    """

    def __init__(
        self,
        options: ConnectionOptions,
        chain_builder: ChainBuilder = build_chain_with_ca,
    ) -> None:
        self.options = options
        self._chain_builder = chain_builder

    @property
    def strategy(self) -> AuthStrategy:
        return self.options.strategy

    def apply(
        self, context: Optional[RequestContext] = None, now: Optional[datetime] = None
    ) -> RequestContext:
        """Apply the strategy to *context* (a new one by default) and return it."""
        if context is None:
            context = RequestContext()
        self.strategy.apply(context, now)
        return context

    def auth(self) -> httpx.Auth:
        return StrategyAuth(self.strategy)

    def handshake_headers(self, now: Optional[datetime] = None) -> dict[str, str]:
        """Headers to fix before a connection upgrade begins."""
        return dict(self.apply(now=now).headers)

    def client_certificates(self, now: Optional[datetime] = None) -> list[ClientCertificate]:
        """Client certificates to present, from the options and the strategy."""
        certificates = list(self.apply(now=now).client_certificates)
        static = self.options.client_certificate
        if static is not None and all(c is not static for c in certificates):
            certificates.insert(0, static)
        return certificates

    def certificate_validator(self) -> Optional[Callable[..., bool]]:
        """Return the server certificate predicate, or ``None`` for the default.

        The predicate takes ``(errors, leaf, intermediates)``; see
        :func:`~kubeconnect.transport.tls.verify_server_certificate`.
        """
        if self.options.ca_certificate is not None:
            return functools.partial(
                verify_server_certificate,
                ca_certificate=self.options.ca_certificate,
                allow_insecure=False,
                chain_builder=self._chain_builder,
                extra_ca_certificates=tuple(self.options.extra_ca_certificates),
            )
        if self.options.allow_insecure:
            logger.warning(
                "TLS verification is disabled for %s (insecure-skip-tls-verify)",
                self.options.endpoint,
            )
            return functools.partial(
                verify_server_certificate, ca_certificate=None, allow_insecure=True
            )
        return None

    def ssl_context(self, now: Optional[datetime] = None) -> ssl.SSLContext:
        """Build the SSL context for the API server connection.

        The platform trust store is extended with every certificate of the
        cluster CA bundle.
        Verification is switched off only for insecure clusters without a
        CA. Client certificates issued by an exec plugin are loaded as of
        *now*; a later rotation needs a new context.

        Raises:
            CertificateLoadError: If a client certificate cannot be loaded.
            CredentialRefreshError: If the strategy had to refresh and failed.
        """
        context = ssl.create_default_context()
        ca_bundle = self.options.ca_bundle
        if ca_bundle:
            pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in ca_bundle)
            context.load_verify_locations(cadata=pem.decode("ascii"))
        elif self.options.allow_insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        certificates = self.client_certificates(now)
        if certificates:
            load_client_certificate_into(context, certificates[0])
        return context

    def websocket_options(self, now: Optional[datetime] = None) -> WebSocketOptions:
        """Bundle headers, certificates and TLS policy for a WebSocket client."""
        socket_options = WebSocketOptions()
        socket_options.request_headers.update(self.handshake_headers(now))
        socket_options.client_certificates = self.client_certificates(now)
        socket_options.server_certificate_validator = self.certificate_validator()
        socket_options.ssl_context = self.ssl_context(now)
        return socket_options


def load_client_certificate_into(context: ssl.SSLContext, certificate: ClientCertificate) -> None:
    """Load *certificate* and its key into *context*.

    :meth:`ssl.SSLContext.load_cert_chain` only reads files, so the PEM
    blobs go through a private temporary directory that is removed
    afterwards.

    Raises:
        CertificateLoadError: If the key is missing or OpenSSL rejects the pair.
    """
    key_pem = certificate.private_key_pem()
    with tempfile.TemporaryDirectory(prefix="kubeconnect-") as tmp:
        cert_path = Path(tmp) / "client.crt"
        key_path = Path(tmp) / "client.key"
        _write_private(cert_path, certificate.certificate_pem())
        _write_private(key_path, key_pem)
        try:
            context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
        except ssl.SSLError as exc:
            raise CertificateLoadError(
                f"Cannot use client certificate '{certificate.subject}': {exc}"
            ) from exc


def _write_private(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)
