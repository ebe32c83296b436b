"""Resolved connection options.

:class:`ConnectionOptions` is the output of
:func:`~kubeconnect.resolver.resolve`: everything a transport needs to talk
to one cluster as one user. Instances are frozen; the only state that
changes after resolution lives inside the credential strategy (its cached
credential).
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from cryptography import x509
from pydantic import BaseModel, ConfigDict, Field

from kubeconnect.auth.base import AuthStrategy
from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import ConfigError
from kubeconnect.strategies.anonymous import AnonymousStrategy


class ConnectionOptions(BaseModel):
    """Endpoint, trust material and credential strategy for one connection.

    Attributes:
        endpoint: Absolute URL of the API server.
        namespace: Default namespace for namespaced requests.
        ca_certificate: Trusted root for the server's certificate chain (the
            first certificate of the cluster's CA bundle).
        extra_ca_certificates: The remaining certificates of the CA bundle,
            trusted alongside ``ca_certificate``.
        allow_insecure: Skip server certificate verification entirely.
        strategy: The credential strategy applied to every request.
        client_certificate: Client certificate presented during the TLS
            handshake (set for the ``client_certificate`` strategy).
        context_name: Name of the kubeconfig context this was resolved from.
        cluster_name: Name of the cluster entry.
        user_name: Name of the user entry.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    endpoint: str
    namespace: str = "default"
    ca_certificate: Optional[x509.Certificate] = None
    extra_ca_certificates: tuple[x509.Certificate, ...] = ()
    allow_insecure: bool = False
    strategy: AuthStrategy = Field(default_factory=AnonymousStrategy)
    client_certificate: Optional[ClientCertificate] = None
    context_name: Optional[str] = None
    cluster_name: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def auth_type(self) -> str:
        return self.strategy.auth_type

    @property
    def ca_bundle(self) -> list[x509.Certificate]:
        """Every trusted cluster CA certificate; empty when none is configured."""
        if self.ca_certificate is None:
            return []
        return [self.ca_certificate, *self.extra_ca_certificates]

    def ensure_valid(self) -> ConnectionOptions:
        """Check the options and return them unchanged.

        Raises:
            ConfigError: If the endpoint is not an absolute URL or the
                namespace is blank.
            CertificateLoadError: If the client certificate lacks its
                private key.
        """
        parts = urlsplit(self.endpoint or "")
        if not parts.scheme or not parts.netloc:
            raise ConfigError(
                f"Invalid connection options: '{self.endpoint}' is not an absolute API end-point URL"
            )
        if self.client_certificate is not None:
            self.client_certificate.validate()
        if not self.namespace or not self.namespace.strip():
            raise ConfigError("Invalid connection options: the default namespace is blank")
        return self

    def clone(self) -> ConnectionOptions:
        """Return a copy whose strategy refreshes independently of this one."""
        return self.model_copy(update={"strategy": self.strategy.clone()})
