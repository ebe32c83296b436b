"""Mutual-TLS client certificate strategy.

:class:`ClientCertificateStrategy` implements the ``client_certificate``
auth type. No header is sent; the certificate and its private key are
presented during the TLS handshake instead. When a user identity carries a
client certificate, this strategy is chosen over every token-based source.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from kubeconnect.auth.base import AuthStrategy, RequestContext
from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import InvalidAuthConfigurationError
from kubeconnect.models import Credential


class ClientCertificateStrategy(AuthStrategy):
    """Authenticate by presenting a client certificate.

    Args:
        certificate: The certificate and its private key.
    """

    def __init__(self, certificate: Optional[ClientCertificate]) -> None:
        self.certificate = certificate

    @property
    def auth_type(self) -> str:
        return "client_certificate"

    def validate(self) -> None:
        """Require a certificate whose private key is present and matches.

        Raises:
            InvalidAuthConfigurationError: If no certificate is configured.
            CertificateLoadError: If the private key is missing or mismatched.
        """
        if self.certificate is None:
            raise InvalidAuthConfigurationError(
                "Client certificate authentication requires a certificate"
            )
        self.certificate.validate()

    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        if self.certificate is None:
            return Credential()
        key_pem = None
        if self.certificate.has_private_key:
            key_pem = self.certificate.private_key_pem().decode("ascii")
        return Credential(
            client_certificate_data=self.certificate.certificate_pem().decode("ascii"),
            client_key_data=key_pem,
        )

    def apply(self, context: RequestContext, now: Optional[datetime] = None) -> None:
        if self.certificate is not None:
            context.client_certificates.append(self.certificate)

    def clone(self) -> ClientCertificateStrategy:
        # Certificates and keys are immutable; sharing them is a value copy.
        return ClientCertificateStrategy(self.certificate)
