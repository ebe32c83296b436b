"""Mutual-TLS client certificate strategy.

See Also:
    :class:`~kubeconnect.strategies.client_certificate.strategy.ClientCertificateStrategy`
"""

from kubeconnect.strategies.client_certificate.strategy import ClientCertificateStrategy

__all__ = ["ClientCertificateStrategy"]
