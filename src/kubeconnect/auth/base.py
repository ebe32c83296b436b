"""Abstract base class for credential strategies.

This module defines the two foundational types of the auth subsystem:

- :class:`RequestContext` -- the mutable view of an outgoing request (or
  connection upgrade handshake) that a strategy writes its credential into.
- :class:`AuthStrategy` -- the abstract base class every credential
  strategy extends.

Strategies form a closed set, one per kubeconfig credential source; the
:attr:`~AuthStrategy.auth_type` tag identifies the variant:

=====================  ==================================================
``none``               :class:`~kubeconnect.strategies.anonymous.AnonymousStrategy`
``basic``              :class:`~kubeconnect.strategies.basic.BasicAuthStrategy`
``bearer``             :class:`~kubeconnect.strategies.bearer.BearerTokenStrategy`
``token_provider``     :class:`~kubeconnect.strategies.token_provider.TokenProviderStrategy`
``client_certificate`` :class:`~kubeconnect.strategies.client_certificate.ClientCertificateStrategy`
``exec_plugin``        :class:`~kubeconnect.strategies.exec_plugin.ExecPluginStrategy`
=====================  ==================================================

See Also:
    :mod:`kubeconnect.auth.refresh` for the refreshable variants' base.
    :mod:`kubeconnect.resolver` for how a strategy is selected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from kubeconnect.certificates import ClientCertificate
from kubeconnect.models import Credential


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class RequestContext:
    """Credential-bearing parts of an outgoing request or handshake.

    Strategies mutate an instance in :meth:`AuthStrategy.apply`; the
    transport binder then copies the result onto the real request object.

    Args:
        headers: Request headers to add (e.g. ``{"Authorization": "Bearer ..."}``).
        client_certificates: Client certificates to present during the TLS
            handshake.

    Example::

        ctx = RequestContext()
        strategy.apply(ctx)
        ctx.headers["Authorization"]
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        client_certificates: list[ClientCertificate] | None = None,
    ):
        self.headers = headers if headers is not None else {}
        self.client_certificates = (
            client_certificates if client_certificates is not None else []
        )

    def set_authorization(self, scheme: str, value: str) -> None:
        """Set the ``Authorization`` header to ``"<scheme> <value>"``."""
        self.headers["Authorization"] = f"{scheme} {value}"


class AuthStrategy(ABC):
    """Abstract base class for credential strategies.

    Every concrete strategy provides:

    1. An :attr:`auth_type` tag naming the variant.
    2. :meth:`resolve_credential`, returning the current
       :class:`~kubeconnect.models.Credential`.
    3. :meth:`clone`, returning an independent copy.

    and may override :meth:`validate` for static configuration checks and
    :meth:`apply` when the credential is not a bearer token.
    """

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the tag identifying this strategy variant."""
        ...

    @property
    def refreshable(self) -> bool:
        """Whether the credential can change over the strategy's lifetime."""
        return False

    def validate(self) -> None:
        """Check the strategy's configuration before first use.

        Raises:
            InvalidAuthConfigurationError: If required fields are missing.
            CertificateLoadError: If certificate material is incomplete.
        """
        return None

    @abstractmethod
    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        """Return the credential to use for a request made at *now*.

        Args:
            now: The request time; defaults to the current UTC time.
            timeout: Longest time, in seconds, to wait on a refresh already
                in progress. ``None`` waits until it completes.

        Raises:
            CredentialRefreshError: If a refresh was needed and failed.
        """
        ...

    def apply(self, context: RequestContext, now: Optional[datetime] = None) -> None:
        """Write the current credential into *context*.

        The default sends the credential's token as a bearer token and
        attaches any client certificate the credential carries.
        """
        credential = self.resolve_credential(now)
        if credential.token:
            context.set_authorization("Bearer", credential.token)
        certificate = self.client_certificate_for(credential)
        if certificate is not None:
            context.client_certificates.append(certificate)

    def client_certificate_for(self, credential: Credential) -> Optional[ClientCertificate]:
        """Return the client certificate carried by *credential*, if any."""
        if not credential.client_certificate_data:
            return None
        key = credential.client_key_data.encode() if credential.client_key_data else None
        return ClientCertificate.from_pem(credential.client_certificate_data.encode(), key)

    def invalidate(self) -> None:
        """Forget any cached credential so the next request fetches a new one."""
        return None

    @abstractmethod
    def clone(self) -> AuthStrategy:
        """Return an independent copy of this strategy."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} auth_type={self.auth_type!r}>"
