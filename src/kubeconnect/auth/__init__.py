"""Credential strategy framework for kubeconnect.

- :class:`AuthStrategy` -- abstract base class for credential strategies.
- :class:`RequestContext` -- the request view a strategy writes into.
- :class:`RefreshingStrategy` / :class:`SingleFlight` -- cached,
  single-flight refresh for expiring credentials.
- :class:`CredentialPluginExecutor` -- runs auth-provider commands and exec
  plugins.

The concrete strategies live in :mod:`kubeconnect.strategies`.
"""

from kubeconnect.auth.base import AuthStrategy, RequestContext
from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.auth.refresh import DEFAULT_REFRESH_MARGIN, RefreshingStrategy, SingleFlight

__all__ = [
    "AuthStrategy",
    "CredentialPluginExecutor",
    "DEFAULT_REFRESH_MARGIN",
    "RefreshingStrategy",
    "RequestContext",
    "SingleFlight",
]
