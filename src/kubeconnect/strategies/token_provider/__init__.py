"""Refreshable bearer token strategy for legacy ``auth-provider`` blocks.

See Also:
    :class:`~kubeconnect.strategies.token_provider.strategy.TokenProviderStrategy`
"""

from kubeconnect.strategies.token_provider.strategy import TokenProviderStrategy

__all__ = ["TokenProviderStrategy"]
