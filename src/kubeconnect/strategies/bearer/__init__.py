"""Static bearer token strategy.

See Also:
    :class:`~kubeconnect.strategies.bearer.strategy.BearerTokenStrategy`
"""

from kubeconnect.strategies.bearer.strategy import BearerTokenStrategy

__all__ = ["BearerTokenStrategy"]
