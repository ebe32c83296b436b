"""Anonymous access: no credential is sent.

See Also:
    :class:`~kubeconnect.strategies.anonymous.strategy.AnonymousStrategy`
"""

from kubeconnect.strategies.anonymous.strategy import AnonymousStrategy

__all__ = ["AnonymousStrategy"]
