"""HTTP Basic authentication strategy.

See Also:
    :class:`~kubeconnect.strategies.basic.strategy.BasicAuthStrategy`
"""

from kubeconnect.strategies.basic.strategy import BasicAuthStrategy

__all__ = ["BasicAuthStrategy"]
