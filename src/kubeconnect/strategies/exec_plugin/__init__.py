"""Client-go credential plugin (``exec``) strategy.

See Also:
    :class:`~kubeconnect.strategies.exec_plugin.strategy.ExecPluginStrategy`
"""

from kubeconnect.strategies.exec_plugin.strategy import ExecPluginStrategy

__all__ = ["ExecPluginStrategy"]
