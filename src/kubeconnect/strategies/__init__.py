"""Built-in credential strategies, one per kubeconfig credential source.

=====================  ==============================================
Tag                    Strategy
=====================  ==============================================
``none``               :class:`AnonymousStrategy`
``basic``              :class:`BasicAuthStrategy`
``bearer``             :class:`BearerTokenStrategy`
``token_provider``     :class:`TokenProviderStrategy`
``client_certificate`` :class:`ClientCertificateStrategy`
``exec_plugin``        :class:`ExecPluginStrategy`
=====================  ==============================================
"""

from kubeconnect.strategies.anonymous import AnonymousStrategy
from kubeconnect.strategies.basic import BasicAuthStrategy
from kubeconnect.strategies.bearer import BearerTokenStrategy
from kubeconnect.strategies.client_certificate import ClientCertificateStrategy
from kubeconnect.strategies.exec_plugin import ExecPluginStrategy
from kubeconnect.strategies.token_provider import TokenProviderStrategy

__all__ = [
    "AnonymousStrategy",
    "BasicAuthStrategy",
    "BearerTokenStrategy",
    "ClientCertificateStrategy",
    "ExecPluginStrategy",
    "TokenProviderStrategy",
]
