"""Client-go credential plugin (``exec``) strategy.

:class:`ExecPluginStrategy` implements the ``exec_plugin`` auth type. The
configured command is run on first use and whenever the credential it
returned nears expiry. Plugins may issue a bearer token, a client
certificate, or both; a credential without ``expirationTimestamp`` is kept
for the lifetime of the strategy (or until :meth:`invalidate`).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from kubeconnect.auth.executor import SUPPORTED_EXEC_API_VERSIONS, CredentialPluginExecutor
from kubeconnect.auth.refresh import DEFAULT_REFRESH_MARGIN, RefreshingStrategy
from kubeconnect.certificates import ClientCertificate
from kubeconnect.exceptions import InvalidAuthConfigurationError
from kubeconnect.models import Credential, ExecClusterInfo, ExecConfig


class ExecPluginStrategy(RefreshingStrategy):
    """Authenticate with credentials minted by an exec plugin.

    Args:
        config: The ``exec`` block.
        executor: Runs the plugin process.
        cluster: Cluster details passed to the plugin when the block sets
            ``provideClusterInfo``.
        refresh_margin: Lead time before expiry at which a refresh starts.
    """

    def __init__(
        self,
        config: ExecConfig,
        executor: Optional[CredentialPluginExecutor] = None,
        cluster: Optional[ExecClusterInfo] = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
    ) -> None:
        super().__init__(refresh_margin=refresh_margin)
        self.config = config
        self.executor = executor or CredentialPluginExecutor()
        self.cluster = cluster
        self._parsed_certificate: Optional[tuple[str, ClientCertificate]] = None

    @property
    def auth_type(self) -> str:
        return "exec_plugin"

    @property
    def wait_timeout(self) -> Optional[float]:
        return self.executor.timeout * 2

    def validate(self) -> None:
        """Check the ``exec`` block before the plugin is first run.

        Raises:
            InvalidAuthConfigurationError: If ``command`` is missing, the
                ``apiVersion`` is unsupported, or the block demands an
                interactive session.
        """
        if not self.config.command:
            raise InvalidAuthConfigurationError("The exec plugin configuration needs a 'command'")
        if self.config.api_version not in SUPPORTED_EXEC_API_VERSIONS:
            supported = ", ".join(SUPPORTED_EXEC_API_VERSIONS)
            raise InvalidAuthConfigurationError(
                f"Unsupported exec plugin apiVersion '{self.config.api_version}' "
                f"(supported: {supported})"
            )
        if self.config.interactive_mode == "Always":
            raise InvalidAuthConfigurationError(
                f"Exec plugin '{self.config.command}' requires an interactive session, "
                "which is not available"
            )

    def fetch_credential(self) -> Credential:
        return self.executor.run_exec_plugin(self.config, self.cluster)

    def client_certificate_for(self, credential: Credential) -> Optional[ClientCertificate]:
        pem = credential.client_certificate_data
        if not pem:
            return None
        cached = self._parsed_certificate
        if cached is not None and cached[0] == pem:
            return cached[1]
        certificate = super().client_certificate_for(credential)
        if certificate is not None:
            self._parsed_certificate = (pem, certificate)
        return certificate

    def clone(self) -> ExecPluginStrategy:
        other = ExecPluginStrategy(
            self.config.model_copy(deep=True),
            executor=self.executor,
            cluster=self.cluster.model_copy() if self.cluster is not None else None,
            refresh_margin=self.refresh_margin,
        )
        self._copy_state_to(other)
        return other
