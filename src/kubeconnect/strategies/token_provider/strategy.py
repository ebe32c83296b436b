"""Refreshable bearer token strategy for legacy ``auth-provider`` blocks.

This module provides :class:`TokenProviderStrategy`, which implements the
``token_provider`` auth type. The token cached in the kubeconfig
(``access-token`` / ``expiry``) is served until it nears expiry; then
``cmd-path`` is run through the
:class:`~kubeconnect.auth.executor.CredentialPluginExecutor` and the
token (and expiry) are picked out of its output with ``token-key`` /
``expiry-key``.

Refreshed tokens are kept in memory only; the kubeconfig file is never
rewritten.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from kubeconnect.auth.executor import CredentialPluginExecutor
from kubeconnect.auth.refresh import DEFAULT_REFRESH_MARGIN, RefreshingStrategy
from kubeconnect.exceptions import InvalidAuthConfigurationError
from kubeconnect.models import AuthProviderDescriptor, Credential


class TokenProviderStrategy(RefreshingStrategy):
    """Authenticate with a bearer token minted by a legacy auth-provider command.

    Args:
        descriptor: The parsed ``auth-provider`` settings.
        executor: Runs the provider command.
        refresh_margin: Lead time before expiry at which a refresh starts.
    """

    def __init__(
        self,
        descriptor: AuthProviderDescriptor,
        executor: Optional[CredentialPluginExecutor] = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
    ) -> None:
        initial = None
        if descriptor.initial_token:
            initial = Credential(
                token=descriptor.initial_token,
                expires_at=descriptor.initial_expiry,
            )
        super().__init__(initial=initial, refresh_margin=refresh_margin)
        self.descriptor = descriptor
        self.executor = executor or CredentialPluginExecutor()

    @property
    def auth_type(self) -> str:
        return "token_provider"

    @property
    def wait_timeout(self) -> Optional[float]:
        return self.executor.timeout * 2

    def validate(self) -> None:
        """Require either a command to run or a cached token to serve.

        Raises:
            InvalidAuthConfigurationError: If neither is configured.
        """
        if not self.descriptor.command_path and not self.descriptor.initial_token:
            raise InvalidAuthConfigurationError(
                "The auth-provider configuration needs 'cmd-path' or 'access-token'"
            )

    def fetch_credential(self) -> Credential:
        return self.executor.run_auth_provider(self.descriptor)

    def clone(self) -> TokenProviderStrategy:
        other = TokenProviderStrategy(
            self.descriptor.model_copy(deep=True),
            executor=self.executor,
            refresh_margin=self.refresh_margin,
        )
        other._credential = None
        self._copy_state_to(other)
        return other
