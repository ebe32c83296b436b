"""Static bearer token strategy.

This module provides :class:`BearerTokenStrategy`, which implements the
``bearer`` auth type: a token taken from the kubeconfig ``token`` field
(or read from ``tokenFile`` at resolution time) sent as an
``Authorization: Bearer <token>`` header.

The token is never refreshed. For tokens minted by an external command,
see :mod:`kubeconnect.strategies.token_provider` and
:mod:`kubeconnect.strategies.exec_plugin`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from kubeconnect.auth.base import AuthStrategy
from kubeconnect.exceptions import InvalidAuthConfigurationError
from kubeconnect.models import Credential


class BearerTokenStrategy(AuthStrategy):
    """Authenticate with a fixed bearer token.

    Args:
        token: The bearer token.
    """

    def __init__(self, token: str) -> None:
        self.token = token

    @property
    def auth_type(self) -> str:
        return "bearer"

    def validate(self) -> None:
        """Raises :class:`InvalidAuthConfigurationError` if the token is blank."""
        if not self.token or not self.token.strip():
            raise InvalidAuthConfigurationError("Bearer authentication requires a non-blank token")

    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        return Credential(token=self.token)

    def clone(self) -> BearerTokenStrategy:
        return BearerTokenStrategy(self.token)
