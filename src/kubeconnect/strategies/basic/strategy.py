"""HTTP Basic authentication strategy.

This module provides :class:`BasicAuthStrategy`, which implements the
``basic`` auth type. The kubeconfig ``username`` and ``password`` are
joined with a colon, Base64-encoded and sent as an
``Authorization: Basic <encoded>`` header per :rfc:`7617`.
"""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Optional

from kubeconnect.auth.base import AuthStrategy, RequestContext
from kubeconnect.exceptions import InvalidAuthConfigurationError
from kubeconnect.models import Credential


class BasicAuthStrategy(AuthStrategy):
    """Authenticate with a username and password.

    Args:
        username: The user name; must not be blank.
        password: The password; must not be blank.
    """

    def __init__(self, username: Optional[str], password: Optional[str]) -> None:
        self.username = username or ""
        self.password = password or ""

    @property
    def auth_type(self) -> str:
        return "basic"

    def validate(self) -> None:
        """Check that both a username and a password are configured.

        Raises:
            InvalidAuthConfigurationError: If either is blank.
        """
        if not self.username.strip():
            raise InvalidAuthConfigurationError(
                "Basic authentication requires a non-blank 'username'"
            )
        if not self.password.strip():
            raise InvalidAuthConfigurationError(
                "Basic authentication requires a non-blank 'password'"
            )

    def encoded(self) -> str:
        """Return ``base64(username:password)``."""
        raw = f"{self.username}:{self.password}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        return Credential(token=self.encoded())

    def apply(self, context: RequestContext, now: Optional[datetime] = None) -> None:
        context.set_authorization("Basic", self.encoded())

    def clone(self) -> BasicAuthStrategy:
        return BasicAuthStrategy(self.username, self.password)
