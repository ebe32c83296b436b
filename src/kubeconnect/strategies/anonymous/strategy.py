"""The ``none`` strategy, used when a user identity configures no credential."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from kubeconnect.auth.base import AuthStrategy, RequestContext
from kubeconnect.models import Credential


class AnonymousStrategy(AuthStrategy):
    """Send requests without credentials."""

    @property
    def auth_type(self) -> str:
        return "none"

    def resolve_credential(
        self,
        now: Optional[datetime] = None,
        timeout: Optional[float] = None,
    ) -> Credential:
        return Credential()

    def apply(self, context: RequestContext, now: Optional[datetime] = None) -> None:
        return None

    def clone(self) -> AnonymousStrategy:
        return AnonymousStrategy()
